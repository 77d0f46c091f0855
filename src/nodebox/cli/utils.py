"""CLI utilities for nodebox.

Profile loading, Docker checks, and console setup shared by the commands.
"""

from __future__ import annotations

import shlex
import sys
from pathlib import Path
from typing import NoReturn

from rich.console import Console
from rich.markup import escape

from .. import docker
from ..config import ProjectProfile, load_project_profile
from ..errors import NodeboxError
from ..profile import CompiledProfile, select_profile

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

ERR_DOCKER_NOT_RUNNING = "[red]Error: Docker is not running.[/red]"

# Exit codes shared by check/exec/hook
EXIT_OK = 0
EXIT_CONTAINER = 1
EXIT_REFUSED = 2


def fail(message: str, code: int = 1) -> NoReturn:
    """Print an error and exit."""
    err_console.print(f"[red]Error: {escape(message)}[/red]", soft_wrap=True)
    sys.exit(code)


def check_docker() -> bool:
    """Check if the Docker daemon is available."""
    return docker.check_docker_status()


def load_compiled(path: str) -> tuple[Path, ProjectProfile, CompiledProfile]:
    """Load and compile the project profile, exiting with a message on failure."""
    project_dir = Path(path).resolve()
    try:
        declared = load_project_profile(project_dir)
        compiled = select_profile(declared)
    except NodeboxError as e:
        fail(str(e))
    return project_dir, declared, compiled


def join_command(words: tuple[str, ...]) -> str:
    """Turn click's variadic arguments back into one command line.

    A single argument is taken verbatim so quoted lines keep their operators:
    nodebox check "npm ci && npm test". Several arguments were already split by
    the caller's shell and are re-quoted, so `git commit -m "a && b"` stays one
    command.
    """
    if len(words) == 1:
        return words[0]
    return shlex.join(words)
