"""CLI package for nodebox.

This package contains the CLI commands and supporting modules:
- commands: Click command definitions (this module)
- hook: Claude Code PreToolUse hook entry point
- utils: Console, profile loading, exit codes
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
from rich.table import Table

from .. import __version__
from ..classifier import Action, ClassifierPolicy, classify
from ..config import FAMILY_INFO, get_config_path, save_project_profile
from ..constants import DEFAULT_MAX_ATTEMPTS
from ..detector import default_project_profile, detect_project
from ..dispatch import DockerExecDispatcher, container_command, route, run_locally
from ..docker import DockerRuntime, inspect_container_status
from ..errors import DockerError, NodeboxError, ValidationError
from ..logging import set_debug, set_level
from ..run_config import ExecConfig
from ..supervisor import LivenessError, ensure_ready
from .utils import (
    ERR_DOCKER_NOT_RUNNING,
    EXIT_CONTAINER,
    EXIT_OK,
    EXIT_REFUSED,
    check_docker,
    console,
    escape,
    err_console,
    fail,
    join_command,
    load_compiled,
)

__all__ = ["cli"]

_ACTION_EXIT = {
    Action.RUN_LOCALLY: EXIT_OK,
    Action.RUN_IN_CONTAINER: EXIT_CONTAINER,
    Action.REFUSE: EXIT_REFUSED,
}

_ACTION_STYLE = {
    Action.RUN_LOCALLY: "green",
    Action.RUN_IN_CONTAINER: "yellow",
    Action.REFUSE: "red",
}

# Everything after the first word of COMMAND belongs to COMMAND
_PASSTHROUGH = {"ignore_unknown_options": True, "allow_interspersed_args": False}

_max_attempts_option = click.option(
    "--max-attempts",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_ATTEMPTS,
    show_default=True,
    help="Recovery attempts before giving up (start and rebuild each count one)",
)
_path_option = click.option(
    "--path", default=".", type=click.Path(exists=True, file_okay=False), help="Project path"
)


@click.group()
@click.option("--debug", "-d", is_flag=True, help="Debug logging")
@click.option("--verbose", "-v", is_flag=True, help="Log recovery attempts and decisions")
@click.option(
    "--chdir",
    "-C",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Change to directory before running (like git -C)",
)
@click.version_option(version=__version__, prog_name="nodebox")
def cli(debug: bool, verbose: bool, chdir: str | None) -> None:
    """nodebox - run Node.js package and script commands inside the project container."""
    if chdir:
        os.chdir(chdir)
    if debug:
        set_debug(True)
    elif verbose:
        set_level(logging.INFO)


@cli.command(context_settings=_PASSTHROUGH)
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option(
    "--allow-interactive",
    is_flag=True,
    help="Accept docker exec -i/-t lines (interactive sessions only)",
)
def check(command: tuple[str, ...], allow_interactive: bool) -> None:
    """Classify COMMAND without running it.

    Exit code: 0 host-safe, 1 container-required, 2 refused.
    """
    raw = join_command(command)
    try:
        decision = classify(raw, ClassifierPolicy(allow_interactive_dispatch=allow_interactive))
    except ValidationError as e:
        fail(str(e), 64)

    style = _ACTION_STYLE[decision.action]
    console.print(f"[{style}]{decision.action.value}[/{style}]: {escape(decision.reason)}")
    if decision.warning:
        console.print("[yellow]Warning: unrecognized command allowed on host[/yellow]")
    if len(decision.segments) > 1:
        for segment in decision.segments:
            console.print(f"  [dim]{segment.action.value:<15} {escape(segment.text)}[/dim]")
    sys.exit(_ACTION_EXIT[decision.action])


@cli.command(name="exec", context_settings=_PASSTHROUGH)
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@_path_option
@_max_attempts_option
@click.option(
    "--interactive",
    "-i",
    is_flag=True,
    help="Allocate a TTY for the container command (never in automation)",
)
@click.option("--dry-run", is_flag=True, help="Show the routing decision only")
def exec_command(
    command: tuple[str, ...],
    path: str,
    max_attempts: int,
    interactive: bool,
    dry_run: bool,
) -> None:
    """Route COMMAND: run on the host or inside the project container."""
    config = ExecConfig.from_cli(
        path=path, max_attempts=max_attempts, interactive=interactive, dry_run=dry_run
    )
    raw = join_command(command)
    project_dir, _, compiled = load_compiled(config.path)

    if config.dry_run:
        try:
            decision = classify(raw, config.policy)
        except ValidationError as e:
            fail(str(e), 64)
        console.print(f"{decision.action.value}: {escape(decision.reason)}")
        if decision.requires_container:
            suggestion = container_command(raw, compiled.container_name, compiled.workdir)
            console.print(escape(suggestion))
        return

    try:
        outcome = route(
            raw,
            compiled,
            runtime=DockerRuntime(project_dir),
            dispatcher=DockerExecDispatcher(),
            max_attempts=config.max_attempts,
            interactive=config.interactive,
            policy=config.policy,
        )
    except LivenessError as e:
        fail(f"{e}\nCheck the dev command with: docker logs {compiled.container_name}")
    except NodeboxError as e:
        fail(str(e))

    if outcome.action is Action.REFUSE:
        fail(f"Refused: {outcome.decision.reason}", EXIT_REFUSED)

    if outcome.action is Action.RUN_LOCALLY:
        if outcome.decision.warning:
            err_console.print(f"[yellow]Warning: {escape(outcome.decision.reason)}[/yellow]")
        sys.exit(run_locally(raw))

    ready = outcome.ready
    if ready is not None and not ready.already_running:
        err_console.print(
            f"[dim]Started {compiled.container_name} "
            f"({ready.attempts_made} recovery attempt(s))[/dim]"
        )
    result = outcome.result
    if result is None:
        return
    # Captured output is relayed verbatim; rich markup must not touch it
    if result.stdout:
        click.echo(result.stdout, nl=False)
    if result.stderr:
        click.echo(result.stderr, nl=False, err=True)
    sys.exit(result.returncode)


@cli.command()
@_path_option
@_max_attempts_option
def up(path: str, max_attempts: int) -> None:
    """Make sure the project container is running (start or rebuild)."""
    project_dir, _, compiled = load_compiled(path)
    if not check_docker():
        console.print(ERR_DOCKER_NOT_RUNNING)
        sys.exit(1)

    try:
        ready = ensure_ready(
            compiled.container_name,
            compiled,
            max_attempts,
            runtime=DockerRuntime(project_dir),
        )
    except LivenessError as e:
        fail(str(e))
    except DockerError as e:
        fail(str(e))

    if ready.already_running:
        console.print(f"[green]✓ {compiled.container_name} already running[/green]")
        return
    console.print(
        f"[green]✓ {compiled.container_name} running[/green] "
        f"[dim]({ready.attempts_made} recovery attempt(s))[/dim]"
    )
    for attempt in ready.attempts:
        mark = "✓" if attempt.succeeded else "✗"
        console.print(f"  [dim]{mark} {attempt.action.value} -> {attempt.observed.value}[/dim]")
    console.print(f"[dim]Dev server: http://localhost:{compiled.port}[/dim]")


@cli.command()
@_path_option
def status(path: str) -> None:
    """Show the project container state."""
    _, _, compiled = load_compiled(path)
    try:
        state = inspect_container_status(compiled.container_name)
    except DockerError as e:
        fail(str(e))
    console.print(f"{compiled.container_name}: {state.value}")


@cli.command()
@_path_option
def profile(path: str) -> None:
    """Show the compiled environment profile."""
    _, declared, compiled = load_compiled(path)

    table = Table(title=f"Profile: {compiled.container_name}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    family = compiled.base_image_family
    declared_family = declared.base_image_family.value if declared.base_image_family else "unset"
    family_note = f"{family.value} (declared: {declared_family})"
    if compiled.was_overridden:
        family_note += " [yellow]overridden: native modules need glibc[/yellow]"

    table.add_row("Base family", family_note)
    table.add_row("Base image", compiled.base_image)
    table.add_row("Image", compiled.image_name)
    table.add_row("Port", str(compiled.port))
    table.add_row("Native modules", "yes" if declared.has_native_modules else "no")
    table.add_row("Dev command", escape(compiled.dev_command))
    table.add_row("Install", compiled.install_command)
    table.add_row("Bootstrap", " ".join(compiled.bootstrap_packages))
    console.print(table)

    desc, size = FAMILY_INFO[family]
    console.print(f"[dim]{family.value}: {desc} (~{size}MB)[/dim]")


@cli.command()
@_path_option
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config")
def init(path: str, force: bool) -> None:
    """Write .nodebox.json with detected defaults."""
    project_dir = Path(path).resolve()
    config_path = get_config_path(project_dir)
    if config_path.exists() and not force:
        fail(f"{config_path.name} already exists (use --force to overwrite)")

    detection = detect_project(project_dir)
    declared = default_project_profile(project_dir)
    written = save_project_profile(declared, project_dir)

    console.print(f"[green]✓ Wrote {written}[/green]")
    console.print(f"  Container: [cyan]{declared.container_name}[/cyan]")
    console.print(f"  Package manager: {detection.package_manager}")
    if detection.has_native_modules:
        names = ", ".join(detection.native_modules) or "binding.gyp"
        console.print(f"  Native modules: {names} [dim](slim base image)[/dim]")


@cli.command()
def hook() -> None:
    """Claude Code PreToolUse hook (reads the tool call from stdin)."""
    from .hook import run_hook

    code, message = run_hook(sys.stdin.buffer)
    if message:
        click.echo(message, err=True)
    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover
    cli()
