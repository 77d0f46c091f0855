"""Docker operations for nodebox.

Thin adapter over the docker CLI. DockerRuntime implements the
ContainerRuntime protocol the liveness supervisor consumes.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from .constants import DOCKER_BUILD_TIMEOUT, DOCKER_COMMAND_TIMEOUT
from .errors import DockerError, DockerNotFoundError, DockerTimeoutError, ImageBuildError
from .generator import get_docker_create_cmd, write_build_files
from .logging import get_logger
from .supervisor import ContainerStatus

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .profile import CompiledProfile

__all__ = [
    "DockerError",
    "DockerNotFoundError",
    "DockerTimeoutError",
    "DockerRuntime",
    "safe_docker_run",
    "check_docker_status",
    "inspect_container_status",
    "start_container",
    "build_image",
    "create_container",
    "remove_container",
]

# docker inspect .State.Status values that `docker start` can bring back
_STOPPED_STATES = frozenset({"created", "exited", "dead", "paused", "restarting"})


def safe_docker_run(
    cmd: Sequence[str],
    *,
    timeout: int = DOCKER_COMMAND_TIMEOUT,
    capture_output: bool = True,
    check: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Run a Docker command with consistent error handling.

    Args:
        cmd: Command to run (should start with 'docker').
        timeout: Command timeout in seconds.
        capture_output: Capture stdout/stderr if True.
        check: Raise CalledProcessError on non-zero exit.

    Returns:
        CompletedProcess with command result.

    Raises:
        DockerNotFoundError: If docker command is not found.
        DockerTimeoutError: If command times out.
        subprocess.CalledProcessError: If check=True and command fails.
    """
    cmd_str = " ".join(cmd[:4]) + ("..." if len(cmd) > 4 else "")
    logger.debug("Running Docker command: %s", cmd_str)
    try:
        result = subprocess.run(
            cmd,
            capture_output=capture_output,
            text=True,
            check=check,
            timeout=timeout,
        )
        logger.debug("Docker command completed: exit=%d", result.returncode)
        return result
    except FileNotFoundError as e:
        logger.error("Docker not found in PATH: %s", cmd_str)
        raise DockerNotFoundError(f"Docker not found in PATH. Command: {cmd_str}") from e
    except subprocess.TimeoutExpired as e:
        logger.error("Docker command timed out after %ds: %s", timeout, cmd_str)
        raise DockerTimeoutError(
            f"Docker command timed out after {timeout}s. Command: {cmd_str}"
        ) from e


def check_docker_status() -> bool:
    """Check if Docker daemon is responsive.

    Returns:
        True if Docker is running and responsive, False otherwise.
    """
    try:
        result = safe_docker_run(["docker", "info"])
        return result.returncode == 0
    except (DockerNotFoundError, DockerTimeoutError):
        return False


def inspect_container_status(container_name: str) -> ContainerStatus:
    """Query the current state of a container.

    Raises:
        DockerError: If the daemon cannot answer (not just "no such container").
    """
    result = safe_docker_run(
        ["docker", "inspect", "--type", "container", "-f", "{{.State.Status}}", container_name]
    )
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        if "no such" in stderr.lower():
            return ContainerStatus.ABSENT
        raise DockerError(
            f"Cannot inspect container '{container_name}': {stderr or 'unknown error'}"
        )

    state = result.stdout.strip().lower()
    if state == "running":
        return ContainerStatus.RUNNING
    if state in _STOPPED_STATES:
        return ContainerStatus.EXITED
    logger.warning("Unexpected state '%s' for container %s", state, container_name)
    return ContainerStatus.UNKNOWN


def start_container(container_name: str) -> bool:
    """Start an existing container.

    Returns:
        True if docker accepted the start, False otherwise.
    """
    try:
        result = safe_docker_run(["docker", "start", container_name])
    except DockerTimeoutError:
        return False
    if result.returncode != 0:
        logger.warning("docker start %s failed: %s", container_name, (result.stderr or "").strip())
        return False
    return True


def build_image(compiled: CompiledProfile, project_dir: Path) -> None:
    """Build the project image from the generated Dockerfile.

    The build context is the project directory so dependency manifests can be copied.

    Raises:
        ImageBuildError: If the build fails or times out.
    """
    build_dir = write_build_files(compiled, project_dir)
    cmd = ["docker", "build", "-t", compiled.image_name, "-f", str(build_dir / "Dockerfile")]
    for key, value in sorted(compiled.declared.build_args.items()):
        cmd.extend(["--build-arg", f"{key}={value}"])
    cmd.append(str(project_dir))

    try:
        result = safe_docker_run(cmd, timeout=DOCKER_BUILD_TIMEOUT)
    except DockerTimeoutError as e:
        raise ImageBuildError(f"Build of {compiled.image_name} timed out") from e
    if result.returncode != 0:
        tail = "\n".join((result.stderr or "").strip().splitlines()[-5:])
        raise ImageBuildError(f"Build of {compiled.image_name} failed:\n{tail}")


def create_container(compiled: CompiledProfile, project_dir: Path) -> bool:
    """Create a fresh container from the project image (replacing any stale one)."""
    remove_container(compiled.container_name)
    result = safe_docker_run(get_docker_create_cmd(compiled, project_dir))
    if result.returncode != 0:
        logger.warning(
            "docker create %s failed: %s",
            compiled.container_name,
            (result.stderr or "").strip(),
        )
        return False
    return True


def remove_container(container_name: str, *, force: bool = True) -> bool:
    """Remove a Docker container.

    Returns:
        True if container was removed, False otherwise.
    """
    try:
        cmd = ["docker", "rm"]
        if force:
            cmd.append("-f")
        cmd.append(container_name)
        result = safe_docker_run(cmd)
        return result.returncode == 0
    except (DockerNotFoundError, DockerTimeoutError):
        return False


class DockerRuntime:
    """ContainerRuntime backed by the docker CLI for one project directory."""

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = project_dir

    def query_status(self, container_name: str) -> ContainerStatus:
        return inspect_container_status(container_name)

    def start(self, container_name: str) -> bool:
        return start_container(container_name)

    def build(self, container_name: str, compiled: CompiledProfile) -> bool:
        """Rebuild the image and recreate the container; False on failure."""
        try:
            build_image(compiled, self.project_dir)
        except ImageBuildError as e:
            logger.error("%s", e)
            return False
        return create_container(compiled, self.project_dir)
