"""Command routing and dispatch.

route() ties the pieces together for one command line:

    classify -> Refuse          -> outcome only, nothing executed
             -> RunLocally      -> outcome only, caller runs it on the host
             -> RunInContainer  -> ensure_ready -> dispatcher.dispatch

Whether dispatch allocates a TTY is an explicit argument on every call.
Automated callers pass interactive=False.
"""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from .classifier import DEFAULT_POLICY, Action, ClassifierPolicy, Decision, classify
from .constants import DOCKER_EXEC_TIMEOUT
from .errors import DockerNotFoundError, DockerTimeoutError
from .logging import get_logger
from .supervisor import ContainerRuntime, ReadyResult, ensure_ready

if TYPE_CHECKING:
    from .profile import CompiledProfile

logger = get_logger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    """Exit code and captured output of an executed command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandDispatcher(Protocol):
    """Executes a command line inside a ready container."""

    def dispatch(
        self,
        container_name: str,
        raw_command: str,
        *,
        interactive: bool,
        workdir: str | None,
    ) -> DispatchResult: ...


def get_docker_exec_cmd(
    container_name: str,
    raw_command: str,
    *,
    interactive: bool,
    workdir: str | None = None,
) -> list[str]:
    """Build the docker exec argv that runs a command line through sh."""
    cmd = ["docker", "exec"]
    if interactive:
        cmd.extend(["-i", "-t"])
    if workdir:
        cmd.extend(["-w", workdir])
    cmd.extend([container_name, "sh", "-c", raw_command])
    return cmd


def container_command(raw_command: str, container_name: str, workdir: str | None = None) -> str:
    """Render the non-interactive docker exec form of a command line for display."""
    cmd = get_docker_exec_cmd(container_name, raw_command, interactive=False, workdir=workdir)
    return shlex.join(cmd)


class DockerExecDispatcher:
    """CommandDispatcher that runs commands with docker exec."""

    def __init__(self, timeout: int = DOCKER_EXEC_TIMEOUT) -> None:
        self.timeout = timeout

    def dispatch(
        self,
        container_name: str,
        raw_command: str,
        *,
        interactive: bool,
        workdir: str | None,
    ) -> DispatchResult:
        cmd = get_docker_exec_cmd(
            container_name, raw_command, interactive=interactive, workdir=workdir
        )
        logger.debug("Dispatching to %s: %s", container_name, raw_command)
        try:
            # Interactive sessions own the terminal; nothing to capture
            result = subprocess.run(
                cmd,
                capture_output=not interactive,
                text=True,
                check=False,
                timeout=None if interactive else self.timeout,
            )
        except FileNotFoundError as e:
            raise DockerNotFoundError("Docker not found in PATH") from e
        except subprocess.TimeoutExpired as e:
            raise DockerTimeoutError(
                f"Command in {container_name} timed out after {self.timeout}s: {raw_command}"
            ) from e
        return DispatchResult(result.returncode, result.stdout or "", result.stderr or "")


def run_locally(raw_command: str) -> int:
    """Run a host-safe command line through the user's shell."""
    logger.debug("Running on host: %s", raw_command)
    # The line is shell syntax (pipes, &&); argv splitting would change its meaning
    return subprocess.run(raw_command, shell=True, check=False).returncode


@dataclass(frozen=True)
class RouteOutcome:
    """What route() decided and, for container commands, what happened."""

    decision: Decision
    ready: ReadyResult | None = None
    result: DispatchResult | None = None

    @property
    def action(self) -> Action:
        return self.decision.action


def route(
    raw_command: str,
    compiled: CompiledProfile,
    *,
    runtime: ContainerRuntime,
    dispatcher: CommandDispatcher,
    max_attempts: int,
    interactive: bool,
    policy: ClassifierPolicy = DEFAULT_POLICY,
) -> RouteOutcome:
    """Classify a command line and dispatch it if it belongs in the container.

    Raises:
        ValidationError: If the command line is empty.
        LivenessError: If the container cannot be brought up.
        DockerError: Propagated from the runtime or dispatcher.
    """
    decision = classify(raw_command, policy)
    if decision.warning:
        logger.warning("%s", decision.reason)

    if decision.action is not Action.RUN_IN_CONTAINER:
        logger.debug("%s: %s", decision.action.value, decision.reason)
        return RouteOutcome(decision)

    ready = ensure_ready(compiled.container_name, compiled, max_attempts, runtime=runtime)
    result = dispatcher.dispatch(
        compiled.container_name,
        raw_command,
        interactive=interactive,
        workdir=compiled.workdir,
    )
    return RouteOutcome(decision, ready, result)
