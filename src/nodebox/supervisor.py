"""Container liveness supervision.

Before a container-required command is dispatched, ensure_ready() checks the
project container and, if it is not running, walks a bounded recovery
sequence:

    Unknown --query--> Running                      -> ready, no side effects
                       Exited  --start--> Running   -> ready
                       Exited  --start--> (still down) --rebuild+start--> ...
                       Absent  --rebuild+start--> Running -> ready

The next step is chosen by plan_recovery(), a pure function of the observed
state and the remaining budget, so the bound is testable with a fake runtime.
Recovery never exceeds max_attempts and is serialized per container name.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from .errors import ContainerError, ValidationError
from .logging import get_logger

if TYPE_CHECKING:
    from .profile import CompiledProfile

logger = get_logger(__name__)


class ContainerStatus(str, Enum):
    """Observed container state (never cached across checks)."""

    UNKNOWN = "unknown"
    RUNNING = "running"
    EXITED = "exited"
    ABSENT = "absent"


class RecoveryAction(str, Enum):
    """Next step chosen by plan_recovery()."""

    READY = "ready"
    START = "start"
    REBUILD = "rebuild"
    GIVE_UP = "give-up"


class LivenessFailure(str, Enum):
    """Reason codes carried by LivenessError."""

    CANNOT_START = "CannotStart"


class ContainerRuntime(Protocol):
    """Query/control operations on the container runtime.

    All three may block for a long time and may fail; failures are reported
    as False (start/build) or by raising a DockerError.
    """

    def query_status(self, container_name: str) -> ContainerStatus: ...

    def start(self, container_name: str) -> bool: ...

    def build(self, container_name: str, compiled: CompiledProfile) -> bool: ...


@dataclass(frozen=True)
class RecoveryAttempt:
    """One recovery step and what was observed after it."""

    number: int
    action: RecoveryAction
    succeeded: bool
    observed: ContainerStatus


@dataclass(frozen=True)
class ReadyResult:
    """Successful outcome of ensure_ready()."""

    container_name: str
    already_running: bool
    attempts_made: int = 0
    attempts: tuple[RecoveryAttempt, ...] = ()


class LivenessError(ContainerError):
    """Container could not be brought to Running within the recovery budget."""

    def __init__(
        self,
        container_name: str,
        last_observed: ContainerStatus,
        attempts_made: int,
        attempts: tuple[RecoveryAttempt, ...] = (),
        reason: LivenessFailure = LivenessFailure.CANNOT_START,
    ) -> None:
        self.container_name = container_name
        self.reason = reason
        self.last_observed = last_observed
        self.attempts_made = attempts_made
        self.attempts = attempts
        steps = ", ".join(f"{a.action.value}->{a.observed.value}" for a in attempts) or "none"
        super().__init__(
            f"Container '{container_name}' cannot start ({reason.value}): "
            f"last state {last_observed.value} after {attempts_made} recovery attempt(s) "
            f"[{steps}]"
        )


def plan_recovery(
    status: ContainerStatus,
    attempts_made: int,
    max_attempts: int,
    start_tried: bool,
) -> RecoveryAction:
    """Choose the next recovery step.

    A plain start is tried at most once and only for an exited container;
    everything else that is not running needs a rebuild.
    """
    if status is ContainerStatus.RUNNING:
        return RecoveryAction.READY
    if attempts_made >= max_attempts:
        return RecoveryAction.GIVE_UP
    if status is ContainerStatus.EXITED and not start_tried:
        return RecoveryAction.START
    return RecoveryAction.REBUILD


@dataclass
class _LockEntry:
    """Single-flight lock for one container and how many callers hold or wait on it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


_locks: dict[str, _LockEntry] = {}
_locks_guard = threading.Lock()


@contextmanager
def _recovery_lock(container_name: str) -> Iterator[None]:
    """Serialize liveness checks and recovery for one container name.

    An entry lives only while someone holds or waits on it.
    """
    with _locks_guard:
        entry = _locks.setdefault(container_name, _LockEntry())
        entry.users += 1
    try:
        with entry.lock:
            yield
    finally:
        with _locks_guard:
            entry.users -= 1
            if entry.users == 0:
                del _locks[container_name]


def _perform(
    action: RecoveryAction,
    container_name: str,
    compiled: CompiledProfile,
    runtime: ContainerRuntime,
) -> bool:
    """Issue one recovery action to the runtime."""
    if action is RecoveryAction.START:
        return runtime.start(container_name)

    if not runtime.build(container_name, compiled):
        logger.warning("Rebuild of %s failed; skipping start", container_name)
        return False
    return runtime.start(container_name)


def ensure_ready(
    container_name: str,
    compiled: CompiledProfile,
    max_attempts: int,
    *,
    runtime: ContainerRuntime,
) -> ReadyResult:
    """Make sure a container is running before dispatch.

    Args:
        container_name: Container to check.
        compiled: Profile used if the container has to be rebuilt.
        max_attempts: Total recovery attempts allowed (start and rebuild each count one).
        runtime: Container runtime collaborator.

    Returns:
        ReadyResult describing whether recovery was needed.

    Raises:
        LivenessError: If the container is still not running once the budget is spent.
        ValidationError: If max_attempts is negative.
        DockerError: Propagated from the runtime.
    """
    if max_attempts < 0:
        raise ValidationError(f"max_attempts must be >= 0, got {max_attempts}")

    with _recovery_lock(container_name):
        status = runtime.query_status(container_name)
        logger.debug("Container %s is %s", container_name, status.value)

        if status is ContainerStatus.RUNNING:
            return ReadyResult(container_name=container_name, already_running=True)

        attempts: list[RecoveryAttempt] = []
        start_tried = False
        while True:
            action = plan_recovery(status, len(attempts), max_attempts, start_tried)
            if action is RecoveryAction.READY:
                logger.info(
                    "Container %s running after %d recovery attempt(s)",
                    container_name,
                    len(attempts),
                )
                return ReadyResult(
                    container_name=container_name,
                    already_running=False,
                    attempts_made=len(attempts),
                    attempts=tuple(attempts),
                )
            if action is RecoveryAction.GIVE_UP:
                logger.error(
                    "Container %s still %s after %d recovery attempt(s)",
                    container_name,
                    status.value,
                    len(attempts),
                )
                raise LivenessError(container_name, status, len(attempts), tuple(attempts))

            number = len(attempts) + 1
            logger.info(
                "Recovery attempt %d/%d for %s (%s): %s",
                number,
                max_attempts,
                container_name,
                status.value,
                action.value,
            )
            if action is RecoveryAction.START:
                start_tried = True
            succeeded = _perform(action, container_name, compiled, runtime)
            status = runtime.query_status(container_name)
            attempts.append(RecoveryAttempt(number, action, succeeded, status))
            logger.info(
                "Recovery attempt %d %s: %s is now %s",
                number,
                "succeeded" if succeeded else "failed",
                container_name,
                status.value,
            )
