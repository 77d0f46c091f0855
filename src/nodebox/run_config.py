"""Exec configuration dataclass for nodebox.

Bundles CLI arguments of `nodebox exec` into a single configuration object
for cleaner function signatures and easier testing.
"""

from __future__ import annotations

from dataclasses import dataclass

from .classifier import ClassifierPolicy
from .constants import DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True)
class ExecConfig:
    """Configuration for routing one command line.

    Immutable dataclass bundling all CLI arguments for the exec command.
    """

    # Project path (holds .nodebox.json)
    path: str = "."

    # Liveness recovery budget
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    # Dispatch options
    interactive: bool = False
    dry_run: bool = False

    @property
    def policy(self) -> ClassifierPolicy:
        """Classifier policy matching the dispatch mode.

        An interactive session may pass through `docker exec -it` lines.
        """
        return ClassifierPolicy(allow_interactive_dispatch=self.interactive)

    @classmethod
    def from_cli(
        cls,
        *,
        path: str = ".",
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interactive: bool = False,
        dry_run: bool = False,
    ) -> ExecConfig:
        """Create ExecConfig from CLI arguments."""
        return cls(
            path=path,
            max_attempts=max_attempts,
            interactive=interactive,
            dry_run=dry_run,
        )
