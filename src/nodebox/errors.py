"""Unified exception hierarchy for nodebox.

All custom exceptions inherit from NodeboxError for consistent error handling.
CLI catches these and converts them to user-facing messages and exit codes.

Dependency direction:
    This module has NO internal dependencies (leaf module).
    It may be imported by: all other nodebox modules.
    It should NOT import from any other nodebox modules.
"""

from __future__ import annotations


class NodeboxError(Exception):
    """Base exception for all nodebox errors."""


class ConfigError(NodeboxError):
    """Project configuration could not be loaded.

    Examples:
        - Missing .nodebox.json
        - Malformed JSON
        - Unknown or wrongly typed keys
    """


class InvalidConfiguration(ConfigError):
    """A ProjectProfile carries a value the engine refuses to compile.

    Surfaced immediately to the caller, never retried.

    Examples:
        - Port outside 1-65535
        - Container name Docker would reject
        - Empty dev command
    """


class ValidationError(NodeboxError):
    """Input validation errors.

    Examples:
        - Empty command line
        - Negative recovery budget
    """


class DockerError(NodeboxError):
    """Docker operation errors.

    Base class for all Docker-related exceptions.
    """


class DockerNotFoundError(DockerError):
    """Raised when Docker is not installed or not in PATH."""


class DockerTimeoutError(DockerError):
    """Raised when a Docker operation times out."""


class ImageBuildError(DockerError):
    """Raised when Docker image build fails."""


class ContainerError(DockerError):
    """Raised when container operations fail."""
