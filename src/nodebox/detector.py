"""Project detection for automatic profile defaults."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from .config import DEV_COMMANDS, ProjectProfile, get_container_name
from .constants import DEFAULT_PACKAGE_MANAGER, DEFAULT_PORT
from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class DetectionResult:
    """Result of project detection."""

    package_manager: str
    native_modules: list[str] = field(default_factory=list)
    has_binding_gyp: bool = False
    has_dev_script: bool = False

    @property
    def has_native_modules(self) -> bool:
        return bool(self.native_modules) or self.has_binding_gyp


# Lock file -> package manager (checked in order; first match wins)
LOCK_FILES: list[tuple[str, str]] = [
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
    ("npm-shrinkwrap.json", "npm"),
]

# Packages that compile a native addon (node-gyp / prebuild) on install
NATIVE_PACKAGES = frozenset(
    {
        "argon2",
        "bcrypt",
        "better-sqlite3",
        "bufferutil",
        "canvas",
        "cpu-features",
        "deasync",
        "fsevents",
        "grpc",
        "isolated-vm",
        "leveldown",
        "node-gyp",
        "node-pty",
        "node-sass",
        "re2",
        "sharp",
        "sqlite3",
        "utf-8-validate",
        "zeromq",
    }
)

_DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "peerDependencies",
)


def detect_package_manager(directory: Path) -> str:
    """Detect the package manager from lock files (npm if none)."""
    for filename, manager in LOCK_FILES:
        if (directory / filename).exists():
            return manager
    return DEFAULT_PACKAGE_MANAGER


def _read_package_json(directory: Path) -> dict:
    package_json = directory / "package.json"
    if not package_json.exists():
        return {}
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Cannot read %s: %s", package_json, e)
        return {}
    return data if isinstance(data, dict) else {}


def detect_native_modules(directory: Path) -> list[str]:
    """List known native-addon packages declared in package.json."""
    data = _read_package_json(directory)
    found: set[str] = set()
    for section in _DEPENDENCY_SECTIONS:
        deps = data.get(section)
        if isinstance(deps, dict):
            found.update(name for name in deps if name in NATIVE_PACKAGES)
    return sorted(found)


def detect_project(directory: Path) -> DetectionResult:
    """Detect package manager and native-module usage for a project."""
    scripts = _read_package_json(directory).get("scripts")
    return DetectionResult(
        package_manager=detect_package_manager(directory),
        native_modules=detect_native_modules(directory),
        has_binding_gyp=(directory / "binding.gyp").exists(),
        has_dev_script=isinstance(scripts, dict) and "dev" in scripts,
    )


def default_project_profile(directory: Path) -> ProjectProfile:
    """Build a ProjectProfile from what can be detected in a project directory.

    The family is left unset so the profile selector applies its decision tree.
    """
    detection = detect_project(directory)
    manager = detection.package_manager
    if detection.has_dev_script:
        dev_command = DEV_COMMANDS[manager]
    else:
        dev_command = "npm start" if manager == "npm" else f"{manager} start"

    return ProjectProfile(
        container_name=get_container_name(directory.resolve().name),
        port=DEFAULT_PORT,
        has_native_modules=detection.has_native_modules,
        dev_command=dev_command,
        package_manager=manager,
    )
