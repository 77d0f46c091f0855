"""Project configuration for nodebox.

A project declares its container environment in ``.nodebox.json``::

    {
      "containerName": "shop-dev",
      "baseImage": "node:20-slim",
      "port": 3000,
      "hasNativeModules": true,
      "devCommand": "npm run dev"
    }

The file is parsed into an immutable ProjectProfile. Unknown keys and wrongly
typed values are rejected here, before the policy engine sees the profile.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .constants import (
    CONFIG_FILE_NAME,
    DEFAULT_NODE_VERSION,
    DEFAULT_PACKAGE_MANAGER,
    DEFAULT_PORT,
    DEFAULT_WORKDIR,
    IMAGE_PREFIX,
)
from .errors import ConfigError


class BaseImageFamily(str, Enum):
    """Node.js base image families.

    ALPINE is the smallest but uses musl, which breaks most prebuilt native addons.
    """

    ALPINE = "alpine"  # node:<ver>-alpine (~50MB)
    SLIM = "slim"  # node:<ver>-slim, Debian (~80MB)
    FULL = "full"  # node:<ver>, Debian with build tools (~350MB)


# Family descriptions for CLI output (sizes are estimates)
FAMILY_INFO: dict[BaseImageFamily, tuple[str, int]] = {
    BaseImageFamily.ALPINE: ("musl, smallest; no native addons", 50),
    BaseImageFamily.SLIM: ("Debian slim; native addons via build toolchain", 80),
    BaseImageFamily.FULL: ("Debian full; maximum compatibility", 350),
}

PACKAGE_MANAGERS = frozenset({"npm", "yarn", "pnpm", "bun"})

# Default dev command per package manager
DEV_COMMANDS: dict[str, str] = {
    "npm": "npm run dev",
    "yarn": "yarn dev",
    "pnpm": "pnpm dev",
    "bun": "bun run dev",
}


@dataclass(frozen=True)
class ProjectProfile:
    """Declared facts about a project's container environment.

    Constructed once per project and treated as immutable for the session.
    env_file, additional_volumes and build_args are passed through to Docker
    untouched; no policy decision reads them.
    """

    container_name: str
    port: int = DEFAULT_PORT
    base_image_family: BaseImageFamily | None = None
    has_native_modules: bool = False
    dev_command: str = DEV_COMMANDS[DEFAULT_PACKAGE_MANAGER]
    env_file: str | None = None
    additional_volumes: tuple[str, ...] = ()
    build_args: dict[str, str] = field(default_factory=dict)
    node_version: str = DEFAULT_NODE_VERSION
    package_manager: str = DEFAULT_PACKAGE_MANAGER
    workdir: str = DEFAULT_WORKDIR


# camelCase key -> (field name, accepted types)
_FIELDS: dict[str, tuple[str, tuple[type, ...]]] = {
    "containerName": ("container_name", (str,)),
    "baseImage": ("base_image_family", (str,)),
    "port": ("port", (int,)),
    "hasNativeModules": ("has_native_modules", (bool,)),
    "devCommand": ("dev_command", (str,)),
    "envFile": ("env_file", (str,)),
    "additionalVolumes": ("additional_volumes", (list,)),
    "buildArgs": ("build_args", (dict,)),
    "nodeVersion": ("node_version", (str,)),
    "packageManager": ("package_manager", (str,)),
    "workdir": ("workdir", (str,)),
}

_IMAGE_TAG_RE = re.compile(r"^node:(?P<version>[\w.]+?)(?:-(?P<variant>[\w.-]+))?$")


def get_config_path(project_dir: Path) -> Path:
    """Get the path to a project's config file."""
    return project_dir / CONFIG_FILE_NAME


def parse_base_image(value: str) -> tuple[BaseImageFamily, str | None]:
    """Parse a baseImage value into a family and an optional Node version.

    Accepts a bare family name (``slim``) or an official tag (``node:20-alpine``,
    ``node:20-bookworm-slim``, ``node:20``).

    Raises:
        ConfigError: If the value names no known family.
    """
    value = value.strip()
    try:
        return BaseImageFamily(value.lower()), None
    except ValueError:
        pass

    match = _IMAGE_TAG_RE.match(value)
    if not match:
        raise ConfigError(
            f"Unrecognized baseImage '{value}' (use alpine, slim, full or node:<ver>-<family>)"
        )

    version = match.group("version")
    variant = match.group("variant") or ""
    if not variant or variant in ("bookworm", "bullseye", "buster"):
        return BaseImageFamily.FULL, version
    if variant.startswith("alpine"):
        return BaseImageFamily.ALPINE, version
    if variant.endswith("slim"):
        return BaseImageFamily.SLIM, version
    raise ConfigError(f"Unrecognized baseImage variant '{variant}' in '{value}'")


def profile_from_dict(data: dict[str, Any]) -> ProjectProfile:
    """Build a ProjectProfile from the camelCase config mapping.

    Raises:
        ConfigError: On unknown keys, wrong types, or a missing containerName.
    """
    unknown = sorted(set(data) - set(_FIELDS))
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    if "containerName" not in data:
        raise ConfigError("Missing required config key: containerName")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name, types = _FIELDS[key]
        if value is None and name in ("env_file", "base_image_family"):
            continue
        # bool is an int subclass; "port": true is a mistake, not port 1
        if not isinstance(value, types) or (name == "port" and isinstance(value, bool)):
            expected = " or ".join(t.__name__ for t in types)
            raise ConfigError(f"Config key '{key}' must be {expected}, got {type(value).__name__}")
        kwargs[name] = value

    if "base_image_family" in kwargs:
        family, version = parse_base_image(kwargs["base_image_family"])
        kwargs["base_image_family"] = family
        if version and "node_version" not in kwargs:
            kwargs["node_version"] = version

    if "additional_volumes" in kwargs:
        volumes = kwargs["additional_volumes"]
        if not all(isinstance(v, str) for v in volumes):
            raise ConfigError("Config key 'additionalVolumes' must be a list of strings")
        kwargs["additional_volumes"] = tuple(volumes)

    if "build_args" in kwargs:
        args = kwargs["build_args"]
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in args.items()):
            raise ConfigError("Config key 'buildArgs' must map strings to strings")
        kwargs["build_args"] = dict(args)

    manager = kwargs.get("package_manager")
    if manager is not None and manager not in PACKAGE_MANAGERS:
        raise ConfigError(
            f"Unknown packageManager '{manager}' (known: {', '.join(sorted(PACKAGE_MANAGERS))})"
        )

    return ProjectProfile(**kwargs)


def profile_to_dict(profile: ProjectProfile) -> dict[str, Any]:
    """Serialize a ProjectProfile to the camelCase config mapping."""
    data: dict[str, Any] = {
        "containerName": profile.container_name,
        "port": profile.port,
        "hasNativeModules": profile.has_native_modules,
        "devCommand": profile.dev_command,
        "nodeVersion": profile.node_version,
        "packageManager": profile.package_manager,
        "workdir": profile.workdir,
    }
    if profile.base_image_family is not None:
        data["baseImage"] = profile.base_image_family.value
    if profile.env_file:
        data["envFile"] = profile.env_file
    if profile.additional_volumes:
        data["additionalVolumes"] = list(profile.additional_volumes)
    if profile.build_args:
        data["buildArgs"] = dict(profile.build_args)
    return data


def load_project_profile(project_dir: Path) -> ProjectProfile:
    """Load a project's ProjectProfile from its .nodebox.json.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    config_path = get_config_path(project_dir)
    if not config_path.exists():
        raise ConfigError(f"No {CONFIG_FILE_NAME} in {project_dir} (run 'nodebox init')")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")
    return profile_from_dict(data)


def save_project_profile(profile: ProjectProfile, project_dir: Path) -> Path:
    """Write a ProjectProfile to the project's .nodebox.json."""
    config_path = get_config_path(project_dir)
    config_path.write_text(
        json.dumps(profile_to_dict(profile), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    return config_path


def get_container_name(project_name: str) -> str:
    """Get a Docker-safe container name for a project directory."""
    # ASCII only: Docker rejects non-ASCII letters in container names
    safe_name = "".join(
        c if (c.isascii() and c.isalnum()) or c in "-_" else "-" for c in project_name.lower()
    )
    safe_name = safe_name.strip("-_") or "project"
    return f"{safe_name}-dev"


def get_image_name(container_name: str) -> str:
    """Get the Docker image tag built for a container."""
    return f"{IMAGE_PREFIX}/{container_name.lower()}:latest"
