"""Environment profile selection.

Resolves a declared ProjectProfile into a CompiledProfile: the base image
family actually used, the concrete image tags, and the OS package bootstrap
the family needs. Pure functions only; nothing here touches Docker.

Decision tree:
    native modules          -> slim (forced, even over a declared alpine)
    no native modules, unset -> alpine
    otherwise               -> declared family
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .config import BaseImageFamily, ProjectProfile, get_image_name
from .constants import CONTAINER_NAME_PATTERN, MAX_PORT, MIN_PORT
from .errors import InvalidConfiguration

# OS packages every dev container needs, per family
BOOTSTRAP_PACKAGES: dict[BaseImageFamily, tuple[str, ...]] = {
    BaseImageFamily.ALPINE: ("bash", "git", "curl", "ca-certificates", "libc6-compat"),
    BaseImageFamily.SLIM: ("git", "curl", "ca-certificates", "procps"),
    BaseImageFamily.FULL: ("procps",),
}

# Toolchain node-gyp needs to compile native addons
NATIVE_BUILD_PACKAGES: dict[BaseImageFamily, tuple[str, ...]] = {
    BaseImageFamily.ALPINE: ("python3", "make", "g++"),
    BaseImageFamily.SLIM: ("python3", "make", "g++"),
    BaseImageFamily.FULL: ("python3", "make", "g++"),
}

# Dependency install command per package manager (run at image build time)
INSTALL_COMMANDS: dict[str, str] = {
    "npm": "npm install",
    "yarn": "corepack enable && yarn install",
    "pnpm": "corepack enable && pnpm install",
    "bun": "npm install -g bun && bun install",
}

_CONTAINER_NAME_RE = re.compile(CONTAINER_NAME_PATTERN)


@dataclass(frozen=True)
class CompiledProfile:
    """Resolved, invariant-enforced configuration derived from a ProjectProfile."""

    declared: ProjectProfile
    base_image_family: BaseImageFamily
    base_image: str
    image_name: str
    was_overridden: bool
    bootstrap_packages: tuple[str, ...]
    bootstrap_command: str
    install_command: str

    @property
    def container_name(self) -> str:
        return self.declared.container_name

    @property
    def port(self) -> int:
        return self.declared.port

    @property
    def dev_command(self) -> str:
        return self.declared.dev_command

    @property
    def workdir(self) -> str:
        return self.declared.workdir


def validate_profile(declared: ProjectProfile) -> None:
    """Check the values select_profile depends on.

    Raises:
        InvalidConfiguration: Naming the offending field and value.
    """
    port = declared.port
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidConfiguration(f"port must be an integer, got {port!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidConfiguration(f"port {port} is outside the valid range {MIN_PORT}-{MAX_PORT}")

    if not _CONTAINER_NAME_RE.match(declared.container_name or ""):
        raise InvalidConfiguration(
            f"containerName '{declared.container_name}' is not a valid Docker container name"
        )

    if not declared.dev_command or not declared.dev_command.strip():
        raise InvalidConfiguration("devCommand cannot be empty")

    if declared.package_manager not in INSTALL_COMMANDS:
        raise InvalidConfiguration(f"Unknown package manager '{declared.package_manager}'")


def resolve_family(declared: ProjectProfile) -> tuple[BaseImageFamily, bool]:
    """Choose the base image family.

    Returns:
        (family, was_overridden). An unset family is defaulted, not overridden.
    """
    if declared.has_native_modules:
        family = BaseImageFamily.SLIM
        overridden = declared.base_image_family not in (None, BaseImageFamily.SLIM)
        return family, overridden

    if declared.base_image_family is None:
        return BaseImageFamily.ALPINE, False
    return declared.base_image_family, False


def get_base_image(family: BaseImageFamily, node_version: str) -> str:
    """Get the official Node.js image tag for a family."""
    if family is BaseImageFamily.FULL:
        return f"node:{node_version}"
    return f"node:{node_version}-{family.value}"


def get_bootstrap_packages(family: BaseImageFamily, has_native_modules: bool) -> tuple[str, ...]:
    """Get the OS packages to install for a family, in install order."""
    packages = list(BOOTSTRAP_PACKAGES[family])
    if has_native_modules:
        packages.extend(p for p in NATIVE_BUILD_PACKAGES[family] if p not in packages)
    return tuple(packages)


def get_bootstrap_command(family: BaseImageFamily, packages: tuple[str, ...]) -> str:
    """Render the package-manager command that installs the bootstrap packages."""
    joined = " ".join(packages)
    if family is BaseImageFamily.ALPINE:
        return f"apk add --no-cache {joined}"
    return (
        "apt-get update && apt-get install -y --no-install-recommends "
        f"{joined} && rm -rf /var/lib/apt/lists/*"
    )


def select_profile(declared: ProjectProfile) -> CompiledProfile:
    """Compile a declared ProjectProfile.

    Native modules force the slim family (musl breaks prebuilt addons);
    was_overridden records when that replaced a declared family.

    Raises:
        InvalidConfiguration: If the profile fails validation.
    """
    validate_profile(declared)

    family, overridden = resolve_family(declared)
    packages = get_bootstrap_packages(family, declared.has_native_modules)

    return CompiledProfile(
        declared=declared,
        base_image_family=family,
        base_image=get_base_image(family, declared.node_version),
        image_name=get_image_name(declared.container_name),
        was_overridden=overridden,
        bootstrap_packages=packages,
        bootstrap_command=get_bootstrap_command(family, packages),
        install_command=INSTALL_COMMANDS[declared.package_manager],
    )
