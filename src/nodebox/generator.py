"""Docker file generation for nodebox."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from .constants import BUILD_DIR

if TYPE_CHECKING:
    from .profile import CompiledProfile

# Dependency manifests copied before install so the layer caches across source edits
DEPENDENCY_FILES = (
    "package.json",
    "package-lock.json",
    "npm-shrinkwrap.json",
    "yarn.lock",
    ".yarnrc.yml",
    "pnpm-lock.yaml",
    "pnpm-workspace.yaml",
    "bun.lockb",
    "bun.lock",
    ".npmrc",
)


def get_build_dir(container_name: str) -> Path:
    """Get the directory holding a container's generated Dockerfile."""
    return Path(os.path.expanduser(BUILD_DIR)) / container_name


def generate_dockerfile(compiled: CompiledProfile, project_dir: Path) -> str:
    """Generate the project Dockerfile.

    Args:
        compiled: Resolved profile (base image, bootstrap, install command).
        project_dir: Project directory, checked for dependency manifests.

    Returns:
        Dockerfile content as string.
    """
    declared = compiled.declared
    lines = [
        "# syntax=docker/dockerfile:1",
        f"# {compiled.image_name} - {compiled.base_image_family.value} family",
        f"FROM {compiled.base_image}",
        "",
        f'LABEL org.opencontainers.image.title="{compiled.image_name}"',
        "",
    ]

    # build args are declared so `docker build --build-arg` can reach RUN steps
    for key in sorted(declared.build_args):
        lines.append(f"ARG {key}")
    if declared.build_args:
        lines.append("")

    lines.extend(
        [
            "# System packages",
            f"RUN {compiled.bootstrap_command}",
            "",
            f"WORKDIR {compiled.workdir}",
            "",
        ]
    )

    existing = [f for f in DEPENDENCY_FILES if (project_dir / f).exists()]
    if existing:
        lines.append("# Copy dependency files")
        lines.append(f"COPY {' '.join(existing)} ./")
        if "package.json" in existing:
            lines.append("")
            lines.append("# Install dependencies")
            lines.append(f"RUN {compiled.install_command}")
        lines.append("")

    lines.extend(
        [
            "# Dev servers must listen on all interfaces to be reachable from the host",
            "ENV HOST=0.0.0.0",
            f"ENV PORT={compiled.port}",
            f"EXPOSE {compiled.port}",
            "",
            f'CMD ["sh", "-c", "{_escape_json(compiled.dev_command)}"]',
            "",
        ]
    )
    return "\n".join(lines)


def _escape_json(value: str) -> str:
    """Escape a string for a Dockerfile exec-form (JSON array) argument."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def write_build_files(compiled: CompiledProfile, project_dir: Path) -> Path:
    """Write the Dockerfile to the container's build directory."""
    build_dir = get_build_dir(compiled.container_name)
    build_dir.mkdir(parents=True, exist_ok=True)

    # Unix line endings regardless of host OS
    with open(build_dir / "Dockerfile", "w", encoding="utf-8", newline="\n") as f:
        f.write(generate_dockerfile(compiled, project_dir))

    return build_dir


def _build_mount_args(compiled: CompiledProfile, project_dir: Path) -> list[str]:
    """Build volume arguments for docker create.

    The anonymous node_modules volume keeps the image's Linux build of
    dependencies from being shadowed by the host bind mount.
    """
    workdir = compiled.workdir
    args = [
        "-v",
        f"{project_dir.resolve().as_posix()}:{workdir}:rw",
        "-v",
        f"{workdir}/node_modules",
    ]
    for volume in compiled.declared.additional_volumes:
        args.extend(["-v", volume])
    return args


def get_docker_create_cmd(compiled: CompiledProfile, project_dir: Path) -> list[str]:
    """Generate the docker create command for the project container.

    The container runs the dev command as its long-lived process; package and
    script commands reach it later through docker exec.
    """
    declared = compiled.declared
    cmd = [
        "docker",
        "create",
        "--name",
        compiled.container_name,
        "--label",
        "nodebox.managed=true",
        "-p",
        f"{compiled.port}:{compiled.port}",
        "-w",
        compiled.workdir,
    ]
    cmd.extend(_build_mount_args(compiled, project_dir))

    if declared.env_file:
        env_path = Path(declared.env_file)
        if not env_path.is_absolute():
            env_path = project_dir / env_path
        cmd.extend(["--env-file", str(env_path)])

    cmd.extend([compiled.image_name, "sh", "-c", compiled.dev_command])
    return cmd
