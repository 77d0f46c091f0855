"""Constants module for nodebox.

All timeout values, defaults and shared constants are defined here (SSOT).
"""

from __future__ import annotations

# === Docker Timeouts (seconds) ===
DOCKER_COMMAND_TIMEOUT = 30  # Quick docker commands (info, inspect, start)
DOCKER_BUILD_TIMEOUT = 600  # 10 min for image builds
DOCKER_EXEC_TIMEOUT = 1800  # Dispatched commands (npm install can be slow)

# === Liveness Recovery ===
DEFAULT_MAX_ATTEMPTS = 2  # One start, then one rebuild+start

# === Project Configuration ===
CONFIG_FILE_NAME = ".nodebox.json"
DEFAULT_PORT = 3000
DEFAULT_NODE_VERSION = "20"
DEFAULT_PACKAGE_MANAGER = "npm"
DEFAULT_WORKDIR = "/app"
MIN_PORT = 1
MAX_PORT = 65535

# Docker container name grammar
CONTAINER_NAME_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$"

# === Image Naming ===
IMAGE_PREFIX = "nodebox"  # Images are tagged nodebox/<container>:latest

# Build paths
BUILD_DIR = "~/.nodebox/build"  # Per-container Dockerfile directory (expandable)

# === Hook Exit Codes (Claude Code PreToolUse protocol) ===
HOOK_ALLOW = 0
HOOK_BLOCK = 2
MAX_HOOK_INPUT_BYTES = 10 * 1024 * 1024
