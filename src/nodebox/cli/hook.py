"""Claude Code PreToolUse hook.

Reads the pending tool call as JSON on stdin. Bash commands that must run in
the project container (or are refused) are blocked with exit code 2 and a
message telling the assistant which rule fired and what to run instead.
Everything else, including malformed input, is allowed (exit 0).
"""

from __future__ import annotations

import json
import os
import shlex
from pathlib import Path
from typing import Any, BinaryIO

from ..classifier import Action, classify
from ..config import load_project_profile
from ..constants import HOOK_ALLOW, HOOK_BLOCK, MAX_HOOK_INPUT_BYTES
from ..detector import default_project_profile
from ..dispatch import container_command
from ..errors import ConfigError, ValidationError
from ..logging import get_logger

logger = get_logger(__name__)


def _container_for(project_dir: Path) -> tuple[str, str]:
    """Resolve (container_name, workdir) for a project, guessing without config."""
    try:
        profile = load_project_profile(project_dir)
    except ConfigError:
        profile = default_project_profile(project_dir)
    return profile.container_name, profile.workdir


def evaluate(data: dict[str, Any]) -> tuple[int, str]:
    """Decide a hook payload.

    Returns:
        (exit_code, message). message is empty when the call is allowed.
    """
    if data.get("tool_name") != "Bash":
        return HOOK_ALLOW, ""
    tool_input = data.get("tool_input")
    command = tool_input.get("command", "") if isinstance(tool_input, dict) else ""
    if not isinstance(command, str) or not command.strip():
        return HOOK_ALLOW, ""

    try:
        decision = classify(command)
    except ValidationError:
        return HOOK_ALLOW, ""

    if decision.action is Action.RUN_LOCALLY:
        if decision.warning:
            logger.info("Allowed unrecognized command on host: %s", command)
        return HOOK_ALLOW, ""

    if decision.action is Action.REFUSE:
        return HOOK_BLOCK, f"[nodebox] Blocked: {decision.reason}. Drop -i/-t from docker exec."

    project_dir = Path(data.get("cwd") or os.getcwd())
    container_name, workdir = _container_for(project_dir)
    suggestion = container_command(command, container_name, workdir)
    return HOOK_BLOCK, (
        f"[nodebox] Blocked: {decision.reason}.\n"
        f"Run it in the container instead:\n  {suggestion}\n"
        f"or: nodebox exec {shlex.quote(command)}"
    )


def run_hook(stream: BinaryIO) -> tuple[int, str]:
    """Read a hook payload from a binary stream and evaluate it."""
    raw = stream.read(MAX_HOOK_INPUT_BYTES + 1)
    if len(raw) > MAX_HOOK_INPUT_BYTES:
        logger.warning("Hook input exceeds %d bytes; allowing", MAX_HOOK_INPUT_BYTES)
        return HOOK_ALLOW, ""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Malformed hook input (%s); allowing", e)
        return HOOK_ALLOW, ""
    if not isinstance(data, dict):
        return HOOK_ALLOW, ""
    return evaluate(data)
