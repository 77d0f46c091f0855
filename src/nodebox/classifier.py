"""Command classification: host-safe, container-required, or refused.

A command line is split on shell control operators into segments. Each
segment's program name is looked up in static tables:

    denylist            -> RunInContainer (package managers, Node runtimes)
    whitelist           -> RunLocally (version control, editors, file ops)
    dispatch wrapper    -> RunLocally, or Refuse if it asks for a TTY
    anything else       -> RunLocally with the warning flag set

Unknown programs fail open; only the known set fails closed. The line takes
the most restrictive segment decision.

Usage:
    from nodebox.classifier import classify

    decision = classify("npm install left-pad")
    decision.action  # Action.RUN_IN_CONTAINER
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import PurePosixPath

from .errors import ValidationError

# Package managers and runtimes that must never run on the host
DENYLIST: frozenset[str] = frozenset(
    {
        # npm
        "npm",
        "npx",
        # yarn
        "yarn",
        "yarnpkg",
        # pnpm
        "pnpm",
        "pnpx",
        # bun
        "bun",
        "bunx",
        # runtimes
        "node",
        "nodejs",
        "deno",
        "corepack",
        "ts-node",
        "tsx",
        "nodemon",
    }
)

# Programs that are explicitly safe on the host
WHITELIST: frozenset[str] = frozenset(
    {
        # version control
        "git",
        "gh",
        # editors
        "code",
        "vim",
        "vi",
        "nvim",
        "nano",
        "emacs",
        # file operations and inspection
        "ls",
        "cat",
        "cp",
        "mv",
        "rm",
        "mkdir",
        "rmdir",
        "touch",
        "chmod",
        "chown",
        "ln",
        "find",
        "grep",
        "rg",
        "head",
        "tail",
        "less",
        "more",
        "wc",
        "diff",
        "sort",
        "echo",
        "pwd",
        "cd",
        "tree",
        "stat",
        "file",
        "which",
        # container tooling
        "docker",
        "docker-compose",
    }
)

# Prefixes that launch the next word as the real program
LAUNCHERS: frozenset[str] = frozenset({"sudo", "env", "time", "nice", "nohup", "command", "exec"})

# Tokens that end one command and start another
CONTROL_OPERATORS: frozenset[str] = frozenset({"|", "||", "&", "&&", ";", ";;", "|&", "{", "}"})

# Characters shlex groups into punctuation tokens
_PUNCTUATION = frozenset("();<>|&")

# docker exec options that consume the following token
_EXEC_VALUE_OPTIONS: frozenset[str] = frozenset(
    {"-e", "--env", "--env-file", "-u", "--user", "-w", "--workdir", "--detach-keys"}
)


class Action(str, Enum):
    """Routing decision for a command line."""

    RUN_LOCALLY = "RunLocally"
    RUN_IN_CONTAINER = "RunInContainer"
    REFUSE = "Refuse"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY: dict[Action, int] = {
    Action.RUN_LOCALLY: 0,
    Action.RUN_IN_CONTAINER: 1,
    Action.REFUSE: 2,
}


class Origin(str, Enum):
    """Where a command request comes from."""

    HOST_INITIATED = "host-initiated"


class Rule(str, Enum):
    """Which table or policy produced a segment decision."""

    DENYLIST = "denylist"
    WHITELIST = "whitelist"
    DISPATCH_WRAPPER = "dispatch-wrapper"
    INTERACTIVE_DISPATCH = "interactive-dispatch"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifierPolicy:
    """Static tables and switches the classifier consults."""

    denylist: frozenset[str] = DENYLIST
    whitelist: frozenset[str] = WHITELIST
    allow_interactive_dispatch: bool = False


DEFAULT_POLICY = ClassifierPolicy()


@dataclass(frozen=True)
class SegmentDecision:
    """Decision for one command between control operators."""

    text: str
    program: str | None
    action: Action
    rule: Rule


@dataclass(frozen=True)
class Decision:
    """Result of classifying a full command line."""

    action: Action
    reason: str
    programs: tuple[str, ...] = ()
    warning: bool = False
    segments: tuple[SegmentDecision, ...] = field(default=(), repr=False)

    @property
    def requires_container(self) -> bool:
        return self.action is Action.RUN_IN_CONTAINER

    @property
    def refused(self) -> bool:
        return self.action is Action.REFUSE


@dataclass(frozen=True)
class CommandRequest:
    """One host-initiated command awaiting a routing decision."""

    raw_command: str
    origin: Origin = Origin.HOST_INITIATED
    resolved_action: Action | None = None


def _tokenize(raw_command: str) -> tuple[list[str], bool]:
    """Split a command line into words and control operators.

    Returns:
        (tokens, clean). clean is False when quoting was unbalanced and the
        line was split on whitespace instead.
    """
    tokens: list[str] = []
    clean = True
    # Each line is its own command list; '#' comments end at the newline
    for line in raw_command.splitlines():
        lexer = shlex.shlex(line, posix=True, punctuation_chars=True)
        lexer.whitespace_split = True
        try:
            tokens.extend(list(lexer))
        except ValueError:
            tokens.extend(line.split())
            clean = False
        tokens.append(";")
    return tokens, clean


def _is_separator(token: str) -> bool:
    """Check whether a token ends the current command.

    Punctuation runs such as ";(" arrive as one token. Redirections (">", "2>&1",
    ">|") stay inside the command.
    """
    if token in CONTROL_OPERATORS:
        return True
    if not token or not set(token) <= _PUNCTUATION:
        return False
    if "(" in token or ")" in token or ";" in token:
        return True
    return "|" in token and not token.startswith(">")


def _split_segments(tokens: list[str]) -> list[list[str]]:
    """Group tokens into commands, dropping the operators between them."""
    segments: list[list[str]] = []
    current: list[str] = []

    def close() -> None:
        nonlocal current
        if current:
            segments.append(current)
        current = []

    for token in tokens:
        if _is_separator(token):
            close()
            continue
        # "$" precedes "(" in a command substitution
        if token == "$":
            continue
        # backquoted substitution: `npm -v`
        if token.startswith("`"):
            close()
            token = token[1:]
        closes = token.endswith("`")
        token = token.rstrip("`")
        if token:
            current.append(token)
        if closes:
            close()
    close()
    return segments


def _program_index(words: list[str]) -> int | None:
    """Find the index of the program word, skipping assignments and launchers."""
    index = 0
    while index < len(words):
        word = words[index]
        if "=" in word and not word.startswith("=") and word.split("=", 1)[0].isidentifier():
            index += 1
            continue
        if word in LAUNCHERS:
            index += 1
            # launcher flags such as `sudo -u node` or `nice -n 5`
            while index < len(words) and words[index].startswith("-"):
                flag = words[index]
                index += 1
                if flag in ("-u", "-g", "-n", "-C") and index < len(words):
                    index += 1
            continue
        return index
    return None


def _program_name(word: str) -> str:
    """Strip the directory from a path-qualified program: /usr/bin/npm -> npm."""
    return PurePosixPath(word).name if "/" in word else word


def _exec_args(words: list[str], program_index: int) -> list[str] | None:
    """Return the arguments after `exec` if the words form a dispatch wrapper."""
    program = _program_name(words[program_index])
    rest = words[program_index + 1 :]
    if program == "docker" and rest[:1] == ["exec"]:
        return rest[1:]
    if program == "docker" and rest[:2] == ["compose", "exec"]:
        return rest[2:]
    if program == "docker-compose" and rest[:1] == ["exec"]:
        return rest[1:]
    return None


def requests_tty(exec_args: list[str]) -> bool:
    """Check whether docker exec options ask for an interactive terminal."""
    index = 0
    while index < len(exec_args):
        arg = exec_args[index]
        index += 1
        if not arg.startswith("-") or arg == "--":
            # first positional is the container name
            return False
        if arg.startswith("--"):
            if arg in ("--interactive", "--tty") or arg.startswith(("--interactive=", "--tty=")):
                return not arg.endswith("=false")
            if arg in _EXEC_VALUE_OPTIONS:
                index += 1
            continue
        # short flags may be combined: -it, -dit, -ti, -w/app
        flags = arg[1:]
        for pos, char in enumerate(flags):
            if char in "it":
                return True
            if char in "euw":
                if pos == len(flags) - 1:
                    index += 1
                break
    return False


def classify_segment(
    words: list[str], policy: ClassifierPolicy = DEFAULT_POLICY
) -> SegmentDecision:
    """Classify a single command (no control operators)."""
    text = " ".join(words)
    index = _program_index(words)
    if index is None:
        # Only assignments: `FOO=1` changes the shell, runs nothing
        return SegmentDecision(text, None, Action.RUN_LOCALLY, Rule.WHITELIST)

    program = _program_name(words[index])
    exec_args = _exec_args(words, index)
    if exec_args is not None:
        if requests_tty(exec_args) and not policy.allow_interactive_dispatch:
            return SegmentDecision(text, program, Action.REFUSE, Rule.INTERACTIVE_DISPATCH)
        return SegmentDecision(text, program, Action.RUN_LOCALLY, Rule.DISPATCH_WRAPPER)

    if program in policy.denylist:
        return SegmentDecision(text, program, Action.RUN_IN_CONTAINER, Rule.DENYLIST)
    if program in policy.whitelist:
        return SegmentDecision(text, program, Action.RUN_LOCALLY, Rule.WHITELIST)
    return SegmentDecision(text, program, Action.RUN_LOCALLY, Rule.UNKNOWN)


def _reason(worst: SegmentDecision, programs: tuple[str, ...], clean: bool) -> str:
    if worst.rule is Rule.INTERACTIVE_DISPATCH:
        return (
            f"'{worst.text}' requests an interactive terminal (-i/-t); "
            "automated dispatch must not allocate a TTY"
        )
    if worst.rule is Rule.DENYLIST:
        return f"'{', '.join(programs)}' must run inside the project container (denylisted program)"
    if worst.rule is Rule.UNKNOWN:
        return f"unrecognized program '{worst.program}'; allowed on host by default"
    if not clean:
        return "unbalanced quoting; classified by whitespace split"
    if worst.rule is Rule.DISPATCH_WRAPPER:
        return "already dispatched into a container"
    return "host-safe command"


def classify(raw_command: str, policy: ClassifierPolicy = DEFAULT_POLICY) -> Decision:
    """Classify a raw command line.

    Args:
        raw_command: The literal command line requested.
        policy: Tables and switches to apply.

    Returns:
        The most restrictive decision across all segments of the line.

    Raises:
        ValidationError: If the command line is empty.
    """
    if not raw_command or not raw_command.strip():
        raise ValidationError("Command cannot be empty")

    tokens, clean = _tokenize(raw_command)
    segments = tuple(classify_segment(words, policy) for words in _split_segments(tokens))
    if not segments:
        # Nothing but operators, e.g. ";"
        raise ValidationError(f"No command found in '{raw_command}'")

    worst = segments[0]
    for segment in segments[1:]:
        if segment.action.severity > worst.action.severity:
            worst = segment

    programs = tuple(
        dict.fromkeys(s.program for s in segments if s.rule is Rule.DENYLIST and s.program)
    )
    unknown = [s for s in segments if s.rule is Rule.UNKNOWN]
    warning = bool(unknown) or not clean
    if worst.action is Action.RUN_LOCALLY and unknown:
        worst = unknown[0]

    return Decision(
        action=worst.action,
        reason=_reason(worst, programs, clean),
        programs=programs,
        warning=warning,
        segments=segments,
    )


def classify_request(
    request: CommandRequest, policy: ClassifierPolicy = DEFAULT_POLICY
) -> tuple[CommandRequest, Decision]:
    """Classify a CommandRequest, returning a copy with resolved_action set."""
    decision = classify(request.raw_command, policy)
    return replace(request, resolved_action=decision.action), decision

