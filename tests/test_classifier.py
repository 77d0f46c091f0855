"""Tests for nodebox.classifier module."""

from __future__ import annotations

import pytest

from nodebox.classifier import (
    DENYLIST,
    WHITELIST,
    Action,
    ClassifierPolicy,
    CommandRequest,
    Rule,
    classify,
    classify_request,
    classify_segment,
    requests_tty,
)
from nodebox.errors import ValidationError


class TestDenylist:
    """Denylisted programs go to the container whatever their arguments."""

    @pytest.mark.parametrize("program", sorted(DENYLIST))
    def test_every_denylisted_program(self, program: str) -> None:
        decision = classify(f"{program} --version")
        assert decision.action is Action.RUN_IN_CONTAINER
        assert decision.programs == (program,)
        assert decision.requires_container

    @pytest.mark.parametrize(
        "command",
        [
            "npm install",
            "npm install left-pad --save-dev",
            "npx create-react-app web",
            "node",
            "'npm' ci",
            "yarn add react@18",
        ],
    )
    def test_arguments_do_not_matter(self, command: str) -> None:
        assert classify(command).action is Action.RUN_IN_CONTAINER

    def test_reason_names_program(self) -> None:
        decision = classify("npm install")
        assert "npm" in decision.reason
        assert "container" in decision.reason

    def test_match_is_exact(self) -> None:
        """A denylisted prefix is not a match."""
        decision = classify("npminstall")
        assert decision.action is Action.RUN_LOCALLY
        assert decision.warning

    def test_match_is_case_sensitive(self) -> None:
        assert classify("NPM install").action is Action.RUN_LOCALLY


class TestWhitelist:
    """Whitelisted programs run on the host without a warning."""

    @pytest.mark.parametrize("program", ["git", "gh", "code", "vim", "ls", "rm", "grep", "cd"])
    def test_host_safe(self, program: str) -> None:
        decision = classify(f"{program} something")
        assert decision.action is Action.RUN_LOCALLY
        assert decision.warning is False

    def test_plain_docker_is_host_safe(self) -> None:
        decision = classify("docker ps -a")
        assert decision.action is Action.RUN_LOCALLY
        assert decision.segments[0].rule is Rule.WHITELIST

    def test_tables_are_disjoint(self) -> None:
        assert not DENYLIST & WHITELIST


class TestUnknown:
    """Unknown programs fail open with a warning."""

    def test_unknown_runs_locally_with_warning(self) -> None:
        decision = classify("make build")
        assert decision.action is Action.RUN_LOCALLY
        assert decision.warning is True
        assert "make" in decision.reason
        assert decision.segments[0].rule is Rule.UNKNOWN

    @pytest.mark.parametrize(
        "command",
        ["/usr/bin/npm install", "./node_modules/.bin/tsx a.ts", "~/.bun/bin/bun test"],
    )
    def test_path_qualified_program_uses_its_name(self, command: str) -> None:
        decision = classify(command)
        assert decision.action is Action.RUN_IN_CONTAINER
        assert decision.warning is False
        assert "/" not in decision.programs[0]

    def test_path_qualified_name_still_exact(self) -> None:
        decision = classify("./bin/npm-helper")
        assert decision.action is Action.RUN_LOCALLY
        assert decision.warning is True

    def test_path_qualified_dispatch_wrapper(self) -> None:
        assert classify("/usr/bin/docker exec -it shop-dev sh").action is Action.REFUSE

    def test_unknown_does_not_mask_container_decision(self) -> None:
        decision = classify("make build && npm test")
        assert decision.action is Action.RUN_IN_CONTAINER
        assert decision.warning is True


class TestSegments:
    """Control operators split the line; the most restrictive segment wins."""

    @pytest.mark.parametrize(
        "command",
        [
            "git pull && npm install",
            "git pull || npm install",
            "git pull; npm install",
            "cat package.json | node -e 'process.exit(0)'",
            "ls & npm test",
            "(cd web && npm ci)",
            "{ npm test; }",
            "git pull\nnpm install",
            "echo $(npm -v)",
            "echo `node -v`",
        ],
    )
    def test_denylisted_segment_wins(self, command: str) -> None:
        assert classify(command).action is Action.RUN_IN_CONTAINER

    def test_segments_recorded(self) -> None:
        decision = classify("git status && npm test | tee out.log")
        assert [s.program for s in decision.segments] == ["git", "npm", "tee"]
        assert [s.action for s in decision.segments] == [
            Action.RUN_LOCALLY,
            Action.RUN_IN_CONTAINER,
            Action.RUN_LOCALLY,
        ]

    def test_programs_deduplicated_in_order(self) -> None:
        decision = classify("npm ci && node build.js && npm test")
        assert decision.programs == ("npm", "node")

    def test_redirection_stays_in_segment(self) -> None:
        decision = classify("ls > out.txt 2>&1")
        assert len(decision.segments) == 1
        assert decision.action is Action.RUN_LOCALLY
        assert decision.warning is False

    def test_comment_ignored(self) -> None:
        decision = classify("git status # then npm install")
        assert decision.action is Action.RUN_LOCALLY

    def test_refuse_beats_container(self) -> None:
        decision = classify("npm test; docker exec -it web sh")
        assert decision.action is Action.REFUSE
        assert decision.refused


class TestProgramName:
    """Assignments and launchers are skipped to find the program."""

    @pytest.mark.parametrize(
        "command",
        [
            "NODE_ENV=production node server.js",
            "sudo npm install -g pnpm",
            "sudo -u node npm ci",
            "env NODE_OPTIONS=--max-old-space-size=4096 npm run build",
            "time npm test",
            "nice -n 5 node bench.js",
            "nohup node server.js",
        ],
    )
    def test_skipped_prefixes(self, command: str) -> None:
        assert classify(command).action is Action.RUN_IN_CONTAINER

    def test_assignment_only(self) -> None:
        decision = classify("FOO=1")
        assert decision.action is Action.RUN_LOCALLY
        assert decision.segments[0].program is None
        assert decision.warning is False


class TestDispatchWrapper:
    """docker exec lines are already routed and never re-classified."""

    @pytest.mark.parametrize(
        "command",
        [
            "docker exec shop-dev npm install",
            "docker exec -w /app shop-dev sh -c 'npm test'",
            "docker exec -e CI=1 shop-dev npm test",
            "docker compose exec web npm run lint",
            "docker-compose exec -T web node -v",
        ],
    )
    def test_non_interactive_wrapper_runs_locally(self, command: str) -> None:
        decision = classify(command)
        assert decision.action is Action.RUN_LOCALLY
        assert decision.segments[0].rule is Rule.DISPATCH_WRAPPER
        assert decision.programs == ()

    @pytest.mark.parametrize(
        "command",
        [
            "docker exec -it shop-dev sh",
            "docker exec -i shop-dev npm test",
            "docker exec -t shop-dev npm test",
            "docker exec -ti shop-dev bash",
            "docker exec --interactive --tty shop-dev bash",
            "docker exec -w /app -it shop-dev bash",
            "docker compose exec -it web sh",
        ],
    )
    def test_tty_wrapper_refused(self, command: str) -> None:
        decision = classify(command)
        assert decision.action is Action.REFUSE
        assert decision.segments[0].rule is Rule.INTERACTIVE_DISPATCH
        assert "-i/-t" in decision.reason

    def test_tty_wrapper_allowed_by_policy(self) -> None:
        policy = ClassifierPolicy(allow_interactive_dispatch=True)
        decision = classify("docker exec -it shop-dev bash", policy)
        assert decision.action is Action.RUN_LOCALLY


class TestRequestsTty:
    """Tests for requests_tty option parsing."""

    @pytest.mark.parametrize(
        ("args", "expected"),
        [
            (["-it", "web", "sh"], True),
            (["-dit", "web", "sh"], True),
            (["--tty=true", "web"], True),
            (["--tty=false", "web"], False),
            (["-w", "/it", "web", "sh"], False),
            (["-u", "node", "web", "-it"], False),
            (["web", "sh", "-c", "ls -it"], False),
            (["-d", "web", "npm", "start"], False),
        ],
    )
    def test_requests_tty(self, args: list[str], expected: bool) -> None:
        assert requests_tty(args) is expected


class TestEdgeCases:
    """Empty input, quoting, purity."""

    @pytest.mark.parametrize("command", ["", "   ", "\n"])
    def test_empty_rejected(self, command: str) -> None:
        with pytest.raises(ValidationError):
            classify(command)

    def test_only_operators_rejected(self) -> None:
        with pytest.raises(ValidationError):
            classify(";")

    def test_unbalanced_quote_warns(self) -> None:
        decision = classify("echo 'npm install")
        assert decision.action is Action.RUN_LOCALLY
        assert decision.warning is True
        assert "unbalanced" in decision.reason

    def test_unbalanced_quote_still_catches_denylist(self) -> None:
        decision = classify("npm install 'left-pad")
        assert decision.action is Action.RUN_IN_CONTAINER
        assert decision.warning is True

    def test_idempotent(self) -> None:
        command = "git pull && npm ci && make build"
        assert classify(command) == classify(command)

    def test_custom_policy_tables(self) -> None:
        policy = ClassifierPolicy(denylist=frozenset({"make"}), whitelist=frozenset())
        assert classify("make build", policy).action is Action.RUN_IN_CONTAINER
        assert classify("npm test", policy).warning is True

    def test_classify_segment_direct(self) -> None:
        segment = classify_segment(["npm", "test"])
        assert segment.text == "npm test"
        assert segment.rule is Rule.DENYLIST


class TestClassifyRequest:
    """Tests for classify_request."""

    def test_sets_resolved_action(self) -> None:
        request = CommandRequest("npm install")
        resolved, decision = classify_request(request)
        assert request.resolved_action is None
        assert resolved.resolved_action is Action.RUN_IN_CONTAINER
        assert resolved.raw_command == "npm install"
        assert decision.action is resolved.resolved_action
