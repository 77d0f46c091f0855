"""Pytest configuration and fixtures for nodebox tests.

Puts src/ on sys.path so the package is importable without installation,
and provides a fake container runtime for liveness tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add src directory to path for development testing
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from nodebox.config import ProjectProfile  # noqa: E402
from nodebox.profile import CompiledProfile, select_profile  # noqa: E402
from nodebox.supervisor import ContainerStatus  # noqa: E402


class FakeRuntime:
    """Scripted ContainerRuntime.

    statuses are returned by successive query_status calls; the last one
    repeats once the script runs out.
    """

    def __init__(
        self,
        statuses: list[ContainerStatus],
        *,
        start_results: list[bool] | None = None,
        build_results: list[bool] | None = None,
    ) -> None:
        self.statuses = list(statuses)
        self.start_results = list(start_results or [])
        self.build_results = list(build_results or [])
        self.calls: list[str] = []

    def query_status(self, container_name: str) -> ContainerStatus:
        self.calls.append("query")
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def start(self, container_name: str) -> bool:
        self.calls.append("start")
        return self.start_results.pop(0) if self.start_results else True

    def build(self, container_name: str, compiled: CompiledProfile) -> bool:
        self.calls.append("build")
        return self.build_results.pop(0) if self.build_results else True

    @property
    def side_effects(self) -> list[str]:
        return [c for c in self.calls if c != "query"]


@pytest.fixture
def declared() -> ProjectProfile:
    return ProjectProfile(container_name="shop-dev", port=3000)


@pytest.fixture
def compiled(declared: ProjectProfile) -> CompiledProfile:
    return select_profile(declared)


@pytest.fixture
def node_project(tmp_path: Path) -> Path:
    """A minimal npm project with a dev script."""
    (tmp_path / "package.json").write_text(
        '{"name": "shop", "scripts": {"dev": "vite"}, "dependencies": {"react": "^18.0.0"}}',
        encoding="utf-8",
    )
    (tmp_path / "package-lock.json").write_text("{}", encoding="utf-8")
    return tmp_path
