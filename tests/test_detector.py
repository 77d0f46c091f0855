"""Tests for nodebox.detector module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from nodebox.detector import (
    default_project_profile,
    detect_native_modules,
    detect_package_manager,
    detect_project,
)


def _write_package_json(directory: Path, data: dict) -> None:
    (directory / "package.json").write_text(json.dumps(data), encoding="utf-8")


class TestDetectPackageManager:
    """Tests for lock-file based detection."""

    @pytest.mark.parametrize(
        ("lock_file", "manager"),
        [
            ("bun.lockb", "bun"),
            ("bun.lock", "bun"),
            ("pnpm-lock.yaml", "pnpm"),
            ("yarn.lock", "yarn"),
            ("package-lock.json", "npm"),
        ],
    )
    def test_lock_files(self, tmp_path: Path, lock_file: str, manager: str) -> None:
        (tmp_path / lock_file).touch()
        assert detect_package_manager(tmp_path) == manager

    def test_default_npm(self, tmp_path: Path) -> None:
        assert detect_package_manager(tmp_path) == "npm"

    def test_first_match_wins(self, tmp_path: Path) -> None:
        (tmp_path / "yarn.lock").touch()
        (tmp_path / "pnpm-lock.yaml").touch()
        assert detect_package_manager(tmp_path) == "pnpm"


class TestDetectNativeModules:
    """Tests for native addon detection."""

    def test_finds_across_sections(self, tmp_path: Path) -> None:
        _write_package_json(
            tmp_path,
            {
                "dependencies": {"sharp": "^0.33.0", "react": "^18.0.0"},
                "devDependencies": {"bcrypt": "^5.0.0"},
                "optionalDependencies": {"fsevents": "^2.3.0"},
            },
        )
        assert detect_native_modules(tmp_path) == ["bcrypt", "fsevents", "sharp"]

    def test_no_package_json(self, tmp_path: Path) -> None:
        assert detect_native_modules(tmp_path) == []

    def test_malformed_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{oops", encoding="utf-8")
        assert detect_native_modules(tmp_path) == []

    def test_binding_gyp(self, tmp_path: Path) -> None:
        (tmp_path / "binding.gyp").write_text("{}", encoding="utf-8")
        result = detect_project(tmp_path)
        assert result.native_modules == []
        assert result.has_native_modules is True


class TestDefaultProjectProfile:
    """Tests for default_project_profile."""

    def test_dev_script(self, node_project: Path) -> None:
        profile = default_project_profile(node_project)
        assert profile.dev_command == "npm run dev"
        assert profile.package_manager == "npm"
        assert profile.container_name.endswith("-dev")
        assert profile.base_image_family is None
        assert profile.has_native_modules is False

    def test_no_dev_script_uses_start(self, tmp_path: Path) -> None:
        _write_package_json(tmp_path, {"scripts": {"start": "node server.js"}})
        (tmp_path / "yarn.lock").touch()
        profile = default_project_profile(tmp_path)
        assert profile.dev_command == "yarn start"
        assert profile.package_manager == "yarn"

    def test_native_modules_flagged(self, tmp_path: Path) -> None:
        _write_package_json(tmp_path, {"dependencies": {"better-sqlite3": "^9.0.0"}})
        assert default_project_profile(tmp_path).has_native_modules is True

    def test_container_name_from_directory(self, tmp_path: Path) -> None:
        project = tmp_path / "Shop Front"
        project.mkdir()
        assert default_project_profile(project).container_name == "shop-front-dev"
