"""Tests for nodebox.profile module."""

from __future__ import annotations

import pytest

from nodebox.config import BaseImageFamily, ProjectProfile
from nodebox.errors import ConfigError, InvalidConfiguration
from nodebox.profile import (
    BOOTSTRAP_PACKAGES,
    get_base_image,
    get_bootstrap_command,
    resolve_family,
    select_profile,
)


def _profile(**kwargs) -> ProjectProfile:
    kwargs.setdefault("container_name", "shop-dev")
    return ProjectProfile(**kwargs)


class TestFamilySelection:
    """Decision tree for the base image family."""

    def test_native_modules_override_alpine(self) -> None:
        compiled = select_profile(
            _profile(has_native_modules=True, base_image_family=BaseImageFamily.ALPINE)
        )
        assert compiled.base_image_family is BaseImageFamily.SLIM
        assert compiled.was_overridden is True

    def test_native_modules_override_full(self) -> None:
        compiled = select_profile(
            _profile(has_native_modules=True, base_image_family=BaseImageFamily.FULL)
        )
        assert compiled.base_image_family is BaseImageFamily.SLIM
        assert compiled.was_overridden is True

    def test_native_modules_declared_slim_not_overridden(self) -> None:
        compiled = select_profile(
            _profile(has_native_modules=True, base_image_family=BaseImageFamily.SLIM)
        )
        assert compiled.base_image_family is BaseImageFamily.SLIM
        assert compiled.was_overridden is False

    def test_native_modules_unset_family_not_overridden(self) -> None:
        compiled = select_profile(_profile(has_native_modules=True))
        assert compiled.base_image_family is BaseImageFamily.SLIM
        assert compiled.was_overridden is False

    def test_unset_family_defaults_to_alpine(self) -> None:
        compiled = select_profile(_profile())
        assert compiled.base_image_family is BaseImageFamily.ALPINE
        assert compiled.was_overridden is False

    @pytest.mark.parametrize("family", list(BaseImageFamily))
    def test_declared_family_kept_without_native_modules(self, family: BaseImageFamily) -> None:
        compiled = select_profile(_profile(base_image_family=family))
        assert compiled.base_image_family is family
        assert compiled.was_overridden is False

    def test_resolve_family_direct(self) -> None:
        assert resolve_family(_profile()) == (BaseImageFamily.ALPINE, False)


class TestCompiledProfile:
    """Tests for the derived fields."""

    def test_fields(self) -> None:
        declared = _profile(port=5173, dev_command="vite --host", node_version="22")
        compiled = select_profile(declared)
        assert compiled.declared is declared
        assert compiled.container_name == "shop-dev"
        assert compiled.port == 5173
        assert compiled.dev_command == "vite --host"
        assert compiled.workdir == "/app"
        assert compiled.base_image == "node:22-alpine"
        assert compiled.image_name == "nodebox/shop-dev:latest"
        assert compiled.install_command == "npm install"

    def test_alpine_bootstrap(self) -> None:
        compiled = select_profile(_profile())
        assert compiled.bootstrap_packages == BOOTSTRAP_PACKAGES[BaseImageFamily.ALPINE]
        assert compiled.bootstrap_command.startswith("apk add --no-cache ")
        assert "libc6-compat" in compiled.bootstrap_command

    def test_native_toolchain_added(self) -> None:
        compiled = select_profile(_profile(has_native_modules=True))
        for package in ("python3", "make", "g++"):
            assert package in compiled.bootstrap_packages
        assert compiled.bootstrap_command.startswith("apt-get update && apt-get install -y")
        assert compiled.bootstrap_command.endswith("rm -rf /var/lib/apt/lists/*")

    def test_full_image_tag(self) -> None:
        assert get_base_image(BaseImageFamily.FULL, "20") == "node:20"
        assert get_base_image(BaseImageFamily.SLIM, "20") == "node:20-slim"

    def test_bootstrap_command_debian(self) -> None:
        command = get_bootstrap_command(BaseImageFamily.FULL, ("procps",))
        assert "--no-install-recommends procps &&" in command

    def test_install_command_per_manager(self) -> None:
        compiled = select_profile(_profile(package_manager="pnpm", dev_command="pnpm dev"))
        assert compiled.install_command == "corepack enable && pnpm install"

    def test_deterministic(self) -> None:
        declared = _profile(has_native_modules=True)
        assert select_profile(declared) == select_profile(declared)


class TestValidation:
    """Invalid profiles raise InvalidConfiguration."""

    @pytest.mark.parametrize("port", [0, -1, 65536, 100000])
    def test_port_out_of_range(self, port: int) -> None:
        with pytest.raises(InvalidConfiguration, match=str(port)):
            select_profile(_profile(port=port))

    @pytest.mark.parametrize("port", [1, 3000, 65535])
    def test_port_bounds_accepted(self, port: int) -> None:
        assert select_profile(_profile(port=port)).port == port

    def test_port_bool_rejected(self) -> None:
        with pytest.raises(InvalidConfiguration):
            select_profile(_profile(port=True))

    def test_port_string_rejected(self) -> None:
        with pytest.raises(InvalidConfiguration):
            select_profile(_profile(port="3000"))

    @pytest.mark.parametrize("name", ["", "-dev", "my app", "shop/dev"])
    def test_bad_container_name(self, name: str) -> None:
        with pytest.raises(InvalidConfiguration):
            select_profile(_profile(container_name=name))

    def test_empty_dev_command(self) -> None:
        with pytest.raises(InvalidConfiguration, match="devCommand"):
            select_profile(_profile(dev_command="  "))

    def test_unknown_package_manager(self) -> None:
        with pytest.raises(InvalidConfiguration):
            select_profile(_profile(package_manager="cargo"))

    def test_is_config_error(self) -> None:
        with pytest.raises(ConfigError):
            select_profile(_profile(port=0))
