"""Pytest configuration and shared fixtures."""

from dataclasses import replace
from pathlib import Path

import pytest

from pkgscout.discovery import (
    MANAGER_HANDLERS,
    CommonPath,
    HandlerRegistry,
    PackageDiscovery,
)
from pkgscout.utils import PathCache
from tests.helpers.probes import FakeProbe


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch) -> Path:
    """Point PATH and HOME at empty temporary directories."""
    bin_dir = tmp_path / "bin"
    home = tmp_path / "home"
    bin_dir.mkdir()
    home.mkdir()
    monkeypatch.setenv("PATH", str(bin_dir))
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("PKGSCOUT_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    return tmp_path


@pytest.fixture
def registry(isolated_env: Path) -> HandlerRegistry:
    """Default handlers with one common path per manager under the temp dir."""
    handlers = {
        manager: replace(
            handler,
            common_paths=(
                CommonPath(
                    str(isolated_env / "opt" / manager.value / "bin" / handler.executable_name)
                ),
            ),
        )
        for manager, handler in MANAGER_HANDLERS.items()
    }
    return HandlerRegistry(handlers)


@pytest.fixture
def cache() -> PathCache:
    return PathCache()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def discovery(cache: PathCache, registry: HandlerRegistry, probe: FakeProbe) -> PackageDiscovery:
    return PackageDiscovery(
        cache=cache,
        registry=registry,
        probe=probe,
        platform="linux",
        custom_path_loader=lambda config_file: {},
    )
