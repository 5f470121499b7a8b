"""Unit tests for the discovery orchestrator."""

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import pytest

from pkgscout.config import DiscoverySettings
from pkgscout.discovery import (
    HandlerRegistry,
    ListCommand,
    PackageDiscovery,
    TieredResolver,
    build_default_registry,
)
from pkgscout.models import (
    DiscoveryMethod,
    ListingProgress,
    ManagerState,
    PackageManagerId,
    UninstallOptions,
)
from pkgscout.utils import CommandResult, PathCache
from tests.helpers.probes import FakeProbe, fail, make_executable, ok


def _common_path(registry, manager: PackageManagerId) -> str:
    return registry[manager].common_paths[0].path


def _only(*programs, stdout="1.0.0"):
    """Responder succeeding only for the given programs."""
    return lambda argv: ok(stdout) if argv[0] in programs else fail()


def _raise(exc):
    """Responder whose probe raises instead of returning a result."""

    def responder(argv):
        raise exc

    return responder


class TestDiscoverAvailableManagers:
    """Test concurrent resolution across the catalog."""

    @pytest.mark.asyncio
    async def test_one_status_per_registered_manager(self, discovery, probe):
        statuses = await discovery.discover_available_managers()

        assert [s.manager for s in statuses] == list(PackageManagerId)

    @pytest.mark.asyncio
    async def test_all_probes_fail(self, discovery, probe):
        """Nothing installed yields not_installed everywhere."""
        statuses = await discovery.discover_available_managers()

        for status in statuses:
            assert status.status == ManagerState.NOT_INSTALLED
            assert status.in_path is False
            assert status.discovery_method is None
            assert status.message is None

    @pytest.mark.asyncio
    async def test_status_fields_are_consistent(self, discovery, probe, registry):
        pipx_path = make_executable(Path(_common_path(registry, PackageManagerId.PIPX)))
        probe.responder = _only("brew", "npm", str(pipx_path))

        statuses = {s.manager: s for s in await discovery.discover_available_managers()}

        assert statuses[PackageManagerId.BREW].status == ManagerState.AVAILABLE
        assert statuses[PackageManagerId.NPM].status == ManagerState.AVAILABLE
        assert statuses[PackageManagerId.PIPX].status == ManagerState.PATH_MISSING
        for status in statuses.values():
            if status.status == ManagerState.AVAILABLE:
                assert status.in_path
                assert status.discovery_method in (
                    DiscoveryMethod.DIRECT_COMMAND,
                    DiscoveryMethod.PATH_SCAN,
                )
            elif status.status == ManagerState.PATH_MISSING:
                assert not status.in_path
                assert "not in PATH" in status.message
            else:
                assert status.discovery_method is None

    @pytest.mark.asyncio
    async def test_failing_manager_is_isolated(self, discovery, probe):
        """A resolution that raises only affects its own manager."""

        def responder(argv):
            if argv[0] == "conda":
                raise RuntimeError("probe exploded")
            return ok() if argv[0] == "npm" else fail()

        probe.responder = responder

        statuses = {s.manager: s for s in await discovery.discover_available_managers()}

        assert len(statuses) == len(PackageManagerId)
        assert statuses[PackageManagerId.CONDA].status == ManagerState.NOT_INSTALLED
        assert statuses[PackageManagerId.NPM].status == ManagerState.AVAILABLE

    @pytest.mark.asyncio
    async def test_failed_resolution_not_cached(self, discovery, probe, cache):
        probe.responder = _raise(RuntimeError("boom"))

        await discovery.discover_available_managers()

        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_managers_resolve_concurrently(self, discovery, probe):
        in_flight = 0
        peak = 0

        async def slow_probe(argv, timeout_ms=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return fail()

        discovery.resolver.probe = slow_probe

        await discovery.discover_available_managers()

        assert peak > 1
        # Each manager has at most one probe in flight
        assert peak <= len(PackageManagerId)


class TestCaching:
    """Test status caching."""

    @pytest.mark.asyncio
    async def test_cached_status_runs_no_probes(self, discovery, probe):
        probe.responder = _only("brew")
        first = await discovery.get_manager_status("brew")
        calls = len(probe.calls)

        second = await discovery.get_manager_status("brew")

        assert second == first
        assert len(probe.calls) == calls

    @pytest.mark.asyncio
    async def test_probe_count_bounded_by_candidates(self, discovery, probe, registry, isolated_env):
        """Within one TTL window a manager is probed at most once per candidate."""
        make_executable(isolated_env / "bin" / "gem")
        make_executable(Path(_common_path(registry, PackageManagerId.GEM)))

        for _ in range(3):
            await discovery.get_manager_status(PackageManagerId.GEM)
        await discovery.discover_available_managers()

        gem_calls = [c for c in probe.calls if c[0].endswith("gem")]
        # direct command, one PATH hit, one common path
        assert len(gem_calls) == 3

    @pytest.mark.asyncio
    async def test_clear_cache_forces_reprobe(self, discovery, probe):
        await discovery.get_manager_status("pyenv")
        calls = len(probe.calls)

        discovery.clear_cache()
        discovery.clear_cache()
        await discovery.get_manager_status("pyenv")

        assert len(probe.calls) == calls * 2

    @pytest.mark.asyncio
    async def test_expired_entry_reprobes(self, registry, probe, isolated_env):
        now = [0.0]
        cache = PathCache(default_ttl=300.0, clock=lambda: now[0])
        discovery = PackageDiscovery(cache=cache, registry=registry, probe=probe, platform="linux")

        await discovery.get_manager_status("npm")
        calls = len(probe.calls)

        now[0] = 299.0
        await discovery.get_manager_status("npm")
        assert len(probe.calls) == calls

        now[0] = 301.0
        await discovery.get_manager_status("npm")
        assert len(probe.calls) == calls * 2


class TestGetManagerStatus:
    @pytest.mark.asyncio
    async def test_unknown_manager(self, discovery, probe):
        status = await discovery.get_manager_status("apt")

        assert status.status == ManagerState.NOT_INSTALLED
        assert status.manager == "apt"
        assert "Unsupported" in status.message
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_brew_found_at_apple_silicon_location(self, isolated_env):
        """brew missing from PATH but installed at /opt/homebrew on macOS."""
        brew_path = "/opt/homebrew/bin/brew"
        probe = FakeProbe(_only(brew_path, stdout="Homebrew 4.2.5"))
        discovery = PackageDiscovery(
            cache=PathCache(),
            registry=build_default_registry(),
            probe=probe,
            platform="macos",
            custom_path_loader=lambda config_file: {},
        )

        with patch.object(TieredResolver, "_exists", lambda self, path: path == brew_path):
            status = await discovery.get_manager_status(PackageManagerId.BREW)

        assert status.status == ManagerState.PATH_MISSING
        assert status.in_path is False
        assert status.discovery_method == DiscoveryMethod.COMMON_PATH
        assert status.path == brew_path
        assert status.version == "4.2.5"
        assert "not in PATH" in status.message
        assert "/opt/homebrew/bin" in status.message

    @pytest.mark.asyncio
    async def test_resolution_error_becomes_not_installed(self, discovery, probe):
        probe.responder = _raise(OSError("broken"))

        status = await discovery.get_manager_status("cargo")

        assert status.status == ManagerState.NOT_INSTALLED

    def test_registered_managers(self, discovery):
        assert discovery.get_registered_managers() == list(PackageManagerId)
        assert discovery.get_handler("gem").display_name == "RubyGems"
        assert discovery.get_handler("apt") is None


class TestListPackages:
    """Test package listing."""

    @pytest.mark.asyncio
    async def test_list_uses_resolved_path(self, discovery, probe, registry):
        pip_path = str(make_executable(Path(_common_path(registry, PackageManagerId.PIP))))
        listing = json.dumps([{"name": "requests", "version": "2.31.0"}])

        def responder(argv):
            if argv[0] != pip_path:
                return fail()
            if argv[1:] == ["--version"]:
                return ok("pip 24.0 from /x")
            return ok(listing)

        probe.responder = responder

        packages = await discovery.list_packages("pip")

        assert [(p.name, p.version) for p in packages] == [("requests", "2.31.0")]
        assert [pip_path, "list", "--format=json"] in probe.calls
        list_index = probe.calls.index([pip_path, "list", "--format=json"])
        assert probe.timeouts[list_index] == discovery.settings.list_timeout_ms

    @pytest.mark.asyncio
    async def test_not_installed_lists_nothing(self, discovery, probe):
        assert await discovery.list_packages("cargo") == []
        assert all(call[1:] == ["--version"] for call in probe.calls)

    @pytest.mark.asyncio
    async def test_unknown_manager_lists_nothing(self, discovery):
        assert await discovery.list_packages("apt") == []

    @pytest.mark.asyncio
    async def test_brew_lists_formulae_and_casks(self, discovery, probe):
        def responder(argv):
            if argv == ["brew", "--version"]:
                return ok("Homebrew 4.2.5")
            if argv == ["brew", "list", "--versions"]:
                return ok("git 2.44.0\n")
            if argv == ["brew", "list", "--cask", "--versions"]:
                return ok("firefox 124.0\n")
            return fail()

        probe.responder = responder

        packages = await discovery.list_packages(PackageManagerId.BREW)

        assert [(p.name, p.location) for p in packages] == [
            ("git", "formula"),
            ("firefox", "cask"),
        ]

    @pytest.mark.asyncio
    async def test_nonzero_exit_with_listing_is_parsed(self, discovery, probe):
        """npm exits non-zero on peer dependency problems but still prints JSON."""
        listing = json.dumps({"dependencies": {"typescript": {"version": "5.3.3"}}})

        def responder(argv):
            if argv == ["npm", "--version"]:
                return ok("10.2.4")
            if argv[0] == "npm":
                return CommandResult(success=False, stdout=listing, stderr="ERR! peer", exit_code=1)
            return fail()

        probe.responder = responder

        packages = await discovery.list_packages("npm")

        assert [p.name for p in packages] == ["typescript"]

    @pytest.mark.asyncio
    async def test_conda_error_object_yields_empty(self, discovery, probe):
        """A missing conda environment prints an error object and exits non-zero."""
        error = json.dumps(
            {"caused_by": "None", "error": "EnvironmentLocationNotFound: Not a conda environment"},
            indent=2,
        )

        def responder(argv):
            if argv == ["conda", "--version"]:
                return ok("conda 24.1.2")
            if argv[0] == "conda":
                return CommandResult(success=False, stdout=error, exit_code=1)
            return fail()

        probe.responder = responder

        assert await discovery.list_packages("conda") == []

    @pytest.mark.asyncio
    async def test_failed_list_command_yields_empty(self, discovery, probe):
        probe.responder = lambda argv: ok("cargo 1.76.0") if argv[1:] == ["--version"] else fail()

        assert await discovery.list_packages("cargo") == []

    @pytest.mark.asyncio
    async def test_parser_error_yields_empty(self, registry, probe, cache):
        def broken_parser(output):
            raise ValueError("bad output")

        gem = registry[PackageManagerId.GEM]
        handlers = dict(registry)
        handlers[PackageManagerId.GEM] = replace(
            gem,
            list_commands=(ListCommand(gem.list_commands[0].command, broken_parser),),
        )
        discovery = PackageDiscovery(
            cache=cache, registry=HandlerRegistry(handlers), probe=probe, platform="linux"
        )
        probe.responder = _only("gem")

        assert await discovery.list_packages("gem") == []



class TestListAllPackages:
    """Test cross-manager listing and progress reporting."""

    @staticmethod
    def _responder(argv):
        if argv[1:] == ["--version"]:
            return ok("1.0.0") if argv[0] in ("pyenv", "cargo", "gem") else fail()
        if argv[0] == "pyenv":
            return ok("3.12.2\n3.11.7\n")
        if argv[0] == "cargo":
            return ok("ripgrep v14.1.0:\n    rg\n")
        if argv[0] == "gem":
            raise RuntimeError("gem listing crashed")
        return fail()

    @pytest.mark.asyncio
    async def test_aggregates_installed_managers(self, discovery, probe):
        probe.responder = self._responder

        packages = await discovery.list_all_packages()

        assert [(p.manager, p.version) for p in packages] == [
            (PackageManagerId.CARGO, "14.1.0"),
            (PackageManagerId.PYENV, "3.12.2"),
            (PackageManagerId.PYENV, "3.11.7"),
        ]

    @pytest.mark.asyncio
    async def test_progress_events(self, discovery, probe):
        probe.responder = self._responder
        events = []

        await discovery.list_all_packages(lambda m, p: events.append((m, p)))

        for manager in (PackageManagerId.PYENV, PackageManagerId.CARGO, PackageManagerId.GEM):
            manager_events = [p for m, p in events if m == manager]
            assert manager_events[0] == ListingProgress.STARTED
            assert len(manager_events) == 2
        assert (PackageManagerId.GEM, ListingProgress.FAILED) in events
        assert (PackageManagerId.PYENV, ListingProgress.COMPLETED) in events
        assert all(m not in (PackageManagerId.BREW, PackageManagerId.NPM) for m, _ in events)

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, discovery, probe):
        probe.responder = self._responder
        events = []

        async def on_progress(manager, progress):
            events.append((manager, progress))

        await discovery.list_all_packages(on_progress)

        assert (PackageManagerId.CARGO, ListingProgress.COMPLETED) in events

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_break_listing(self, discovery, probe):
        probe.responder = self._responder

        def on_progress(manager, progress):
            raise RuntimeError("ui went away")

        packages = await discovery.list_all_packages(on_progress)

        assert len(packages) == 3


class TestUninstallPackage:
    """Test package removal."""

    @pytest.mark.asyncio
    async def test_uninstall_success(self, discovery, probe):
        probe.responder = _only("brew")

        assert await discovery.uninstall_package("wget", "brew") is True
        assert probe.calls[-1] == ["brew", "uninstall", "wget"]
        assert probe.timeouts[-1] == discovery.settings.uninstall_timeout_ms

    @pytest.mark.asyncio
    async def test_uninstall_force(self, discovery, probe):
        probe.responder = _only("brew")

        await discovery.uninstall_package("wget", "brew", UninstallOptions(force=True))

        assert probe.calls[-1] == ["brew", "uninstall", "wget", "--force"]

    @pytest.mark.asyncio
    async def test_uninstall_uses_off_path_executable(self, discovery, probe, registry):
        pyenv_path = str(make_executable(Path(_common_path(registry, PackageManagerId.PYENV))))
        probe.responder = _only(pyenv_path)

        assert await discovery.uninstall_package("3.11.7", "pyenv") is True
        assert probe.calls[-1] == [pyenv_path, "uninstall", "-f", "3.11.7"]

    @pytest.mark.asyncio
    async def test_command_failure(self, discovery, probe):
        def responder(argv):
            if argv == ["npm", "--version"]:
                return ok("10.2.4")
            return fail("npm ERR! not installed", exit_code=1)

        probe.responder = responder

        assert await discovery.uninstall_package("left-pad", "npm") is False

    @pytest.mark.asyncio
    async def test_unknown_manager(self, discovery, probe):
        assert await discovery.uninstall_package("wget", "apt") is False
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_not_installed_manager(self, discovery, probe):
        assert await discovery.uninstall_package("ripgrep", "cargo") is False
        assert all(call[1:] == ["--version"] for call in probe.calls)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "--all", "-g"])
    async def test_invalid_names_rejected(self, discovery, probe, name):
        probe.responder = _only("brew")

        assert await discovery.uninstall_package(name, "brew") is False
        assert not any("uninstall" in call for call in probe.calls)

    @pytest.mark.asyncio
    async def test_probe_exception(self, discovery, probe):
        def responder(argv):
            if argv[1:] == ["--version"]:
                return ok()
            raise RuntimeError("spawn failed")

        probe.responder = responder

        assert await discovery.uninstall_package("black", "pipx") is False


class TestLoadCustomConfig:
    """Test reloading of custom executable paths."""

    @pytest.mark.asyncio
    async def test_new_paths_take_effect_and_clear_cache(self, registry, probe, isolated_env):
        custom = make_executable(isolated_env / "custom" / "composer")
        loaded = {PackageManagerId.COMPOSER: [str(custom)]}
        cache = PathCache()
        discovery = PackageDiscovery(
            cache=cache,
            registry=registry,
            probe=probe,
            platform="linux",
            custom_path_loader=lambda config_file: loaded,
        )
        probe.responder = _only(str(custom), stdout="Composer version 2.7.1")

        before = await discovery.get_manager_status("composer")
        assert before.status == ManagerState.NOT_INSTALLED

        result = await discovery.load_custom_config()
        after = await discovery.get_manager_status("composer")

        assert result == loaded
        assert after.status == ManagerState.PATH_MISSING
        assert after.discovery_method == DiscoveryMethod.CUSTOM_PATH
        assert after.version == "2.7.1"

    @pytest.mark.asyncio
    async def test_unchanged_paths_keep_cache(self, discovery, cache):
        await discovery.get_manager_status("brew")
        assert cache.size() == 1

        assert await discovery.load_custom_config() == {}

        assert cache.size() == 1

    @pytest.mark.asyncio
    async def test_loader_error_means_no_custom_paths(self, registry, probe, cache):
        def loader(config_file):
            raise OSError("unreadable")

        settings = DiscoverySettings(custom_paths={PackageManagerId.GEM: ["/custom/gem"]})
        discovery = PackageDiscovery(
            cache=cache,
            registry=registry,
            probe=probe,
            settings=settings,
            platform="linux",
            custom_path_loader=loader,
        )

        assert await discovery.load_custom_config() == {}
        assert discovery.resolver.custom_paths == {}

    @pytest.mark.asyncio
    async def test_loader_receives_config_file(self, registry, probe, cache, tmp_path):
        seen = []

        def loader(config_file):
            seen.append(config_file)
            return {}

        discovery = PackageDiscovery(
            cache=cache, registry=registry, probe=probe, custom_path_loader=loader
        )
        config_file = tmp_path / "config.toml"

        await discovery.load_custom_config(config_file)

        assert seen == [config_file]
