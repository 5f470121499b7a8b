"""Discovery orchestrator: concurrent resolution, listing and uninstall.

Every public coroutine here has a total contract. Failures inside one
manager's resolution, listing or uninstall are logged and surfaced as data
(``not_installed`` statuses, empty lists, ``False``), never as exceptions.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..config.parser import DiscoverySettings, load_custom_paths, load_settings
from ..models.types import (
    ListingProgress,
    ManagerStatus,
    PackageInfo,
    PackageManagerId,
    UninstallOptions,
)
from ..utils.cache import PathCache
from ..utils.command import Platform, execute_safe
from .handlers import HandlerRegistry, ManagerHandler, build_default_registry
from .resolver import CommandProbe, TieredResolver

logger = logging.getLogger(__name__)

ProgressCallback = Callable[
    [PackageManagerId, ListingProgress], Optional[Awaitable[Any]]
]
CustomPathLoader = Callable[[Optional[Path]], Dict[PackageManagerId, List[str]]]

ManagerRef = Union[PackageManagerId, str]


class PackageDiscovery:
    """Resolve, list and uninstall across the whole package manager catalog."""

    def __init__(
        self,
        cache: PathCache[ManagerStatus],
        registry: HandlerRegistry,
        probe: CommandProbe = execute_safe,
        settings: Optional[DiscoverySettings] = None,
        platform: Optional[Platform] = None,
        custom_path_loader: CustomPathLoader = load_custom_paths,
    ):
        """Initialize discovery.

        Args:
            cache: Status cache shared by all resolutions
            registry: Handler for every supported manager
            probe: Command executor used by every tier and by list/uninstall
            settings: Timeouts and initial custom paths (defaults if omitted)
            platform: OS family override, detected if omitted
            custom_path_loader: Source for ``load_custom_config``
        """
        self.cache = cache
        self.registry = registry
        self.probe = probe
        self.settings = settings or DiscoverySettings()
        self._custom_path_loader = custom_path_loader
        self.resolver = TieredResolver(
            probe=probe,
            platform=platform,
            timeout_ms=self.settings.probe_timeout_ms,
            custom_paths=self.settings.custom_paths,
        )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get_registered_managers(self) -> List[PackageManagerId]:
        return list(self.registry)

    def get_handler(self, manager: ManagerRef) -> Optional[ManagerHandler]:
        return self.registry.lookup(manager)

    # ------------------------------------------------------------------
    # Status resolution
    # ------------------------------------------------------------------

    async def discover_available_managers(self) -> List[ManagerStatus]:
        """Resolve every registered manager concurrently.

        Returns:
            One status per registered manager, in registry order. A manager
            whose resolution raised is reported as not_installed.
        """
        handlers = list(self.registry.values())
        results = await asyncio.gather(
            *(self._resolve_cached(handler) for handler in handlers),
            return_exceptions=True,
        )

        statuses: List[ManagerStatus] = []
        for handler, result in zip(handlers, results):
            if isinstance(result, ManagerStatus):
                statuses.append(result)
                continue
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning(f"Discovery of {handler.id} failed: {result!r}")
            statuses.append(ManagerStatus.not_installed(handler.id))
        return statuses

    async def get_manager_status(self, manager: ManagerRef) -> ManagerStatus:
        """Get the (cached) status of a single manager.

        Unsupported managers yield a not_installed status with an explanatory
        message instead of an error.
        """
        handler = self.registry.lookup(manager)
        if handler is None:
            return ManagerStatus.not_installed(
                str(manager), message=f"Unsupported package manager: {manager}"
            )
        try:
            return await self._resolve_cached(handler)
        except Exception as e:
            logger.warning(f"Discovery of {handler.id} failed: {e!r}")
            return ManagerStatus.not_installed(handler.id)

    async def _resolve_cached(self, handler: ManagerHandler) -> ManagerStatus:
        cached = self.cache.get(handler.id)
        if cached is not None:
            return cached

        status = await self.resolver.resolve(handler)
        self.cache.set(handler.id, status)
        logger.debug(f"Resolved {status!r}")
        return status

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    async def list_packages(self, manager: ManagerRef) -> List[PackageInfo]:
        """List packages of one manager; empty if it is unavailable or listing fails."""
        handler = self.registry.lookup(manager)
        if handler is None:
            return []
        try:
            return await self._collect_packages(handler)
        except Exception as e:
            logger.warning(f"Listing {handler.id} packages failed: {e!r}")
            return []

    async def _collect_packages(self, handler: ManagerHandler) -> List[PackageInfo]:
        status = await self.get_manager_status(handler.id)
        if not status.is_installed:
            return []

        program = status.path or handler.executable_name
        packages: List[PackageInfo] = []
        for list_command in handler.list_commands:
            argv = list_command.command.build(program)
            result = await self.probe(argv, self.settings.list_timeout_ms)
            # Some managers (npm) exit non-zero while printing a valid listing
            if not result.success and not result.stdout:
                logger.debug(f"{' '.join(argv)} failed: {result.stderr.strip()}")
                continue
            try:
                packages.extend(list_command.parser(result.stdout))
            except Exception as e:
                logger.warning(f"Could not parse output of {' '.join(argv)}: {e!r}")
        return packages

    async def list_all_packages(
        self, on_progress: Optional[ProgressCallback] = None
    ) -> List[PackageInfo]:
        """List packages of every installed manager concurrently.

        Args:
            on_progress: Called with (manager, progress) when a manager's
                listing starts and when it completes or fails. May be a
                coroutine function.

        Returns:
            All packages found, sorted by manager then name. Managers whose
            listing failed contribute nothing.
        """
        statuses = await self.discover_available_managers()
        installed = [
            s.manager for s in statuses
            if s.is_installed and isinstance(s.manager, PackageManagerId)
        ]

        groups = await asyncio.gather(
            *(self._list_with_progress(m, on_progress) for m in installed)
        )
        packages = [pkg for group in groups for pkg in group]
        packages.sort(key=lambda p: (p.manager.value, p.name.lower()))
        return packages

    async def _list_with_progress(
        self,
        manager: PackageManagerId,
        on_progress: Optional[ProgressCallback],
    ) -> List[PackageInfo]:
        await self._notify(on_progress, manager, ListingProgress.STARTED)
        try:
            packages = await self._collect_packages(self.registry[manager])
        except Exception as e:
            logger.warning(f"Listing {manager} packages failed: {e!r}")
            await self._notify(on_progress, manager, ListingProgress.FAILED)
            return []
        await self._notify(on_progress, manager, ListingProgress.COMPLETED)
        return packages

    @staticmethod
    async def _notify(
        on_progress: Optional[ProgressCallback],
        manager: PackageManagerId,
        progress: ListingProgress,
    ) -> None:
        if on_progress is None:
            return
        try:
            result = on_progress(manager, progress)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Progress callback failed for {manager}: {e!r}")

    async def uninstall_package(
        self,
        name: str,
        manager: ManagerRef,
        options: Optional[UninstallOptions] = None,
    ) -> bool:
        """Uninstall a package with its manager.

        Returns:
            True if the uninstall command succeeded, False otherwise
            (unsupported or unavailable manager, invalid name, command failure)
        """
        handler = self.registry.lookup(manager)
        if handler is None or handler.uninstall_command is None:
            return False

        package = (name or "").strip()
        # Reject names that would be read as options
        if not package or package.startswith("-"):
            return False

        options = options or UninstallOptions()
        try:
            status = await self.get_manager_status(handler.id)
            if not status.is_installed:
                return False
            argv = handler.uninstall_command.build(
                status.path or handler.executable_name,
                package=package,
                force=options.force,
            )
            result = await self.probe(argv, self.settings.uninstall_timeout_ms)
        except Exception as e:
            logger.warning(f"Uninstalling {package} with {handler.id} failed: {e!r}")
            return False

        if not result.success:
            logger.info(
                f"Uninstalling {package} with {handler.id} failed "
                f"(exit {result.exit_code}): {result.stderr.strip()}"
            )
        return result.success

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()

    async def load_custom_config(
        self, config_file: Optional[Path] = None
    ) -> Dict[PackageManagerId, List[str]]:
        """Load user configured custom paths.

        A missing, empty or malformed source behaves as zero custom paths.
        Cached statuses are dropped when the configured paths change.

        Returns:
            The custom paths now in effect
        """
        try:
            loaded = await asyncio.to_thread(self._custom_path_loader, config_file)
        except Exception as e:
            logger.warning(f"Failed to load custom paths: {e!r}")
            loaded = {}
        if not isinstance(loaded, dict):
            loaded = {}

        if loaded != self.resolver.custom_paths:
            self.resolver.set_custom_paths(loaded)
            self.cache.clear()
        return self.resolver.custom_paths


def create_discovery(
    settings: Optional[DiscoverySettings] = None,
    probe: CommandProbe = execute_safe,
) -> PackageDiscovery:
    """Build a discovery instance from settings (loaded from config if omitted)."""
    settings = settings or load_settings()
    return PackageDiscovery(
        cache=PathCache(default_ttl=settings.cache_ttl_seconds),
        registry=build_default_registry(),
        probe=probe,
        settings=settings,
    )
