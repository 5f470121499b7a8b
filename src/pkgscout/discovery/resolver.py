"""Tiered resolver locating one package manager's executable."""

from __future__ import annotations

import logging
import os
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ..models.types import PATH_HINT, DiscoveryMethod, ManagerStatus, PackageManagerId
from ..utils.command import (
    DEFAULT_TIMEOUT_MS,
    CommandResult,
    Platform,
    execute_safe,
    get_platform,
)
from .handlers import ManagerHandler

logger = logging.getLogger(__name__)

CommandProbe = Callable[[Sequence[str], Optional[int]], Awaitable[CommandResult]]

DEFAULT_PATHEXT = ".COM;.EXE;.BAT;.CMD"


class TieredResolver:
    """Resolve a manager's status by trying progressively broader searches.

    Priority:
    1. Direct command resolved by the OS search mechanism
    2. Scan of the PATH directories
    3. Well-known install locations for the current platform
    4. User configured custom paths

    The first tier whose version check succeeds decides the status.
    """

    def __init__(
        self,
        probe: CommandProbe = execute_safe,
        platform: Optional[Platform] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        custom_paths: Optional[Mapping[PackageManagerId, Sequence[str]]] = None,
    ):
        """Initialize resolver.

        Args:
            probe: Coroutine executing a command, must never raise for ordinary failures
            platform: OS family selecting common paths (detected if omitted)
            timeout_ms: Timeout for every version check
            custom_paths: User configured executable paths per manager
        """
        self.probe = probe
        self.platform: Platform = platform or get_platform()
        self.timeout_ms = timeout_ms
        self._custom_paths: Dict[PackageManagerId, List[str]] = {}
        if custom_paths:
            self.set_custom_paths(custom_paths)

    @property
    def custom_paths(self) -> Dict[PackageManagerId, List[str]]:
        return {k: list(v) for k, v in self._custom_paths.items()}

    def set_custom_paths(
        self, custom_paths: Mapping[PackageManagerId, Sequence[str]]
    ) -> None:
        normalized: Dict[PackageManagerId, List[str]] = {}
        for manager, paths in custom_paths.items():
            if isinstance(paths, (str, os.PathLike)):
                paths = [paths]
            normalized[manager] = [str(p) for p in paths if p]
        # Replaced wholesale so in-flight resolutions see either the old or new set
        self._custom_paths = normalized

    async def resolve(self, handler: ManagerHandler) -> ManagerStatus:
        """Resolve the status of one manager.

        Args:
            handler: Static description of the manager

        Returns:
            ManagerStatus; not_installed when no tier succeeds
        """
        status = await self._try_direct_command(handler)
        if status:
            return status

        status = await self._try_path_scan(handler)
        if status:
            return status

        status = await self._try_paths(
            handler,
            self._expand_all(handler.paths_for(self.platform)),
            DiscoveryMethod.COMMON_PATH,
        )
        if status:
            return status

        status = await self._try_paths(
            handler,
            self._custom_candidates(handler),
            DiscoveryMethod.CUSTOM_PATH,
        )
        if status:
            return status

        logger.debug(f"{handler.id}: not found in any tier")
        return ManagerStatus.not_installed(handler.id)

    async def _verify(self, handler: ManagerHandler, program: str) -> Optional[CommandResult]:
        result = await self.probe(handler.version_command(program), self.timeout_ms)
        if result.success:
            return result
        if result.timed_out:
            logger.debug(f"{handler.id}: version check timed out for {program}")
        return None

    async def _try_direct_command(self, handler: ManagerHandler) -> Optional[ManagerStatus]:
        result = await self._verify(handler, handler.executable_name)
        if result is None:
            return None
        return ManagerStatus.available(
            handler.id,
            DiscoveryMethod.DIRECT_COMMAND,
            path=handler.executable_name,
            version=handler.parse_version(result.stdout or result.stderr),
        )

    async def _try_path_scan(self, handler: ManagerHandler) -> Optional[ManagerStatus]:
        for candidate in self.scan_path(handler.executable_name):
            result = await self._verify(handler, candidate)
            if result is not None:
                return ManagerStatus.available(
                    handler.id,
                    DiscoveryMethod.PATH_SCAN,
                    path=candidate,
                    version=handler.parse_version(result.stdout or result.stderr),
                )
        return None

    async def _try_paths(
        self,
        handler: ManagerHandler,
        candidates: Iterable[str],
        method: DiscoveryMethod,
    ) -> Optional[ManagerStatus]:
        # Sequential: at most one probe per manager in flight
        for candidate in candidates:
            if not self._exists(candidate):
                continue
            result = await self._verify(handler, candidate)
            if result is not None:
                return ManagerStatus.path_missing(
                    handler.id,
                    method,
                    message=self._path_missing_message(handler, candidate),
                    path=candidate,
                    version=handler.parse_version(result.stdout or result.stderr),
                )
        return None

    def _exists(self, path: str) -> bool:
        return os.path.isfile(path)

    def scan_path(self, executable_name: str) -> List[str]:
        """Find executable files named ``executable_name`` in PATH directories."""
        names = [executable_name]
        if self.platform == "windows":
            pathext = os.environ.get("PATHEXT") or DEFAULT_PATHEXT
            names.extend(
                executable_name + ext.lower() for ext in pathext.split(";") if ext
            )

        found: List[str] = []
        seen_dirs = set()
        for directory in os.environ.get("PATH", "").split(os.pathsep):
            if not directory or directory in seen_dirs:
                continue
            seen_dirs.add(directory)
            for name in names:
                candidate = os.path.join(directory, name)
                if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                    found.append(candidate)
                    break
        return found

    def _custom_candidates(self, handler: ManagerHandler) -> List[str]:
        candidates = []
        for path in self._expand_all(self._custom_paths.get(handler.id, [])):
            if os.path.isdir(path):
                path = os.path.join(path, handler.executable_name)
            candidates.append(path)
        return candidates

    @staticmethod
    def _expand_all(paths: Iterable[str]) -> List[str]:
        expanded: List[str] = []
        for path in paths:
            resolved = os.path.normpath(os.path.expanduser(os.path.expandvars(path)))
            if resolved not in expanded:
                expanded.append(resolved)
        return expanded

    @staticmethod
    def _path_missing_message(handler: ManagerHandler, path: str) -> str:
        directory = os.path.dirname(path)
        return (
            f"{handler.display_name} was found at {path} but is {PATH_HINT}. "
            f"Add {directory} to your PATH environment variable."
        )
