"""Data types for package manager discovery."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

PATH_HINT = "not in PATH"


class PackageManagerId(str, Enum):
    """Closed set of supported package managers."""

    BREW = "brew"
    CONDA = "conda"
    PIPX = "pipx"
    POETRY = "poetry"
    PYENV = "pyenv"
    NPM = "npm"
    PIP = "pip"
    CARGO = "cargo"
    GEM = "gem"
    COMPOSER = "composer"

    def __str__(self) -> str:
        return self.value


class DiscoveryMethod(str, Enum):
    """Which tier located the executable."""

    DIRECT_COMMAND = "direct_command"
    PATH_SCAN = "path_scan"
    COMMON_PATH = "common_path"
    CUSTOM_PATH = "custom_path"


class ManagerState(str, Enum):
    AVAILABLE = "available"
    PATH_MISSING = "path_missing"
    NOT_INSTALLED = "not_installed"


class ListingProgress(str, Enum):
    """Progress events reported while listing packages."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


IN_PATH_METHODS = frozenset({DiscoveryMethod.DIRECT_COMMAND, DiscoveryMethod.PATH_SCAN})
OFF_PATH_METHODS = frozenset({DiscoveryMethod.COMMON_PATH, DiscoveryMethod.CUSTOM_PATH})


@dataclass(frozen=True)
class ManagerStatus:
    """Resolved status of one package manager.

    Attributes:
        manager: Manager identifier (a plain string only for unsupported ids)
        status: available, path_missing or not_installed
        in_path: Whether the executable is reachable via PATH
        discovery_method: Tier that found the executable (absent if not installed)
        message: PATH configuration hint for path_missing managers
        path: Executable that answered the version check
        version: Version parsed from the version check output
    """

    manager: Union[PackageManagerId, str]
    status: ManagerState
    in_path: bool
    discovery_method: Optional[DiscoveryMethod] = None
    message: Optional[str] = None
    path: Optional[str] = None
    version: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status == ManagerState.AVAILABLE:
            if not self.in_path or self.discovery_method not in IN_PATH_METHODS:
                raise ValueError(
                    f"available status requires in_path and a PATH discovery method, "
                    f"got in_path={self.in_path}, method={self.discovery_method}"
                )
        elif self.status == ManagerState.PATH_MISSING:
            if self.in_path or self.discovery_method not in OFF_PATH_METHODS:
                raise ValueError(
                    f"path_missing status requires a common/custom path discovery "
                    f"method, got in_path={self.in_path}, method={self.discovery_method}"
                )
            if not self.message or PATH_HINT not in self.message:
                raise ValueError("path_missing status requires a PATH hint message")
        else:
            if self.in_path or self.discovery_method is not None:
                raise ValueError("not_installed status cannot carry a discovery method")

    @classmethod
    def available(
        cls,
        manager: PackageManagerId,
        method: DiscoveryMethod,
        path: Optional[str] = None,
        version: Optional[str] = None,
    ) -> "ManagerStatus":
        return cls(
            manager=manager,
            status=ManagerState.AVAILABLE,
            in_path=True,
            discovery_method=method,
            path=path,
            version=version,
        )

    @classmethod
    def path_missing(
        cls,
        manager: PackageManagerId,
        method: DiscoveryMethod,
        message: str,
        path: Optional[str] = None,
        version: Optional[str] = None,
    ) -> "ManagerStatus":
        return cls(
            manager=manager,
            status=ManagerState.PATH_MISSING,
            in_path=False,
            discovery_method=method,
            message=message,
            path=path,
            version=version,
        )

    @classmethod
    def not_installed(
        cls,
        manager: Union[PackageManagerId, str],
        message: Optional[str] = None,
    ) -> "ManagerStatus":
        return cls(
            manager=manager,
            status=ManagerState.NOT_INSTALLED,
            in_path=False,
            message=message,
        )

    @property
    def is_installed(self) -> bool:
        return self.status != ManagerState.NOT_INSTALLED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["manager"] = str(self.manager)
        data["status"] = self.status.value
        if self.discovery_method is not None:
            data["discovery_method"] = self.discovery_method.value
        return data

    def __repr__(self) -> str:
        method = f" via {self.discovery_method.value}" if self.discovery_method else ""
        return f"<ManagerStatus {self.manager} {self.status.value}{method}>"


@dataclass(frozen=True)
class PackageInfo:
    """A package reported by a manager's list command."""

    name: str
    version: str
    location: str
    manager: PackageManagerId
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["manager"] = str(self.manager)
        return data


@dataclass(frozen=True)
class UninstallOptions:
    force: bool = False
