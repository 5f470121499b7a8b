"""Data models shared by discovery, configuration and the MCP surface."""

from .types import (
    PATH_HINT,
    DiscoveryMethod,
    ListingProgress,
    ManagerState,
    ManagerStatus,
    PackageInfo,
    PackageManagerId,
    UninstallOptions,
)

__all__ = [
    "PATH_HINT",
    "DiscoveryMethod",
    "ListingProgress",
    "ManagerState",
    "ManagerStatus",
    "PackageInfo",
    "PackageManagerId",
    "UninstallOptions",
]
