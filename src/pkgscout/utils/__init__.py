"""Utility modules (command execution, cache)."""

from .cache import DEFAULT_TTL_SECONDS, CacheEntry, PathCache
from .command import (
    DEFAULT_TIMEOUT_MS,
    CommandResult,
    Platform,
    execute_safe,
    get_platform,
)

__all__ = [
    "PathCache",
    "CacheEntry",
    "DEFAULT_TTL_SECONDS",
    "CommandResult",
    "Platform",
    "DEFAULT_TIMEOUT_MS",
    "execute_safe",
    "get_platform",
]
