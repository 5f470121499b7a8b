"""Package manager discovery (tiered resolution, handlers, orchestration)."""

from .handlers import (
    MANAGER_HANDLERS,
    CommandSpec,
    CommonPath,
    HandlerRegistry,
    ListCommand,
    ManagerHandler,
    build_default_registry,
    get_manager_handler,
)
from .orchestrator import PackageDiscovery, create_discovery
from .resolver import TieredResolver

__all__ = [
    "PackageDiscovery",
    "create_discovery",
    "TieredResolver",
    "ManagerHandler",
    "HandlerRegistry",
    "CommandSpec",
    "CommonPath",
    "ListCommand",
    "MANAGER_HANDLERS",
    "build_default_registry",
    "get_manager_handler",
]
