"""MCP Server for pkgscout.

Exposes package manager discovery as MCP tools using FastMCP.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server import FastMCP

from .config import load_settings
from .discovery import PackageDiscovery, create_discovery
from .models import ListingProgress, PackageManagerId, UninstallOptions

# Global discovery instance and config path
_discovery: Optional[PackageDiscovery] = None
_config_path: Optional[str] = None

mcp = FastMCP("pkgscout: package manager discovery")


def set_config_path(path: str) -> None:
    """Set the config file used when the discovery instance is created."""
    global _config_path, _discovery
    _config_path = str(Path(path).expanduser().resolve())
    # Rebuild lazily with the new settings
    _discovery = None


def get_config_path() -> Optional[str]:
    return _config_path or os.getenv("PKGSCOUT_CONFIG")


async def get_discovery() -> PackageDiscovery:
    """Get or create the discovery instance."""
    global _discovery
    if _discovery is None:
        config_path = get_config_path()
        settings = load_settings(Path(config_path) if config_path else None)
        _discovery = create_discovery(settings)
    return _discovery


def _to_dict(obj: Any) -> Any:
    """Convert dataclass objects to dictionaries for JSON serialization."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    elif isinstance(obj, list):
        return [_to_dict(item) for item in obj]
    elif isinstance(obj, dict):
        return {str(k): _to_dict(v) for k, v in obj.items()}
    return obj


# ============================================================================
# Discovery Tools
# ============================================================================


@mcp.tool()
async def discover_managers() -> List[Dict[str, Any]]:
    """Find which package managers are installed and whether they are in PATH.

    Returns:
        One entry per supported manager with status "available",
        "path_missing" (installed but not in PATH, see "message") or
        "not_installed"
    """
    discovery = await get_discovery()
    return _to_dict(await discovery.discover_available_managers())


@mcp.tool()
async def get_manager_status(manager: str) -> Dict[str, Any]:
    """Get the status of one package manager.

    Args:
        manager: Manager id, e.g. "brew", "pyenv", "pipx"
    """
    discovery = await get_discovery()
    return _to_dict(await discovery.get_manager_status(manager))


@mcp.tool()
async def get_registered_managers() -> List[str]:
    """List the ids of every supported package manager."""
    discovery = await get_discovery()
    return [m.value for m in discovery.get_registered_managers()]


# ============================================================================
# Package Tools
# ============================================================================


@mcp.tool()
async def list_packages(manager: str) -> List[Dict[str, Any]]:
    """List the packages installed by one package manager.

    Args:
        manager: Manager id

    Returns:
        Packages with name, version, location and manager. Empty if the
        manager is not installed.
    """
    discovery = await get_discovery()
    return _to_dict(await discovery.list_packages(manager))


@mcp.tool()
async def list_all_packages() -> Dict[str, Any]:
    """List packages across every installed package manager.

    Returns:
        Packages plus the per-manager listing outcome
    """
    discovery = await get_discovery()
    outcomes: Dict[str, str] = {}

    def on_progress(manager: PackageManagerId, progress: ListingProgress) -> None:
        if progress != ListingProgress.STARTED:
            outcomes[manager.value] = progress.value

    packages = await discovery.list_all_packages(on_progress)
    return {
        "packages": _to_dict(packages),
        "total_count": len(packages),
        "managers": outcomes,
    }


@mcp.tool()
async def uninstall_package(
    name: str, manager: str, force: bool = False
) -> Dict[str, Any]:
    """Uninstall a package.

    Args:
        name: Package name (for pyenv, the Python version)
        manager: Manager id
        force: Pass the manager's force flag where it has one
    """
    discovery = await get_discovery()
    success = await discovery.uninstall_package(
        name, manager, UninstallOptions(force=force)
    )
    return {"name": name, "manager": manager, "success": success}


# ============================================================================
# Administration Tools
# ============================================================================


@mcp.tool()
async def clear_cache() -> Dict[str, Any]:
    """Forget cached statuses so the next query re-scans."""
    discovery = await get_discovery()
    discovery.clear_cache()
    return {"cleared": True}


@mcp.tool()
async def reload_custom_config() -> Dict[str, Any]:
    """Reload user configured custom executable paths."""
    discovery = await get_discovery()
    config_path = get_config_path()
    custom_paths = await discovery.load_custom_config(
        Path(config_path) if config_path else None
    )
    return {"custom_paths": _to_dict(custom_paths)}


# ============================================================================
# Entry Point
# ============================================================================


def main():
    """Run the MCP server.

    The config file can be set via:
    1. First command line argument
    2. PKGSCOUT_CONFIG environment variable
    3. ~/.config/pkgscout/config.toml (default)

    Example:
        python -m pkgscout.mcp_server ~/.config/pkgscout/config.toml
    """
    logging.basicConfig(
        level=os.getenv("PKGSCOUT_LOG_LEVEL", "WARNING").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if len(sys.argv) > 1 and not sys.argv[1].startswith("-"):
        set_config_path(sys.argv[1])
        # Remove the argument so FastMCP doesn't see it
        sys.argv = [sys.argv[0]] + sys.argv[2:]

    # Print server info to stderr (stdout is used for MCP protocol)
    print("🚀 Starting pkgscout MCP Server", file=sys.stderr)
    print(f"⚙️  Config: {get_config_path() or 'default'}", file=sys.stderr)
    print("", file=sys.stderr)

    mcp.run()


if __name__ == "__main__":
    main()
