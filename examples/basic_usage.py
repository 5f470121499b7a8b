#!/usr/bin/env python3
"""
Example: Basic pkgscout Usage - Discovery & Package Listing

This demonstrates the core features:
- Discover which package managers are installed
- Spot managers that are installed but not in PATH
- List packages across every manager with progress reporting

Usage:
    python examples/basic_usage.py [config.toml]
"""

import asyncio
import sys
from pathlib import Path

from pkgscout.config import load_settings
from pkgscout.discovery import create_discovery
from pkgscout.models import ListingProgress, ManagerState

ICONS = {
    ManagerState.AVAILABLE: "✅",
    ManagerState.PATH_MISSING: "⚠️ ",
    ManagerState.NOT_INSTALLED: "  ",
}


async def main():
    config_file = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    settings = load_settings(config_file)
    discovery = create_discovery(settings)

    print("\n" + "=" * 70)
    print("🔍 PACKAGE MANAGER DISCOVERY")
    print("=" * 70)

    # 1. Discover managers
    statuses = await discovery.discover_available_managers()
    for status in statuses:
        icon = ICONS[status.status]
        version = f" {status.version}" if status.version else ""
        print(f"{icon} {str(status.manager):<10} {status.status.value}{version}")
        if status.status == ManagerState.PATH_MISSING:
            print(f"      {status.message}")

    # 2. List packages
    print("\n📦 PACKAGES")
    print("-" * 70)

    def on_progress(manager, progress):
        if progress == ListingProgress.FAILED:
            print(f"   ❌ listing {manager} failed")

    packages = await discovery.list_all_packages(on_progress)
    for package in packages[:50]:  # Show first 50
        print(f"   {package.manager.value:<10} {package.name:<40} {package.version}")
    if len(packages) > 50:
        print(f"   ... and {len(packages) - 50} more")

    print(f"\nTotal: {len(packages)} packages")


if __name__ == "__main__":
    asyncio.run(main())
