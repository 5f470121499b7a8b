"""Configuration management for pkgscout."""

from .parser import (
    DiscoverySettings,
    default_config_path,
    find_config_file,
    load_custom_paths,
    load_settings,
    parse_custom_paths,
)

__all__ = [
    "DiscoverySettings",
    "load_settings",
    "load_custom_paths",
    "find_config_file",
    "default_config_path",
    "parse_custom_paths",
]
