"""Configuration file parser for pkgscout."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for Python 3.10

from ..models.types import PackageManagerId
from ..utils.cache import DEFAULT_TTL_SECONDS
from ..utils.command import DEFAULT_TIMEOUT_MS

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PKGSCOUT_CONFIG"
PROBE_TIMEOUT_ENV_VAR = "PKGSCOUT_PROBE_TIMEOUT_MS"
CACHE_TTL_ENV_VAR = "PKGSCOUT_CACHE_TTL"

DEFAULT_LIST_TIMEOUT_MS = 30000
DEFAULT_UNINSTALL_TIMEOUT_MS = 120000


@dataclass
class DiscoverySettings:
    """Timeouts and cache tuning for the discovery engine."""

    probe_timeout_ms: int = DEFAULT_TIMEOUT_MS
    list_timeout_ms: int = DEFAULT_LIST_TIMEOUT_MS
    uninstall_timeout_ms: int = DEFAULT_UNINSTALL_TIMEOUT_MS
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    custom_paths: Dict[PackageManagerId, List[str]] = field(default_factory=dict)

    # File the settings were loaded from, if any
    config_file: Optional[Path] = None


def find_config_file(explicit: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file.

    Args:
        explicit: Path given by the caller (takes priority)

    Returns:
        Path to an existing config file, None otherwise
    """
    candidates = []
    if explicit is not None:
        candidates.append(Path(explicit))
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path))
    candidates.append(default_config_path())

    for candidate in candidates:
        candidate = candidate.expanduser()
        if candidate.is_file():
            return candidate
    return None


def default_config_path() -> Path:
    xdg_home = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg_home) if xdg_home else Path.home() / ".config"
    return base / "pkgscout" / "config.toml"


def _read_toml(config_file: Optional[Path]) -> Dict[str, Any]:
    if config_file is None:
        return {}
    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
        return {}


def parse_custom_paths(data: Any) -> Dict[PackageManagerId, List[str]]:
    """Parse the ``[custom_paths]`` table.

    Unknown managers and non-string entries are skipped; a single string is
    accepted in place of a list.
    """
    custom_paths: Dict[PackageManagerId, List[str]] = {}
    if not isinstance(data, dict):
        return custom_paths

    for key, value in data.items():
        try:
            manager = PackageManagerId(str(key).lower())
        except ValueError:
            logger.warning(f"Ignoring custom paths for unknown manager '{key}'")
            continue

        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            continue
        paths = [p for p in value if isinstance(p, str) and p.strip()]
        if paths:
            custom_paths[manager] = paths
    return custom_paths


def load_custom_paths(config_file: Optional[Path] = None) -> Dict[PackageManagerId, List[str]]:
    """Load custom executable paths; never raises, empty on any failure."""
    try:
        data = _read_toml(find_config_file(config_file))
        return parse_custom_paths(data.get("custom_paths"))
    except Exception as e:
        logger.warning(f"Failed to load custom paths: {e}")
        return {}


def _positive_number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number <= 0:
        return default
    return number


def _positive_ms(value: Any, default: int) -> int:
    milliseconds = int(_positive_number(value, default))
    return milliseconds if milliseconds > 0 else default


def load_settings(config_file: Optional[Path] = None) -> DiscoverySettings:
    """Load settings from the config file and environment, or use defaults.

    Environment variables (optionally from a ``.env`` file) override the file.

    Args:
        config_file: Explicit config file path

    Returns:
        DiscoverySettings with loaded or default values
    """
    load_dotenv()
    settings = DiscoverySettings()

    found = find_config_file(config_file)
    data = _read_toml(found)
    settings.config_file = found

    discovery_data = data.get("discovery", {})
    if isinstance(discovery_data, dict):
        settings.probe_timeout_ms = _positive_ms(
            discovery_data.get("probe_timeout_ms"), settings.probe_timeout_ms
        )
        settings.list_timeout_ms = _positive_ms(
            discovery_data.get("list_timeout_ms"), settings.list_timeout_ms
        )
        settings.uninstall_timeout_ms = _positive_ms(
            discovery_data.get("uninstall_timeout_ms"), settings.uninstall_timeout_ms
        )
        settings.cache_ttl_seconds = _positive_number(
            discovery_data.get("cache_ttl_seconds"), settings.cache_ttl_seconds
        )

    settings.custom_paths = parse_custom_paths(data.get("custom_paths"))

    # Environment overrides
    settings.probe_timeout_ms = _positive_ms(
        os.getenv(PROBE_TIMEOUT_ENV_VAR), settings.probe_timeout_ms
    )
    settings.cache_ttl_seconds = _positive_number(
        os.getenv(CACHE_TTL_ENV_VAR), settings.cache_ttl_seconds
    )

    return settings
