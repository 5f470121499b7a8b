"""Parsers turning list command output into PackageInfo records.

Every parser is best-effort: it never raises and returns whatever valid
entries it can extract from malformed input.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, List, Optional

from ..models.types import PackageInfo, PackageManagerId

OutputParser = Callable[[str], List[PackageInfo]]


def _load_json(output: str) -> Optional[Any]:
    try:
        return json.loads(output)
    except (TypeError, ValueError):
        return None


def _lines(output: str) -> List[str]:
    if not output or not isinstance(output, str):
        return []
    return [line.strip() for line in output.splitlines() if line.strip()]


# Homebrew

def parse_brew_output(output: str, location: str = "formula") -> List[PackageInfo]:
    """Parse ``brew list --versions`` output ("name 1.0 0.9" per line)."""
    packages = []
    for line in _lines(output):
        parts = line.split()
        if len(parts) < 2:
            continue
        packages.append(
            PackageInfo(
                name=parts[0],
                version=parts[1],
                location=location,
                manager=PackageManagerId.BREW,
            )
        )
    return packages


def parse_brew_formula_output(output: str) -> List[PackageInfo]:
    return parse_brew_output(output, location="formula")


def parse_brew_cask_output(output: str) -> List[PackageInfo]:
    return parse_brew_output(output, location="cask")


# Conda

def parse_conda_output(output: str) -> List[PackageInfo]:
    """Parse ``conda list --json``."""
    data = _load_json(output)
    packages = []
    if isinstance(data, list):
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            packages.append(
                PackageInfo(
                    name=str(entry["name"]),
                    version=str(entry.get("version") or "unknown"),
                    location=str(entry.get("channel") or "conda"),
                    manager=PackageManagerId.CONDA,
                )
            )
        return packages
    if data is not None:
        # JSON error object, e.g. EnvironmentLocationNotFound
        return packages

    # Plain table: "name  version  build  channel", comment lines start with '#'
    for line in _lines(output):
        if line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) < 2:
            continue
        packages.append(
            PackageInfo(
                name=parts[0],
                version=parts[1],
                location=parts[3] if len(parts) > 3 else "conda",
                manager=PackageManagerId.CONDA,
            )
        )
    return packages


# pipx

_PIPX_TEXT_PATTERN = re.compile(r"package\s+(\S+)\s+(\S+?),")


def parse_pipx_output(output: str) -> List[PackageInfo]:
    """Parse ``pipx list --json``, falling back to the human readable listing."""
    data = _load_json(output)
    packages = []
    if isinstance(data, dict):
        venvs = data.get("venvs")
        if not isinstance(venvs, dict):
            return packages
        for venv_name, venv in venvs.items():
            try:
                main = venv["metadata"]["main_package"]
                name = main.get("package") or venv_name
                version = main.get("package_version") or "unknown"
            except (KeyError, TypeError, AttributeError):
                continue
            packages.append(
                PackageInfo(
                    name=str(name),
                    version=str(version),
                    location="pipx-venv",
                    manager=PackageManagerId.PIPX,
                )
            )
        return packages

    for line in _lines(output):
        match = _PIPX_TEXT_PATTERN.search(line)
        if match:
            packages.append(
                PackageInfo(
                    name=match.group(1),
                    version=match.group(2),
                    location="pipx-venv",
                    manager=PackageManagerId.PIPX,
                )
            )
    return packages


# Poetry

_POETRY_LINE_PATTERN = re.compile(r"^([A-Za-z0-9][\w.\-]*)\s+(?:\(!\)\s+)?(\S+)\s*(.*)$")


def parse_poetry_output(output: str) -> List[PackageInfo]:
    """Parse ``poetry self show`` ("name (!) version description")."""
    packages = []
    for line in _lines(output):
        match = _POETRY_LINE_PATTERN.match(line)
        if not match:
            continue
        packages.append(
            PackageInfo(
                name=match.group(1),
                version=match.group(2),
                location="poetry-self",
                manager=PackageManagerId.POETRY,
                description=match.group(3) or None,
            )
        )
    return packages


# pyenv

def parse_pyenv_output(output: str) -> List[PackageInfo]:
    """Parse ``pyenv versions --bare``; every non-empty line is a Python version."""
    return [
        PackageInfo(
            name="python",
            version=line,
            location="pyenv-version",
            manager=PackageManagerId.PYENV,
        )
        for line in _lines(output)
    ]


# npm

_NPM_TREE_WINDOWS = re.compile(r"[+`\\]-- (.+)@(.+)")
_NPM_TREE_UNIX = re.compile(r"[├└]── (.+)@(.+)")
_NPM_GENERIC = re.compile(r"\s(.+)@(\d+\.\d+\.\d+(?:-[\w.]+)?)\s*$")


def _npm_from_regex(output: str, pattern: "re.Pattern[str]") -> List[PackageInfo]:
    packages = []
    for line in output.splitlines():
        match = pattern.search(line)
        if match:
            packages.append(
                PackageInfo(
                    name=match.group(1).strip(),
                    version=match.group(2).strip(),
                    location="global",
                    manager=PackageManagerId.NPM,
                )
            )
    return packages


def parse_npm_output(output: str) -> List[PackageInfo]:
    """Parse ``npm list -g --depth=0 --json`` with text tree fallbacks."""
    if not output or not isinstance(output, str):
        return []

    data = _load_json(output)
    if isinstance(data, dict):
        dependencies = data.get("dependencies") or {}
        packages = []
        if isinstance(dependencies, dict):
            for name, info in dependencies.items():
                version = info.get("version") if isinstance(info, dict) else None
                packages.append(
                    PackageInfo(
                        name=name,
                        version=str(version or "unknown"),
                        location="global",
                        manager=PackageManagerId.NPM,
                    )
                )
        return packages

    for pattern in (_NPM_TREE_WINDOWS, _NPM_TREE_UNIX, _NPM_GENERIC):
        packages = _npm_from_regex(output, pattern)
        if packages:
            return packages
    return []


# pip

def parse_pip_output(output: str) -> List[PackageInfo]:
    """Parse ``pip list --format=json``, falling back to the column table."""
    if not output or not isinstance(output, str):
        return []

    data = _load_json(output)
    packages = []
    if isinstance(data, list):
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            packages.append(
                PackageInfo(
                    name=str(entry["name"]),
                    version=str(entry.get("version") or "unknown"),
                    location="site-packages",
                    manager=PackageManagerId.PIP,
                )
            )
        return packages
    if data is not None:
        return packages

    lines = output.splitlines()
    start = 0
    for index, line in enumerate(lines):
        if line.startswith("---"):
            start = index + 1
            break

    for line in lines[start:]:
        parts = line.split()
        if len(parts) >= 2:
            packages.append(
                PackageInfo(
                    name=parts[0],
                    version=parts[1],
                    location="site-packages",
                    manager=PackageManagerId.PIP,
                )
            )
    return packages


# cargo

_CARGO_PATTERN = re.compile(r"^(\S+)\s+v?([\d.]+[\w.\-+]*):?")


def parse_cargo_output(output: str) -> List[PackageInfo]:
    """Parse ``cargo install --list``; binaries are indented under each crate."""
    packages = []
    if not output or not isinstance(output, str):
        return packages
    for line in output.splitlines():
        if not line.strip() or line[0].isspace():
            continue
        match = _CARGO_PATTERN.match(line.strip())
        if match:
            packages.append(
                PackageInfo(
                    name=match.group(1),
                    version=match.group(2),
                    location="cargo",
                    manager=PackageManagerId.CARGO,
                )
            )
    return packages


# RubyGems

_GEM_PATTERN = re.compile(r"^(\S+)\s+\((?:default:\s*)?([\w.\-]+)")


def parse_gem_output(output: str) -> List[PackageInfo]:
    """Parse ``gem list --local`` ("name (1.2.3, 1.2.2)")."""
    packages = []
    for line in _lines(output):
        match = _GEM_PATTERN.match(line)
        if match:
            packages.append(
                PackageInfo(
                    name=match.group(1),
                    version=match.group(2),
                    location="gem",
                    manager=PackageManagerId.GEM,
                )
            )
    return packages


# Composer

_COMPOSER_TEXT_PATTERN = re.compile(r"^([\w.\-]+/[\w.\-]+)\s+(v?[\d.]+(?:-[\w.]+)?)\s*(.*)$")


def _composer_entry(entry: Any) -> Optional[PackageInfo]:
    if not isinstance(entry, dict) or not entry.get("name"):
        return None
    return PackageInfo(
        name=str(entry["name"]),
        version=str(entry.get("version") or "unknown"),
        location="global",
        manager=PackageManagerId.COMPOSER,
        description=entry.get("description") or None,
    )


def parse_composer_output(output: str) -> List[PackageInfo]:
    """Parse ``composer global show`` in JSON or text form."""
    if not output or not isinstance(output, str):
        return []

    data = _load_json(output)
    if data is not None:
        if isinstance(data, dict):
            data = data.get("installed", [])
        if not isinstance(data, list):
            return []
        return [pkg for pkg in (_composer_entry(e) for e in data) if pkg is not None]

    packages = []
    for line in _lines(output):
        match = _COMPOSER_TEXT_PATTERN.match(line)
        if match:
            packages.append(
                PackageInfo(
                    name=match.group(1),
                    version=match.group(2),
                    location="global",
                    manager=PackageManagerId.COMPOSER,
                    description=match.group(3) or None,
                )
            )
    return packages
