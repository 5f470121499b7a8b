"""Declarative package manager handlers.

This is DATA, not code. To support a new package manager, add its id to
PackageManagerId and its ManagerHandler here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple

from ..models.types import PackageManagerId
from ..utils.command import Platform
from . import parsers
from .parsers import OutputParser

PACKAGE_PLACEHOLDER = "{package}"

ALL_PLATFORMS: FrozenSet[str] = frozenset({"windows", "macos", "linux"})
UNIX: FrozenSet[str] = frozenset({"macos", "linux"})
MACOS: FrozenSet[str] = frozenset({"macos"})
LINUX: FrozenSet[str] = frozenset({"linux"})
WINDOWS: FrozenSet[str] = frozenset({"windows"})


@dataclass(frozen=True)
class CommandSpec:
    """Structured command template (arguments only, the program is resolved later).

    The literal argument ``{package}`` is replaced by the package name as a
    single argument, so names are never interpreted by a shell.
    """

    args: Tuple[str, ...]
    force_args: Tuple[str, ...] = ()

    def build(
        self,
        program: str,
        package: Optional[str] = None,
        force: bool = False,
    ) -> List[str]:
        argv = [program]
        for arg in self.args:
            if arg == PACKAGE_PLACEHOLDER:
                if package is None:
                    raise ValueError("Command requires a package name")
                argv.append(package)
            else:
                argv.append(arg)
        if force:
            argv.extend(self.force_args)
        return argv


@dataclass(frozen=True)
class CommonPath:
    """Well-known install location, applicable to some OS families."""

    path: str
    platforms: FrozenSet[str] = ALL_PLATFORMS

    def applies_to(self, platform: Platform) -> bool:
        return platform in self.platforms


@dataclass(frozen=True)
class ListCommand:
    command: CommandSpec
    parser: OutputParser


@dataclass(frozen=True)
class ManagerHandler:
    """Complete static description of one package manager."""

    id: PackageManagerId
    display_name: str
    executable_name: str
    version_args: Tuple[str, ...] = ("--version",)
    version_pattern: str = r"(\d+(?:\.\d+)+[\w.\-+]*)"
    common_paths: Tuple[CommonPath, ...] = ()
    list_commands: Tuple[ListCommand, ...] = ()
    uninstall_command: Optional[CommandSpec] = None

    def paths_for(self, platform: Platform) -> List[str]:
        return [p.path for p in self.common_paths if p.applies_to(platform)]

    def version_command(self, program: Optional[str] = None) -> List[str]:
        return [program or self.executable_name, *self.version_args]

    def parse_version(self, output: str) -> Optional[str]:
        match = re.search(self.version_pattern, output or "")
        if match:
            return match.group(1)
        return None


class HandlerRegistry(Mapping[PackageManagerId, ManagerHandler]):
    """Immutable mapping of every supported manager to its handler.

    Raises:
        ValueError: If a supported manager has no handler, or a handler is
            registered under another manager's id
    """

    def __init__(self, handlers: Mapping[PackageManagerId, ManagerHandler]):
        missing = [m.value for m in PackageManagerId if m not in handlers]
        if missing:
            raise ValueError(f"No handler registered for: {', '.join(missing)}")
        for manager_id, handler in handlers.items():
            if handler.id != manager_id:
                raise ValueError(
                    f"Handler for '{handler.id}' registered under '{manager_id}'"
                )
        # Registry order follows the enum declaration order
        self._handlers: Dict[PackageManagerId, ManagerHandler] = {
            m: handlers[m] for m in PackageManagerId
        }

    def __getitem__(self, key: PackageManagerId) -> ManagerHandler:
        return self._handlers[key]

    def __iter__(self) -> Iterator[PackageManagerId]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def lookup(self, manager: object) -> Optional[ManagerHandler]:
        """Find a handler by id or id string; None for unsupported managers."""
        manager_id = coerce_manager_id(manager)
        if manager_id is None:
            return None
        return self._handlers.get(manager_id)


def coerce_manager_id(manager: object) -> Optional[PackageManagerId]:
    if isinstance(manager, PackageManagerId):
        return manager
    if isinstance(manager, str):
        try:
            return PackageManagerId(manager.strip().lower())
        except ValueError:
            return None
    return None


# Declarative handler specifications
MANAGER_HANDLERS: Dict[PackageManagerId, ManagerHandler] = {
    PackageManagerId.BREW: ManagerHandler(
        id=PackageManagerId.BREW,
        display_name="Homebrew",
        executable_name="brew",
        version_pattern=r"Homebrew\s+(\S+)",
        common_paths=(
            CommonPath("/opt/homebrew/bin/brew", MACOS),  # Apple Silicon
            CommonPath("/usr/local/bin/brew", MACOS),  # Intel
            CommonPath("/home/linuxbrew/.linuxbrew/bin/brew", LINUX),
            CommonPath("~/.linuxbrew/bin/brew", LINUX),
        ),
        list_commands=(
            ListCommand(
                CommandSpec(("list", "--versions")),
                parsers.parse_brew_formula_output,
            ),
            ListCommand(
                CommandSpec(("list", "--cask", "--versions")),
                parsers.parse_brew_cask_output,
            ),
        ),
        uninstall_command=CommandSpec(
            ("uninstall", PACKAGE_PLACEHOLDER), force_args=("--force",)
        ),
    ),
    PackageManagerId.CONDA: ManagerHandler(
        id=PackageManagerId.CONDA,
        display_name="Conda",
        executable_name="conda",
        version_pattern=r"conda\s+(\S+)",
        common_paths=(
            CommonPath("~/miniconda3/bin/conda", UNIX),
            CommonPath("~/anaconda3/bin/conda", UNIX),
            CommonPath("~/miniforge3/bin/conda", UNIX),
            CommonPath("~/mambaforge/bin/conda", UNIX),
            CommonPath("/opt/conda/bin/conda", UNIX),
            CommonPath("/opt/homebrew/Caskroom/miniconda/base/bin/conda", MACOS),
            CommonPath("/usr/local/Caskroom/miniconda/base/bin/conda", MACOS),
            CommonPath("~/miniconda3/Scripts/conda.exe", WINDOWS),
            CommonPath("~/anaconda3/Scripts/conda.exe", WINDOWS),
            CommonPath("%PROGRAMDATA%/miniconda3/Scripts/conda.exe", WINDOWS),
            CommonPath("%PROGRAMDATA%/Anaconda3/Scripts/conda.exe", WINDOWS),
        ),
        list_commands=(
            ListCommand(CommandSpec(("list", "--json")), parsers.parse_conda_output),
        ),
        uninstall_command=CommandSpec(("remove", "-y", PACKAGE_PLACEHOLDER)),
    ),
    PackageManagerId.PIPX: ManagerHandler(
        id=PackageManagerId.PIPX,
        display_name="pipx",
        executable_name="pipx",
        common_paths=(
            CommonPath("~/.local/bin/pipx", UNIX),
            CommonPath("/opt/homebrew/bin/pipx", MACOS),
            CommonPath("/usr/local/bin/pipx", MACOS),
            CommonPath("/usr/bin/pipx", LINUX),
            CommonPath("~/.local/bin/pipx.exe", WINDOWS),
            CommonPath("%APPDATA%/Python/Scripts/pipx.exe", WINDOWS),
        ),
        list_commands=(
            ListCommand(CommandSpec(("list", "--json")), parsers.parse_pipx_output),
        ),
        uninstall_command=CommandSpec(("uninstall", PACKAGE_PLACEHOLDER)),
    ),
    PackageManagerId.POETRY: ManagerHandler(
        id=PackageManagerId.POETRY,
        display_name="Poetry",
        executable_name="poetry",
        common_paths=(
            CommonPath("~/.local/bin/poetry", UNIX),
            CommonPath("~/.poetry/bin/poetry", UNIX),
            CommonPath("/opt/homebrew/bin/poetry", MACOS),
            CommonPath("~/Library/Application Support/pypoetry/venv/bin/poetry", MACOS),
            CommonPath("%APPDATA%/pypoetry/venv/Scripts/poetry.exe", WINDOWS),
            CommonPath("%APPDATA%/Python/Scripts/poetry.exe", WINDOWS),
        ),
        list_commands=(
            ListCommand(CommandSpec(("self", "show")), parsers.parse_poetry_output),
        ),
        uninstall_command=CommandSpec(("self", "remove", PACKAGE_PLACEHOLDER)),
    ),
    PackageManagerId.PYENV: ManagerHandler(
        id=PackageManagerId.PYENV,
        display_name="Pyenv",
        executable_name="pyenv",
        version_pattern=r"pyenv\s+(\S+)",
        common_paths=(
            CommonPath("~/.pyenv/bin/pyenv", UNIX),
            CommonPath("/opt/homebrew/bin/pyenv", MACOS),
            CommonPath("/usr/local/bin/pyenv", MACOS),
            CommonPath("~/.pyenv/pyenv-win/bin/pyenv.bat", WINDOWS),
        ),
        list_commands=(
            ListCommand(CommandSpec(("versions", "--bare")), parsers.parse_pyenv_output),
        ),
        # pyenv prompts for confirmation without -f
        uninstall_command=CommandSpec(("uninstall", "-f", PACKAGE_PLACEHOLDER)),
    ),
    PackageManagerId.NPM: ManagerHandler(
        id=PackageManagerId.NPM,
        display_name="npm",
        executable_name="npm",
        common_paths=(
            CommonPath("/opt/homebrew/bin/npm", MACOS),
            CommonPath("/usr/local/bin/npm", UNIX),
            CommonPath("/usr/bin/npm", LINUX),
            CommonPath("%PROGRAMFILES%/nodejs/npm.cmd", WINDOWS),
            CommonPath("%APPDATA%/npm/npm.cmd", WINDOWS),
        ),
        list_commands=(
            ListCommand(
                CommandSpec(("list", "-g", "--depth=0", "--json")),
                parsers.parse_npm_output,
            ),
        ),
        uninstall_command=CommandSpec(("uninstall", "-g", PACKAGE_PLACEHOLDER)),
    ),
    PackageManagerId.PIP: ManagerHandler(
        id=PackageManagerId.PIP,
        display_name="pip",
        executable_name="pip",
        version_pattern=r"pip\s+(\S+)",
        common_paths=(
            CommonPath("~/.local/bin/pip", UNIX),
            CommonPath("/opt/homebrew/bin/pip3", MACOS),
            CommonPath("/usr/local/bin/pip3", UNIX),
            CommonPath("/usr/bin/pip3", LINUX),
            CommonPath("%LOCALAPPDATA%/Programs/Python/Python312/Scripts/pip.exe", WINDOWS),
            CommonPath("%LOCALAPPDATA%/Programs/Python/Python311/Scripts/pip.exe", WINDOWS),
        ),
        list_commands=(
            ListCommand(
                CommandSpec(("list", "--format=json")), parsers.parse_pip_output
            ),
        ),
        uninstall_command=CommandSpec(("uninstall", "-y", PACKAGE_PLACEHOLDER)),
    ),
    PackageManagerId.CARGO: ManagerHandler(
        id=PackageManagerId.CARGO,
        display_name="Cargo",
        executable_name="cargo",
        version_pattern=r"cargo\s+(\S+)",
        common_paths=(
            CommonPath("~/.cargo/bin/cargo", UNIX),
            CommonPath("~/.cargo/bin/cargo.exe", WINDOWS),
        ),
        list_commands=(
            ListCommand(CommandSpec(("install", "--list")), parsers.parse_cargo_output),
        ),
        uninstall_command=CommandSpec(("uninstall", PACKAGE_PLACEHOLDER)),
    ),
    PackageManagerId.GEM: ManagerHandler(
        id=PackageManagerId.GEM,
        display_name="RubyGems",
        executable_name="gem",
        common_paths=(
            CommonPath("/opt/homebrew/opt/ruby/bin/gem", MACOS),
            CommonPath("/usr/local/opt/ruby/bin/gem", MACOS),
            CommonPath("~/.rbenv/shims/gem", UNIX),
            CommonPath("/usr/bin/gem", UNIX),
            CommonPath("C:/Ruby33-x64/bin/gem.cmd", WINDOWS),
        ),
        list_commands=(
            ListCommand(CommandSpec(("list", "--local")), parsers.parse_gem_output),
        ),
        uninstall_command=CommandSpec(("uninstall", PACKAGE_PLACEHOLDER, "-x")),
    ),
    PackageManagerId.COMPOSER: ManagerHandler(
        id=PackageManagerId.COMPOSER,
        display_name="Composer",
        executable_name="composer",
        version_pattern=r"Composer(?: version)?\s+(\S+)",
        common_paths=(
            CommonPath("/opt/homebrew/bin/composer", MACOS),
            CommonPath("/usr/local/bin/composer", UNIX),
            CommonPath("~/.composer/vendor/bin/composer", UNIX),
            CommonPath("%PROGRAMDATA%/ComposerSetup/bin/composer.bat", WINDOWS),
        ),
        list_commands=(
            ListCommand(
                CommandSpec(("global", "show", "--format=json")),
                parsers.parse_composer_output,
            ),
        ),
        uninstall_command=CommandSpec(("global", "remove", PACKAGE_PLACEHOLDER)),
    ),
}


def build_default_registry() -> HandlerRegistry:
    return HandlerRegistry(MANAGER_HANDLERS)


def get_manager_handler(manager: object) -> ManagerHandler:
    """Get the handler for a manager.

    Raises:
        ValueError: If the manager is not supported
    """
    manager_id = coerce_manager_id(manager)
    if manager_id is None or manager_id not in MANAGER_HANDLERS:
        supported = ", ".join(m.value for m in PackageManagerId)
        raise ValueError(
            f"Package manager '{manager}' is not supported. Supported: {supported}"
        )
    return MANAGER_HANDLERS[manager_id]
