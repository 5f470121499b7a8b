"""Subprocess execution with bounded timeouts.

Every probe the discovery engine runs goes through ``execute_safe``. It takes
a structured argument vector (never a shell string) and always returns a
``CommandResult``; a missing binary, a non-zero exit or a timeout are all
reported as data.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

logger = logging.getLogger(__name__)

Platform = Literal["windows", "macos", "linux"]

# Default timeout for a single probe (5 seconds)
DEFAULT_TIMEOUT_MS = 5000

# Exit codes reported when the process could not be spawned at all
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126
EXIT_TIMEOUT = -1


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single command execution."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    timed_out: bool = False

    @classmethod
    def failure(cls, stderr: str, exit_code: int = 1) -> "CommandResult":
        return cls(success=False, stderr=stderr, exit_code=exit_code)


def get_platform() -> Platform:
    """Get the current OS family."""
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


async def execute_safe(
    argv: Sequence[str],
    timeout_ms: Optional[int] = None,
) -> CommandResult:
    """Execute a command without a shell, catching all errors.

    Args:
        argv: Program followed by its arguments
        timeout_ms: Timeout in milliseconds (defaults to DEFAULT_TIMEOUT_MS)

    Returns:
        CommandResult. Success is defined by a zero exit code.
    """
    if not argv:
        return CommandResult.failure("Empty command")

    timeout = (timeout_ms if timeout_ms is not None else DEFAULT_TIMEOUT_MS) / 1000
    program, *args = [str(part) for part in argv]

    try:
        process = await asyncio.create_subprocess_exec(
            program,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return CommandResult.failure(
            f"Command not found: {program}", exit_code=EXIT_NOT_FOUND
        )
    except PermissionError:
        return CommandResult.failure(
            f"Permission denied: {program}", exit_code=EXIT_NOT_EXECUTABLE
        )
    except OSError as e:
        return CommandResult.failure(f"Failed to start {program}: {e}")

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        _kill(process)
        try:
            await process.wait()
        except Exception as e:
            logger.debug(f"Error reaping timed out process {program}: {e}")
        return CommandResult(
            success=False,
            stderr=f"Command timed out after {int(timeout * 1000)}ms",
            exit_code=EXIT_TIMEOUT,
            timed_out=True,
        )
    except asyncio.CancelledError:
        _kill(process)
        raise
    except Exception as e:
        _kill(process)
        return CommandResult.failure(f"Failed to run {program}: {e}")

    exit_code = process.returncode if process.returncode is not None else 1
    return CommandResult(
        success=exit_code == 0,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
        exit_code=exit_code,
    )


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        pass
