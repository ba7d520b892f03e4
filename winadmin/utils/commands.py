"""
External command execution with bounded timeouts.

Every privileged Windows tool used by winadmin (certutil, auditpol, net) is
invoked through run_command so that an unreachable CA service or a hung tool
cannot block a run forever.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

logger = logging.getLogger(__name__)

# Default timeout for a single external command (seconds)
DEFAULT_COMMAND_TIMEOUT = 60.0

# Return code reported when the executable could not be found
COMMAND_NOT_FOUND = 127


class CommandTimeoutError(Exception):
    """Raised when an external command does not finish within its timeout."""

    def __init__(self, cmd: Sequence[str], timeout: float):
        self.cmd = list(cmd)
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g}s: {' '.join(self.cmd)}")


def run_command(
    cmd: Sequence[str],
    timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
) -> subprocess.CompletedProcess[str]:
    """
    Run a command and return the result.

    Args:
        cmd: Command and arguments to run
        timeout: Seconds to wait before giving up (None waits forever)

    Returns:
        CompletedProcess with stdout and stderr. A missing executable is
        reported as return code 127 with the error text on stderr.

    Raises:
        CommandTimeoutError: If the command does not finish in time
    """
    logger.debug(f"Running command: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        logger.warning(f"Command not found: {cmd[0]}")
        return subprocess.CompletedProcess(
            args=list(cmd),
            returncode=COMMAND_NOT_FOUND,
            stdout="",
            stderr=str(e),
        )
    except subprocess.TimeoutExpired as e:
        raise CommandTimeoutError(cmd, timeout or 0.0) from e

    if result.returncode != 0:
        logger.debug(f"Command failed with code {result.returncode}: {result.stderr}")
    return result


def combined_output(result: subprocess.CompletedProcess[str]) -> str:
    """Join stdout and stderr of a finished command into one trimmed string."""
    parts = [result.stdout or "", result.stderr or ""]
    return "\n".join(p.strip() for p in parts if p and p.strip())


__all__ = [
    "CommandTimeoutError",
    "DEFAULT_COMMAND_TIMEOUT",
    "COMMAND_NOT_FOUND",
    "run_command",
    "combined_output",
]
