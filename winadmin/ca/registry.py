"""
Registry access for Certificate Authority settings.

Provides the SettingRegistry interface used by the reconciler and its
certutil implementation:
- read(name): raw `certutil -getreg CA\\<name>` output
- write(name, value): `certutil -setreg CA\\<name> <value>` outcome
- read_all(): one `certutil -getreg CA` dump for operator verification

Also parses certutil -getreg output back into values for restore.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from winadmin.ca.settings import DEFAULT_TARGET, MULTI_VALUE_SEPARATOR
from winadmin.utils.commands import (
    COMMAND_NOT_FOUND,
    DEFAULT_COMMAND_TIMEOUT,
    CommandTimeoutError,
    combined_output,
    run_command,
)

logger = logging.getLogger(__name__)

CERTUTIL = "certutil"

# "  CRLPeriodUnits REG_DWORD = 34 (52)"
_VALUE_LINE = re.compile(r"^\s*(?P<name>\S+)\s+REG_(?P<type>[A-Z_]+)\s*=\s*(?P<value>.*)$")
# "    0: 1:C:\Windows\system32\CertSrv\CertEnroll\%1_%3%4.crt"
_MULTI_LINE = re.compile(r"^\s+(?P<index>\d+):\s?(?P<value>.*)$")
# "34 (52)" or "0"
_DWORD = re.compile(r"^(?P<hex>[0-9a-fA-Fx]+)(?:\s+\((?P<dec>-?\d+)\))?$")


class RegistryError(Exception):
    """Raised when the registry tool cannot be invoked or does not respond."""

    pass


class RegistryWriteError(RegistryError):
    """
    A single setting failed to apply.

    Recorded in the per-setting result and logged; the reconciler never lets
    it stop the remaining writes.
    """

    def __init__(self, name: str, value: str, output: str):
        self.name = name
        self.value = value
        self.output = output
        detail = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(f"Failed to set {name}={value!r}: {detail}")


@dataclass(frozen=True)
class WriteOutcome:
    """Result of one registry write: success flag and the tool's output text."""

    success: bool
    output: str = ""


class SettingRegistry(Protocol):
    """Key-value configuration store external to the process."""

    def read(self, name: str) -> str: ...

    def write(self, name: str, value: str) -> WriteOutcome: ...

    def read_all(self) -> str: ...


class CertutilRegistry:
    """
    SettingRegistry backed by certutil.exe.

    Attributes:
        target_id: Registry node passed to certutil (default "CA")
        timeout: Seconds to wait for each certutil call
        executable: certutil executable name or path

    Usage:
        registry = CertutilRegistry(timeout=30)
        raw = registry.read("CRLPeriodUnits")
        outcome = registry.write("CRLPeriodUnits", "52")
    """

    def __init__(
        self,
        target_id: str = DEFAULT_TARGET,
        timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT,
        executable: str = CERTUTIL,
    ):
        self.target_id = target_id
        self.timeout = timeout
        self.executable = executable

    def _key(self, name: str) -> str:
        return f"{self.target_id}\\{name}"

    def _run(self, args: list[str]) -> tuple[int, str]:
        cmd = [self.executable, *args]
        try:
            result = run_command(cmd, timeout=self.timeout)
        except CommandTimeoutError as e:
            raise RegistryError(str(e)) from e
        if result.returncode == COMMAND_NOT_FOUND:
            raise RegistryError(f"{self.executable} is not available: {result.stderr}")
        return result.returncode, combined_output(result)

    def read(self, name: str) -> str:
        """
        Return the raw certutil output for one setting.

        The output is returned even when certutil reports an error (for
        example an unset value) so the backup records exactly what the tool
        said.

        Raises:
            RegistryError: If certutil is missing or times out
        """
        _, output = self._run(["-getreg", self._key(name)])
        return output

    def write(self, name: str, value: str) -> WriteOutcome:
        """
        Set one setting.

        Raises:
            RegistryError: If certutil is missing or times out
        """
        returncode, output = self._run(["-setreg", self._key(name), value])
        return WriteOutcome(success=returncode == 0, output=output)

    def read_all(self) -> str:
        """Return the full `certutil -getreg <target>` dump."""
        _, output = self._run(["-getreg", self.target_id])
        return output


def parse_getreg_value(raw: str, name: Optional[str] = None) -> Optional[str]:
    """
    Extract a setting value from `certutil -getreg` output.

    Handles REG_DWORD (decimal value returned), REG_SZ / REG_EXPAND_SZ
    (text returned as-is) and REG_MULTI_SZ (entries joined with the literal
    backslash-n separator certutil -setreg expects).

    Args:
        raw: certutil output
        name: Only accept a value line for this setting name

    Returns:
        The value as certutil -setreg would accept it, or None if the
        output holds no value (e.g. the setting does not exist)
    """
    lines = raw.splitlines()
    for i, line in enumerate(lines):
        match = _VALUE_LINE.match(line)
        if not match:
            continue
        if name is not None and match.group("name").lower() != name.lower():
            continue

        reg_type = match.group("type")
        value = match.group("value").strip()

        if reg_type == "DWORD":
            dword = _DWORD.match(value)
            if not dword:
                return None
            if dword.group("dec") is not None:
                return dword.group("dec")
            return str(int(dword.group("hex"), 16))

        if reg_type == "MULTI_SZ":
            items = []
            for follow in lines[i + 1 :]:
                # Entries end at the CertUtil: footer or the next unindented line
                if follow.strip() and not follow[:1].isspace():
                    break
                if _VALUE_LINE.match(follow):
                    break
                # Flag decode lines ("CSURL_SERVERPUBLISH -- 1") and blanks are skipped
                item = _MULTI_LINE.match(follow)
                if item:
                    items.append(item.group("value"))
            if value and not items:
                items.append(value)
            return MULTI_VALUE_SEPARATOR.join(items)

        return value

    return None
