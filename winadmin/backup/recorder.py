"""
Backup recorder for CA settings.

Provides functionality to:
- Append captured setting values to a plain-text audit file
- Group each capture under a timestamped snapshot header
- Load the file back into snapshots for restore operations

File format (append-only, one entry per line)::

    # snapshot CA 2024-01-20T10:30:00.000000
    CA\\CRLPeriodUnits=<raw certutil output, first line>
    \\t<raw certutil output, following lines>
    CA\\CRLPeriod=...

Lines that begin with a tab continue the previous entry, so multi-line tool
output is stored verbatim while every entry still starts on its own line.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from winadmin.ca.settings import DEFAULT_TARGET, SettingsSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_HEADER_PREFIX = "# snapshot "
CONTINUATION_PREFIX = "\t"


class BackupError(Exception):
    """Raised when the backup location cannot be created or written."""

    pass


def _fold(value: str) -> str:
    lines = value.splitlines() or [""]
    return f"\n{CONTINUATION_PREFIX}".join(lines)


class BackupRecorder:
    """
    Append-only recorder for setting snapshots.

    Running twice accumulates entries; the file is never truncated.

    Usage:
        recorder = BackupRecorder()
        recorder.record(path, [("CA\\CRLPeriod", "Weeks")])

        # Record a full snapshot with its header
        recorder.record_snapshot(path, snapshot)

        # Read every snapshot back
        snapshots = recorder.load(path)
    """

    def record(
        self,
        path: Path | str,
        entries: Iterable[tuple[str, str]],
        header: str | None = None,
    ) -> Path:
        """
        Append key=value lines to the backup file.

        Args:
            path: Backup file path; its parent directory is created if missing
            entries: Ordered (key, value) pairs
            header: Optional comment line written before the entries

        Returns:
            The resolved backup file path

        Raises:
            BackupError: If the directory cannot be created or the file written
        """
        path = Path(path).expanduser()

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupError(
                f"Cannot create backup directory {path.parent}: {e}"
            ) from e

        lines = []
        if header:
            lines.append(header)
        lines.extend(f"{key}={_fold(value)}" for key, value in entries)

        try:
            with open(path, "a", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")
        except OSError as e:
            raise BackupError(f"Cannot write backup file {path}: {e}") from e

        logger.debug(f"Appended {len(lines)} line(s) to {path}")
        return path

    def record_snapshot(self, path: Path | str, snapshot: SettingsSnapshot) -> Path:
        """Append a snapshot, preceded by its header line."""
        return self.record(path, snapshot.keyed_entries(), header=snapshot.header())

    def load(self, path: Path | str) -> list[SettingsSnapshot]:
        """
        Parse the backup file into snapshots, oldest first.

        Entries written before any header are grouped into a snapshot with
        no timestamp.

        Args:
            path: Backup file path

        Returns:
            List of snapshots (empty if the file does not exist)

        Raises:
            BackupError: If the file exists but cannot be read
        """
        path = Path(path).expanduser()
        if not path.exists():
            return []

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise BackupError(f"Cannot read backup file {path}: {e}") from e

        snapshots: list[SettingsSnapshot] = []
        target: str | None = None
        taken_at: datetime | None = None
        entries: list[list[str]] = []

        def flush() -> None:
            if target is not None or entries:
                snapshots.append(
                    SettingsSnapshot(
                        target_id=target or DEFAULT_TARGET,
                        entries=tuple((name, value) for name, value in entries),
                        taken_at=taken_at,
                    )
                )

        for line in text.splitlines():
            if line.startswith(SNAPSHOT_HEADER_PREFIX):
                flush()
                target, taken_at = _parse_header(line)
                entries = []
            elif line.startswith(CONTINUATION_PREFIX) and entries:
                entries[-1][1] += "\n" + line[len(CONTINUATION_PREFIX) :]
            elif "=" in line:
                key, value = line.split("=", 1)
                prefix, _, name = key.rpartition("\\")
                if target is None and prefix:
                    target = prefix
                entries.append([name, value])
            elif line.strip():
                logger.warning(f"Ignoring unrecognized backup line: {line!r}")

        flush()
        return snapshots


def _parse_header(line: str) -> tuple[str, datetime | None]:
    parts = line[len(SNAPSHOT_HEADER_PREFIX) :].split()
    target = parts[0] if parts else ""
    taken_at = None
    if len(parts) > 1:
        try:
            taken_at = datetime.fromisoformat(parts[1])
        except ValueError:
            taken_at = None
    return target, taken_at
