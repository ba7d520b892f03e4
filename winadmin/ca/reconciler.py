"""
Configuration reconciler for registry-backed CA settings.

Orchestrates one configuration run:
snapshot current values -> append them to the backup file -> apply each
desired value -> apply the fixed unit settings -> read everything back once
for operator verification -> notify the settings-applied hook.

Writes are best effort: the registry tool has no multi-key transaction, so a
failed setting is recorded and logged and the remaining settings are still
applied. Resolving the backup location is fatal and happens before any
write.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from winadmin.backup.recorder import BackupError, BackupRecorder
from winadmin.ca.registry import (
    RegistryError,
    RegistryWriteError,
    SettingRegistry,
    parse_getreg_value,
)
from winadmin.ca.settings import (
    ALWAYS_BACKED_UP,
    FIXED_UNIT_SETTINGS,
    SettingsSnapshot,
)

logger = logging.getLogger(__name__)


class ApplyMode(str, Enum):
    """How a multi-setting apply treats individual failures."""

    BEST_EFFORT = "best_effort"  # keep going, report each setting


@dataclass
class SettingResult:
    """Outcome of applying one setting."""

    name: str
    value: str
    success: bool
    output: str = ""
    error: Optional[RegistryWriteError] = None


@dataclass
class ApplyResult:
    """
    Result of a configuration run.

    Attributes:
        target_id: Registry node that was configured
        snapshot: Values captured before mutation (None when backup disabled)
        backup_path: File the snapshot was appended to
        results: Per-setting outcomes in application order
        verification: Output of the single read-back call
        mode: Apply mode used for the run
    """

    target_id: str
    snapshot: Optional[SettingsSnapshot] = None
    backup_path: Optional[Path] = None
    results: list[SettingResult] = field(default_factory=list)
    verification: str = ""
    mode: ApplyMode = ApplyMode.BEST_EFFORT

    @property
    def succeeded(self) -> list[SettingResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[SettingResult]:
        return [r for r in self.results if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


def _unique(names: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    return list(seen)


class ConfigurationReconciler:
    """
    Apply a flat settings map with an auditable before-image.

    Attributes:
        registry: SettingRegistry the values are read from and written to
        recorder: BackupRecorder used for the before-image
        fixed_settings: Settings applied unconditionally after the desired ones
        always_backed_up: Names captured in every backup
        on_settings_applied: Hook called once after the writes when at least
                             one setting was applied (e.g. service restart)

    Usage:
        reconciler = ConfigurationReconciler(
            CertutilRegistry(),
            on_settings_applied=lambda: ServiceController().restart("certsvc"),
        )
        result = reconciler.apply(
            "CA", config.desired_settings(), do_backup=True, backup_path=path
        )
        for failure in result.failed:
            print(failure.error)
    """

    def __init__(
        self,
        registry: SettingRegistry,
        recorder: Optional[BackupRecorder] = None,
        fixed_settings: Optional[Mapping[str, str]] = None,
        always_backed_up: Optional[Iterable[str]] = None,
        on_settings_applied: Optional[Callable[[], None]] = None,
    ):
        self.registry = registry
        self.recorder = recorder or BackupRecorder()
        self.fixed_settings = dict(
            FIXED_UNIT_SETTINGS if fixed_settings is None else fixed_settings
        )
        self.always_backed_up = tuple(
            ALWAYS_BACKED_UP if always_backed_up is None else always_backed_up
        )
        self.on_settings_applied = on_settings_applied

    def snapshot(self, target_id: str, names: Iterable[str]) -> SettingsSnapshot:
        """
        Capture the current value of each setting.

        Raises:
            BackupError: If any current value cannot be read
        """
        taken_at = datetime.now()
        entries = []
        for name in names:
            try:
                entries.append((name, self.registry.read(name)))
            except RegistryError as e:
                raise BackupError(
                    f"Cannot capture current value of {target_id}\\{name}: {e}"
                ) from e
        return SettingsSnapshot(
            target_id=target_id, entries=tuple(entries), taken_at=taken_at
        )

    def backup(
        self, target_id: str, names: Iterable[str], backup_path: Path | str
    ) -> SettingsSnapshot:
        """Snapshot the named settings and append them to the backup file."""
        snapshot = self.snapshot(target_id, names)
        path = self.recorder.record_snapshot(backup_path, snapshot)
        logger.info(f"Backed up {len(snapshot.entries)} setting(s) to {path}")
        return snapshot

    def _write(self, target_id: str, name: str, value: str) -> SettingResult:
        key = f"{target_id}\\{name}"
        try:
            outcome = self.registry.write(name, value)
            success, output = outcome.success, outcome.output
        except RegistryError as e:
            success, output = False, str(e)

        if success:
            logger.info(f"Set {key} = {value}")
            if output:
                logger.debug(f"{key}: {output}")
            return SettingResult(name=name, value=value, success=True, output=output)

        error = RegistryWriteError(name, value, output)
        logger.error(f"{key}: {error}")
        return SettingResult(
            name=name, value=value, success=False, output=output, error=error
        )

    def apply(
        self,
        target_id: str,
        desired_settings: Mapping[str, str],
        do_backup: bool,
        backup_path: Optional[Path | str] = None,
    ) -> ApplyResult:
        """
        Apply desired settings, then the fixed unit settings.

        Args:
            target_id: Registry node being configured (e.g. "CA")
            desired_settings: Ordered name -> value map, forwarded verbatim
            do_backup: Capture and record current values before writing
            backup_path: Backup file (required when do_backup is True)

        Returns:
            ApplyResult with one SettingResult per write

        Raises:
            BackupError: If the before-image cannot be captured or recorded;
                         nothing has been written in that case
        """
        result = ApplyResult(target_id=target_id)
        writes = list(desired_settings.items())
        writes.extend(self.fixed_settings.items())

        if do_backup:
            if backup_path is None:
                raise BackupError("Backup requested but no backup path was given")
            names = _unique(
                [name for name, _ in writes] + list(self.always_backed_up)
            )
            result.snapshot = self.backup(target_id, names, backup_path)
            result.backup_path = Path(backup_path).expanduser()
        else:
            logger.warning("Backup disabled; current values will not be recorded")

        for name, value in writes:
            result.results.append(self._write(target_id, name, value))

        try:
            result.verification = self.registry.read_all()
        except RegistryError as e:
            logger.error(f"Verification read failed: {e}")
            result.verification = ""
        else:
            logger.info(f"Current {target_id} configuration:\n{result.verification}")

        logger.info(
            f"Applied {len(result.succeeded)}/{len(result.results)} setting(s) "
            f"to {target_id}"
        )

        if self.on_settings_applied is not None and result.succeeded:
            self.on_settings_applied()

        return result

    def restore(
        self,
        snapshot: SettingsSnapshot,
        do_backup: bool = True,
        backup_path: Optional[Path | str] = None,
    ) -> tuple[ApplyResult, list[str]]:
        """
        Re-apply the values recorded in a snapshot.

        The raw tool output stored in the snapshot is parsed back into
        values; entries that hold no value are skipped.

        Returns:
            Tuple of (ApplyResult, names of skipped entries)
        """
        restored: dict[str, str] = {}
        skipped: list[str] = []
        for name, raw in snapshot.entries:
            value = parse_getreg_value(raw, name)
            if value is None:
                logger.warning(f"No restorable value recorded for {name}; skipping")
                skipped.append(name)
            else:
                restored[name] = value

        # Only the recorded settings are restored; no fixed values are added
        reconciler = ConfigurationReconciler(
            self.registry,
            recorder=self.recorder,
            fixed_settings={},
            always_backed_up=(),
            on_settings_applied=self.on_settings_applied,
        )
        result = reconciler.apply(
            snapshot.target_id, restored, do_backup=do_backup, backup_path=backup_path
        )
        return result, skipped
