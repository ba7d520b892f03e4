"""
Unit tests for the backup module.

Tests the BackupRecorder class for appending setting snapshots to the
audit file and loading them back for restore.
"""

from datetime import datetime

import pytest

from winadmin.backup.recorder import BackupError, BackupRecorder
from winadmin.ca.settings import SettingsSnapshot


def make_snapshot(entries, taken_at=datetime(2024, 1, 20, 10, 30)):
    return SettingsSnapshot(target_id="CA", entries=tuple(entries), taken_at=taken_at)


class TestRecord:
    """Tests for BackupRecorder.record."""

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "CABackup" / "ca_settings_backup.txt"

        result = BackupRecorder().record(path, [("CA\\CRLPeriod", "Weeks")])

        assert result == path
        assert path.read_text(encoding="utf-8") == "CA\\CRLPeriod=Weeks\n"

    def test_appends_across_runs(self, tmp_path):
        """Running twice accumulates entries instead of truncating."""
        path = tmp_path / "backup.txt"
        recorder = BackupRecorder()

        recorder.record(path, [("CA\\CRLPeriod", "Weeks")])
        recorder.record(path, [("CA\\CRLPeriod", "Days")])

        assert path.read_text(encoding="utf-8").splitlines() == [
            "CA\\CRLPeriod=Weeks",
            "CA\\CRLPeriod=Days",
        ]

    def test_multiline_value_folded(self, tmp_path):
        path = tmp_path / "backup.txt"

        BackupRecorder().record(path, [("CA\\CRLPeriod", "line one\nline two")])

        assert path.read_text(encoding="utf-8") == "CA\\CRLPeriod=line one\n\tline two\n"

    def test_uncreatable_directory_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        with pytest.raises(BackupError, match="directory"):
            BackupRecorder().record(blocker / "backup.txt", [("CA\\X", "1")])

    def test_unwritable_file_raises(self, tmp_path):
        """A directory at the file path cannot be opened for append."""
        path = tmp_path / "backup.txt"
        path.mkdir()

        with pytest.raises(BackupError, match="write"):
            BackupRecorder().record(path, [("CA\\X", "1")])


class TestRecordSnapshot:
    """Tests for BackupRecorder.record_snapshot."""

    def test_header_precedes_entries(self, tmp_path):
        path = tmp_path / "backup.txt"
        snapshot = make_snapshot([("CRLPeriodUnits", "52"), ("CRLPeriod", "Weeks")])

        BackupRecorder().record_snapshot(path, snapshot)

        assert path.read_text(encoding="utf-8").splitlines() == [
            "# snapshot CA 2024-01-20T10:30:00",
            "CA\\CRLPeriodUnits=52",
            "CA\\CRLPeriod=Weeks",
        ]


class TestLoad:
    """Tests for BackupRecorder.load."""

    def test_missing_file(self, tmp_path):
        assert BackupRecorder().load(tmp_path / "nope.txt") == []

    def test_round_trip_multiple_snapshots(self, tmp_path):
        path = tmp_path / "backup.txt"
        recorder = BackupRecorder()
        first = make_snapshot(
            [("CRLPublicationURLs", "  CRLPublicationURLs REG_MULTI_SZ =\n    0: a")]
        )
        second = make_snapshot(
            [("CRLPeriod", "Days")], taken_at=datetime(2024, 2, 1, 8, 0)
        )

        recorder.record_snapshot(path, first)
        recorder.record_snapshot(path, second)
        snapshots = recorder.load(path)

        assert snapshots == [first, second]

    def test_entries_without_header(self, tmp_path):
        """Plain key=value files are read as one undated snapshot."""
        path = tmp_path / "backup.txt"
        path.write_text("CA\\CRLPeriod=Weeks\nCA\\AuditFilter=127\n", encoding="utf-8")

        snapshots = BackupRecorder().load(path)

        assert len(snapshots) == 1
        assert snapshots[0].target_id == "CA"
        assert snapshots[0].taken_at is None
        assert snapshots[0].as_dict() == {"CRLPeriod": "Weeks", "AuditFilter": "127"}

    def test_value_containing_equals(self, tmp_path):
        path = tmp_path / "backup.txt"
        path.write_text(
            "CA\\DSConfigDN=CN=Configuration,DC=example,DC=com\n", encoding="utf-8"
        )

        snapshot = BackupRecorder().load(path)[0]

        assert snapshot.as_dict() == {
            "DSConfigDN": "CN=Configuration,DC=example,DC=com"
        }

    def test_unrecognized_lines_ignored(self, tmp_path, caplog):
        path = tmp_path / "backup.txt"
        path.write_text("garbage\nCA\\CRLPeriod=Weeks\n", encoding="utf-8")

        with caplog.at_level("WARNING", logger="winadmin"):
            snapshots = BackupRecorder().load(path)

        assert snapshots[0].names() == ["CRLPeriod"]
        assert "garbage" in caplog.text
