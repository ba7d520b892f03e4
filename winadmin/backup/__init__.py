"""
Backup and restore support for CA settings.

This module records append-only snapshots of registry-backed settings
before they are changed, and reads them back for restore.
"""

from winadmin.backup.recorder import BackupError, BackupRecorder

__all__ = ["BackupRecorder", "BackupError"]
