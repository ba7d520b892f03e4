"""
winadmin.utils - Utility module

Common utilities including logging configuration and command execution.
"""

from winadmin.utils.commands import CommandTimeoutError, run_command
from winadmin.utils.paths import (
    DEFAULT_CONFIG_DIR,
    default_backup_path,
    resolve_config_dir,
)

__all__ = [
    "CommandTimeoutError",
    "run_command",
    "resolve_config_dir",
    "default_backup_path",
    "DEFAULT_CONFIG_DIR",
]
