"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the winadmin configuration
directory across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".winadmin"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "WINADMIN_CONFIG_DIR"

# Backup file name inside the configuration directory
DEFAULT_BACKUP_FILE = Path("backups") / "ca_settings_backup.txt"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. WINADMIN_CONFIG_DIR environment variable
        3. Default directory (~/.winadmin)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def default_backup_path(config_dir: Path | str | None = None) -> Path:
    """Return the default CA settings backup file under the config directory."""
    return resolve_config_dir(config_dir) / DEFAULT_BACKUP_FILE
