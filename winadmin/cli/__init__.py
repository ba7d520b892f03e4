"""CLI package for winadmin."""

from winadmin.cli.formatters import show_apply_result, show_snapshot, show_sync_report
from winadmin.cli.main import (
    EXIT_PARTIAL_FAILURE,
    cli,
    get_config_dir,
    get_config_file,
)
from winadmin.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "EXIT_PARTIAL_FAILURE",
    "cli",
    "get_config_dir",
    "get_config_file",
    "show_apply_result",
    "show_snapshot",
    "show_sync_report",
]
