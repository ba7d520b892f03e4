"""
Configuration file generator for winadmin.

Provides functionality to generate a default configuration file with
documentation for all available options.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# winadmin Configuration
# ======================
#
# Default options for the winadmin tools.
# CLI arguments will always override these values.
#
# To use this configuration:
#   1. Save as ~/.winadmin/config.yaml (or custom location)
#   2. Uncomment and modify options as needed


# Logging Options
# ---------------

# Enable verbose console output
# Default: false
# verbose: true

# Directory for dated log files (winadmin_YYYYMMDD.log)
# Default: ~/.winadmin/logs
# log_dir: C:/Logs/winadmin

# Single append-only log file (overrides log_dir)
# log_file: C:/Logs/ca_config.log

# Number of dated log files to keep (0 keeps all)
# Default: 10
# log_retention_count: 10


# External Commands
# -----------------

# Seconds to wait for certutil, auditpol and net before giving up
# Default: 60
# command_timeout: 60


# Certificate Authority
# ---------------------

# Capture current settings before changing them
# Default: true
# backup_enabled: true

# Append-only backup file
# Default: ~/.winadmin/backups/ca_settings_backup.txt
# backup_path: C:/CABackup/ca_settings_backup.txt

# Registry node passed to certutil (-getreg/-setreg CA\\<Setting>)
# Default: CA
# ca_target: CA

# Service restarted after the settings are applied
# Default: certsvc
# ca_service_name: certsvc

# Host name used for the AIA and CDP publication URLs (prompted if unset)
# aia_fqdn: pki.example.com

# Active Directory configuration partition DN (prompted if unset)
# dsconfig_dn: CN=Configuration,DC=example,DC=com

# Reject non-numeric custom period units
# Default: true
# validate_custom_units: true

# Audit policy subcategory enabled for success and failure
# Default: Certification Services
# audit_category: Certification Services


# Global Address List Sync
# ------------------------

# Online address list consulted first
# Default: Global Address List
# primary_address_list: Global Address List

# Cached address list used when the online one is unavailable or empty
# Default: Offline Global Address List
# secondary_address_list: Offline Global Address List
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = Path(config_path).expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
