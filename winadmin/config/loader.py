"""
Configuration loader module for winadmin.

Reads optional defaults from a YAML file (<config dir>/config.yaml). A
missing or empty file is not an error; command-line flags always win over
file values, and DEFAULTS fills whatever neither provides.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from winadmin.utils.paths import resolve_config_dir

DEFAULT_CONFIG_FILE = "config.yaml"

# Values used when neither the config file nor the CLI provides one
DEFAULTS: dict[str, Any] = {
    "verbose": False,
    "log_retention_count": 10,
    "command_timeout": 60,
    "backup_enabled": True,
    "ca_target": "CA",
    "ca_service_name": "certsvc",
    "validate_custom_units": True,
    "audit_category": "Certification Services",
    "primary_address_list": "Global Address List",
    "secondary_address_list": "Offline Global Address List",
}

# Known keys and their accepted types; unknown keys are ignored
SCHEMA: dict[str, type | tuple[type, ...]] = {
    "verbose": bool,
    "log_dir": str,
    "log_file": str,
    "log_retention_count": int,
    "command_timeout": (int, float),
    "backup_enabled": bool,
    "backup_path": str,
    "ca_target": str,
    "ca_service_name": str,
    "aia_fqdn": str,
    "dsconfig_dn": str,
    "validate_custom_units": bool,
    "audit_category": str,
    "primary_address_list": str,
    "secondary_address_list": str,
}

# Names that must not be blank when given
REQUIRED_TEXT = (
    "ca_target",
    "ca_service_name",
    "audit_category",
    "primary_address_list",
    "secondary_address_list",
)

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _check_type(key: str, value: Any) -> None:
    expected = SCHEMA[key]
    # bool is an int subclass; never accept it for numeric keys
    if isinstance(value, bool) and expected is not bool:
        ok = False
    else:
        ok = isinstance(value, expected)
    if not ok:
        raise ConfigError(
            f"Invalid type for '{key}': expected {_type_name(expected)}, "
            f"got {type(value).__name__}"
        )


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        # Load from specific file
        config = loader.load_from_file("C:/admin/winadmin.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """Load the file in the configuration directory."""
        return self.load_from_file(self.config_path)

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration values; empty if the file is missing or empty

        Raises:
            ConfigError: If the file cannot be read or is not a YAML mapping
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(data).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return data

    def validate(self, config: dict[str, Any]) -> None:
        """
        Check types and ranges of the known keys.

        Raises:
            ConfigError: If any value is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            if key in SCHEMA:
                _check_type(key, value)

        retention = config.get("log_retention_count")
        if retention is not None and retention < 0:
            raise ConfigError(f"log_retention_count must be >= 0, got {retention}")

        timeout = config.get("command_timeout")
        if timeout is not None and timeout <= 0:
            raise ConfigError(f"command_timeout must be > 0, got {timeout}")

        for key in REQUIRED_TEXT:
            if key in config and not config[key].strip():
                raise ConfigError(f"{key} cannot be empty")

    def load_and_validate(self) -> dict[str, Any]:
        """Load the configuration file and validate it."""
        config = self.load()
        if config:
            self.validate(config)
        return config


def with_defaults(config: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of config with DEFAULTS filled in for missing keys."""
    return {**DEFAULTS, **config}
