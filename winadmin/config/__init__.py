"""
winadmin.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from winadmin.config.generator import generate_default_config, save_config_file
from winadmin.config.loader import (
    DEFAULTS,
    ConfigError,
    ConfigLoader,
    with_defaults,
)

__all__ = [
    "ConfigLoader",
    "ConfigError",
    "DEFAULTS",
    "with_defaults",
    "generate_default_config",
    "save_config_file",
]
