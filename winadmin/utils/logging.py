"""
Logging setup for winadmin.

Every run writes two streams:
- Console output on stderr, colored when the terminal allows it
- An append-only file that always records DEBUG, so each setting write and
  contact change leaves an audit line

Environment overrides:
    WINADMIN_DEBUG=1            force DEBUG on the console
    WINADMIN_LOG_LEVEL=WARNING  console level
    WINADMIN_LOG_FILE=path      log file (none/disabled turns file logging off)
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from winadmin.utils.paths import resolve_config_dir

LOGGER_NAME = "winadmin"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Dated log files are named winadmin_YYYYMMDD.log
LOG_FILE_PREFIX = "winadmin_"

ENV_LOG_LEVEL = "WINADMIN_LOG_LEVEL"
ENV_DEBUG = "WINADMIN_DEBUG"
ENV_LOG_FILE = "WINADMIN_LOG_FILE"

_LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_DISABLED_VALUES = ("none", "disabled")


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps the level name and message in ANSI colors."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and self._supports_color()

    @staticmethod
    def _supports_color() -> bool:
        isatty = getattr(sys.stderr, "isatty", None)
        if isatty is None or not isatty():
            return False
        # https://no-color.org/
        if os.environ.get("NO_COLOR"):
            return False
        return os.environ.get("TERM", "") != "dumb"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color is None:
            return super().format(record)

        # Color a copy; the file handler formats the same record afterwards
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        colored.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(colored)


def get_log_level_from_env() -> int:
    """Console level from WINADMIN_DEBUG / WINADMIN_LOG_LEVEL (default INFO)."""
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    name = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    return _LEVEL_NAMES.get(name, logging.INFO)


def get_default_log_dir() -> Path:
    """The logs directory inside the configuration directory."""
    return resolve_config_dir() / "logs"


def _dated_log_name() -> str:
    return f"{LOG_FILE_PREFIX}{datetime.now():%Y%m%d}.log"


def get_log_file_path() -> Optional[Path]:
    """
    Log file named by WINADMIN_LOG_FILE, or today's file in the logs dir.

    Returns:
        Path to the log file, or None if file logging is disabled
    """
    configured = os.environ.get(ENV_LOG_FILE)
    if configured:
        if configured.lower() in _DISABLED_VALUES:
            return None
        return Path(configured)
    return get_default_log_dir() / _dated_log_name()


def _open_file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the winadmin logger for one run.

    Args:
        level: Console level. If None, taken from the environment.
        verbose: Force DEBUG and include file/line in console output.
        log_dir: Directory for the dated log file.
        log_file: Explicit log file; takes precedence over log_dir.
        enable_file_logging: If False, log to the console only.
        use_colors: Color console output when the terminal supports it.

    Returns:
        The configured "winadmin" logger

    Example:
        setup_logging(verbose=True, log_file=Path("C:/Logs/ca_config.log"))
    """
    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level)

    fmt = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(fmt, DATE_FORMAT)
        if use_colors
        else logging.Formatter(fmt, DATE_FORMAT)
    )
    logger.addHandler(console)

    if not enable_file_logging:
        return logger

    if log_file:
        path: Optional[Path] = Path(log_file)
    elif log_dir:
        path = Path(log_dir) / _dated_log_name()
    else:
        path = get_log_file_path()

    if path is None:
        return logger

    try:
        logger.addHandler(_open_file_handler(path))
    except OSError as e:
        logger.warning(f"Could not create log file {path}: {e}")
        return logger

    # The file handler records everything; the console keeps its own level
    logger.setLevel(logging.DEBUG)
    logger.debug(f"Log file: {path}")
    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the newest keep_count dated log files.

    Args:
        log_dir: Directory holding the logs (default: <config dir>/logs)
        keep_count: Files to keep; 0 disables cleanup

    Returns:
        Number of files deleted
    """
    if keep_count <= 0:
        return 0

    directory = Path(log_dir) if log_dir else get_default_log_dir()
    if not directory.is_dir():
        return 0

    newest_first = sorted(
        directory.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    deleted = 0
    for stale in newest_first[keep_count:]:
        try:
            stale.unlink()
        except OSError:
            continue  # still open by another run
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the winadmin hierarchy."""
    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "cleanup_old_logs",
    "ColoredFormatter",
    "get_log_level_from_env",
    "get_log_file_path",
    "get_default_log_dir",
    "LOGGER_NAME",
    "DEFAULT_FORMAT",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
]
