"""Console and rotating-file logging for captiongen runs."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Iterable, Mapping, Optional

from .utils import ensure_dir_exists

DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

# Model download and inference libraries log every request and shard at INFO.
DEFAULT_QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "filelock", "huggingface_hub", "transformers")

# Marks handlers installed here so a second setup only replaces its own.
_OWNED_HANDLER_ATTR = "_captiongen_owned"


def _install(logger: logging.Logger, handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setFormatter(formatter)
    setattr(handler, _OWNED_HANDLER_ATTR, True)
    logger.addHandler(handler)


def setup_logging(
    log_level: int = logging.INFO,
    log_dir: str = "logs",
    log_file: Optional[str] = "captiongen.log",
    quiet_loggers: Iterable[str] = DEFAULT_QUIET_LOGGERS,
    quiet_level: int = logging.WARNING,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> None:
    """
    Routes captiongen logs to stdout and, when `log_file` is set, to a rotating file.

    Handlers installed by an earlier call are replaced; handlers added by the
    host (a test runner, a web server) are left alone. A file handler that
    cannot be created is reported and skipped so a run never fails on it.

    Args:
        log_level: Minimum level for the root logger and the console.
        log_dir: Directory for the log file.
        log_file: Log file name, or None/empty for console-only logging.
        quiet_loggers: Third-party loggers capped at `quiet_level`.
        quiet_level: Level applied to `quiet_loggers`.
        max_bytes: Rotation size of the log file.
        backup_count: Rotated files kept.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if getattr(handler, _OWNED_HANDLER_ATTR, False):
            root.removeHandler(handler)
            handler.close()

    root.setLevel(log_level)
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    _install(root, console, formatter)

    if log_file:
        log_path = os.path.join(log_dir, log_file)
        try:
            ensure_dir_exists(log_dir)
            _install(
                root,
                RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'),
                formatter,
            )
            root.info(f"Logging to console and {log_path} (level {logging.getLevelName(log_level)})")
        except Exception as e:
            root.error(f"File logging disabled, could not open {log_path}: {e}")
    else:
        root.info("Logging to console only")

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(quiet_level)


def setup_logging_from_config(config: Mapping[str, Any], log_level: int = logging.INFO) -> None:
    """Applies the logging keys of a loaded captiongen configuration."""
    setup_logging(
        log_level=log_level,
        log_dir=config.get('log_dir', 'logs'),
        log_file=config.get('log_file'),
        quiet_loggers=config.get('quiet_loggers', DEFAULT_QUIET_LOGGERS),
        max_bytes=config.get('log_max_bytes', DEFAULT_MAX_BYTES),
        backup_count=config.get('log_backup_count', DEFAULT_BACKUP_COUNT),
    )
