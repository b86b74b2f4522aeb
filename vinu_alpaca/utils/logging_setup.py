"""
Logging setup: console plus an optional rotating log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from vinu_alpaca.config.models import LoggingConfig


LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Third-party loggers that are too chatty at DEBUG
QUIET_LOGGERS = ("uvicorn.access", "multipart")


def setup_logging(config: LoggingConfig) -> None:
    """
    Configure the root logger from the logging section of config.json.

    Replaces any handlers installed earlier, so it can be called again
    after the configuration changes.
    """
    root = logging.getLogger()
    root.setLevel(config.level)
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(config.level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if config.file:
        try:
            file_handler = RotatingFileHandler(
                config.file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            root.error(f"Cannot open log file {config.file}: {e}")
        else:
            file_handler.setLevel(config.level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            root.info(f"Logging to file: {config.file}")

    if config.level != "DEBUG":
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging initialized at level: {config.level}")
