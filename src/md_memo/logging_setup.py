"""Process-wide logging configuration for the CLI entry point."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from md_memo.config import LoggingSettings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "md-memo.log"


def configure_logging(settings: LoggingSettings, log_dir: Path, *, verbose: bool = False) -> None:
    """Attach a rotating file handler and a stderr handler to the package logger.

    The core logs through module loggers only, so skipping this call leaves
    logging silent rather than broken.
    """

    package_logger = logging.getLogger("md_memo")
    if getattr(package_logger, "_md_memo_configured", False):
        return

    level = logging.DEBUG if verbose else logging.getLevelName(settings.level)
    if not isinstance(level, int):
        raise ValueError(f"Invalid MD_MEMO_LOG_LEVEL: {settings.level!r}")
    package_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
    except OSError as error:
        print(f"md-memo: file logging disabled: {error}", file=sys.stderr)
    else:
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.addHandler(console_handler)
    package_logger._md_memo_configured = True  # type: ignore[attr-defined]
