# -*- coding: utf-8 -*-
from __future__ import annotations
import logging, logging.handlers
from pathlib import Path

LOG_NAME = "asset_intake.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# third-party loggers that share the intake log
WIRED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")


def _is_intake_handler(h: logging.Handler) -> bool:
    return getattr(h, "baseFilename", "").endswith(LOG_NAME)


def setup_logging(settings) -> Path:
    """
    Rotating file log under ASSET_DATA_ROOT/logs/asset_intake.log.

    Level and rotation come from settings (LOG_LEVEL, LOG_MAX_BYTES,
    LOG_BACKUP_COUNT); LOG_TO_CONSOLE adds a stderr handler. SQL statements
    are only logged when DB_ECHO is on. Safe to call more than once.
    """
    log_dir = Path(settings.ASSET_DATA_ROOT).expanduser() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_NAME
    level = logging.getLevelName(str(settings.LOG_LEVEL).upper())
    if not isinstance(level, int):
        level = logging.INFO

    fmt = logging.Formatter(LOG_FORMAT)
    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(fmt)
    handler.setLevel(level)

    root = logging.getLogger()
    root.setLevel(level)
    if not any(_is_intake_handler(h) for h in root.handlers):
        root.addHandler(handler)

    if settings.LOG_TO_CONSOLE and not any(type(h) is logging.StreamHandler for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        root.addHandler(console)

    for name in WIRED_LOGGERS:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if not any(_is_intake_handler(h) for h in lg.handlers):
            lg.addHandler(handler)

    # engine echo is handled by SQLAlchemy itself; keep it out of INFO otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DB_ECHO else logging.WARNING)

    return log_path
