"""Project logger: stderr always, plus a rotating file when ``ORAMA_LOG_FILE`` is set."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from oramacore_client.config.settings import settings

LOGGER_NAME = "oramacore_client"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _resolve_level(raw: str) -> int:
    return _LEVELS.get(str(raw or "").strip().upper(), logging.INFO)


def _file_handler(log_file: str) -> RotatingFileHandler | None:
    path = Path(log_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    except OSError:
        return None


def _build_logger() -> logging.Logger:
    project_logger = logging.getLogger(LOGGER_NAME)
    if project_logger.handlers:
        return project_logger

    level = _resolve_level(settings.log_level)
    project_logger.setLevel(level)
    formatter = logging.Formatter(
        f"%(asctime)s | %(levelname)s | {settings.env} | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = settings.log_file.strip()
    file_handler = _file_handler(log_file) if log_file else None
    if file_handler is not None:
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        project_logger.addHandler(handler)

    project_logger.propagate = False
    if log_file and file_handler is None:
        project_logger.warning("log file unavailable path=%s, logging to stderr only", log_file)
    return project_logger


logger = _build_logger()


def get_logger(name: str) -> logging.Logger:
    """Child logger under the project namespace, e.g. ``oramacore_client.session``."""
    return logger.getChild(name)
