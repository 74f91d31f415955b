"""
Structured logging for EventPlan.

Production (EVENTPLAN_ENV=production) writes one rotating JSON file per named
logger under EVENTPLAN_LOG_DIR; anything else logs readable lines to stdout.
EVENTPLAN_LOG_LEVEL sets the level for every logger.

Loggers:
- services: events, participants, categories, clients
- db: engine and session lifecycle
- webhooks: outbound notifications
- scheduler: the daily sweep
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional


LOGGER_NAMES = ("services", "db", "webhooks", "scheduler")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Attributes present on every LogRecord; anything else came from extra={...}
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with extra={...} fields inlined."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data = {
            "timestamp": created.replace(tzinfo=None).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    [2025-12-29 10:30:45] INFO - eventplan.services - Created event: evt_01hgw...
    """

    def __init__(self):
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def _env(name: str, default: str) -> str:
    return os.environ.get(f"EVENTPLAN_{name}", default)


def _build_handler(logger_name: str, level: int, log_dir: Optional[Path]) -> logging.Handler:
    if log_dir is not None:
        handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{logger_name}.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8"
        )
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ConsoleFormatter())
    handler.setLevel(level)
    return handler


def configure_logging() -> Dict[str, logging.Logger]:
    """
    (Re)configure every named logger from the environment.

    Returns:
        Logger name -> configured "eventplan.<name>" Logger
    """
    level = getattr(logging, _env("LOG_LEVEL", "INFO").upper(), logging.INFO)

    log_dir = None
    if _env("ENV", "development").lower() == "production":
        log_dir = Path(_env("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)

    loggers = {}
    for logger_name in LOGGER_NAMES:
        logger = logging.getLogger(f"eventplan.{logger_name}")
        logger.setLevel(level)
        logger.propagate = False
        logger.handlers.clear()
        logger.addHandler(_build_handler(logger_name, level, log_dir))
        loggers[logger_name] = logger

    return loggers


_loggers: Optional[Dict[str, logging.Logger]] = None


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger, configuring logging on first use.

    Raises:
        ValueError: If name is not one of LOGGER_NAMES
    """
    global _loggers

    if _loggers is None:
        _loggers = configure_logging()

    if name not in _loggers:
        raise ValueError(
            f"Unknown logger name: {name}. "
            f"Valid names: {', '.join(LOGGER_NAMES)}"
        )

    return _loggers[name]
