"""
Logging configuration.

- **Rotating file handlers**: a JSON stream with every record plus an
  error-only stream, both size-bounded via ``RotatingFileHandler``.
- **Console handler**: coloured, human-readable output for local development.
- **Debug toggle**: ``DEBUG=true`` switches every logger to DEBUG.
- **Domain fields**: records carrying ``collection``, ``event_name`` or
  ``source_tag`` (passed via ``extra=``) surface them as JSON keys so store
  and bus activity can be filtered per collection or per event.

Call ``setup_logging()`` once at startup (``main.py`` does).  Modules only
ever call ``logging.getLogger(__name__)``.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from invest_sync.core.config import settings

LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")
LOG_FILE = "invest-sync.log"
ERROR_LOG_FILE = "invest-sync-error.log"

# Attributes copied from ``extra=`` into the structured output.
EXTRA_FIELDS = ("collection", "event_name", "source_tag", "outcome", "elapsed_ms")


def domain_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """The ``EXTRA_FIELDS`` a record actually carries."""
    fields = {}
    for key in EXTRA_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            fields[key] = value
    return fields


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Output example::

        {"timestamp": "2026-10-18T10:30:00.123+00:00", "level": "WARNING",
         "logger": "invest_sync.store.fetch", "message": "Fetch failed ...",
         "collection": "investments", "outcome": "failed"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(domain_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured level names; the collection or event name is shown as a tag."""

    COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, self.RESET)
        when = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")

        subject = getattr(record, "collection", None) or getattr(record, "event_name", None)
        tag = f" [{subject}]" if subject else ""

        line = (
            f"{when} {colour}{record.levelname:<8}{self.RESET} "
            f"{record.name}{tag}: {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _rotating_handler(filename: str, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=os.path.join(LOG_DIR, filename),
        maxBytes=settings.LOG_FILE_MAX_BYTES,
        backupCount=settings.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def resolve_level(debug: bool, name: Optional[str]) -> int:
    """``DEBUG`` wins; otherwise ``LOG_LEVEL``, falling back to INFO."""
    if debug:
        return logging.DEBUG
    return getattr(logging, (name or "INFO").upper(), logging.INFO)


def setup_logging() -> None:
    """
    Attach console + rotating file handlers to the root logger.

    Does nothing when the root logger already has handlers, so repeated
    imports of ``main`` (tests, reloaders) don't duplicate output.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    level = resolve_level(settings.DEBUG, settings.LOG_LEVEL)
    root.setLevel(level)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter())
    root.addHandler(console)

    os.makedirs(LOG_DIR, exist_ok=True)
    root.addHandler(_rotating_handler(LOG_FILE, level))
    root.addHandler(_rotating_handler(ERROR_LOG_FILE, logging.ERROR))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.DEBUG if settings.DEBUG else logging.WARNING)

    root.info(
        "Logging initialized: level=%s, dir=%s",
        logging.getLevelName(level),
        LOG_DIR,
    )
