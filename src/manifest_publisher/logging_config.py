"""Structured logging for the manifest publisher.

All modules log under the ``manifest_publisher`` hierarchy with an event-style
message (``branch_created``) and their details in ``extra=``. The package
logger renders them as one JSON object per line, or as plain text for local
work:

    MANIFEST_PUBLISHER_LOG_LEVEL   DEBUG, INFO (default), WARNING, ERROR
    MANIFEST_PUBLISHER_LOG_FORMAT  json (default) or text
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

ROOT_LOGGER = "manifest_publisher"

LEVEL_ENV = "MANIFEST_PUBLISHER_LOG_LEVEL"
FORMAT_ENV = "MANIFEST_PUBLISHER_LOG_FORMAT"

REDACTED = "[REDACTED]"

# Context keys whose values never reach the output (tokens, app keys, JWTs)
SENSITIVE_KEYS = frozenset(
    {
        "auth",
        "authorization",
        "bearer",
        "credential",
        "jwt",
        "key",
        "password",
        "private_key",
        "secret",
        "token",
    }
)

# Attributes present on every LogRecord; anything else arrived through extra=
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        name: REDACTED if name.lower() in SENSITIVE_KEYS else value
        for name, value in vars(record).items()
        if name not in _RECORD_ATTRIBUTES and not name.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON object.

    Keys: ``timestamp`` (UTC, ``Z`` suffix), ``level``, ``logger``,
    ``message``, then ``context`` holding the extras and ``exception`` holding
    the traceback, each only when present. Values that are not JSON types are
    written with str().
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """One readable line per record, for running the publisher by hand."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Attach the package handler and apply level and format.

    Safe to call repeatedly: the single handler is reused and only its
    formatter and the logger level change.

    Args:
        level: Level name; defaults to $MANIFEST_PUBLISHER_LOG_LEVEL or INFO.
            Unknown names fall back to INFO.
        log_format: "json" or "text"; defaults to
            $MANIFEST_PUBLISHER_LOG_FORMAT or json.
    """
    level = level or os.getenv(LEVEL_ENV, "INFO")
    log_format = (log_format or os.getenv(FORMAT_ENV, "json")).lower()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        logger.addHandler(logging.StreamHandler())
    formatter = TextFormatter() if log_format == "text" else StructuredFormatter()
    for handler in logger.handlers:
        handler.setFormatter(formatter)

    # The package handler is the only one that should print these records
    logger.propagate = False
