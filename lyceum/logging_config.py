"""
Central logging configuration for Lyceum.

Log lines carry the request id and, once a bearer token has been resolved,
the acting user id. Both live in context variables set per request.

Structured fields go through ``extra``; they show up as JSON keys in
production and as ``key=value`` pairs in development:

    from lyceum.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Progress transitioned", extra={"lecture_id": str(lecture_id)})
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_id_var: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "request_id", "actor_id"}

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")


def bind_actor(user_id: Optional[uuid.UUID]) -> None:
    """Attach the authenticated user to log lines for the rest of the request."""
    actor_id_var.set(str(user_id) if user_id else None)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (uuid.UUID, datetime)):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields passed through ``extra=`` on a log call."""
    return {
        key: _jsonable(value)
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and value is not None
    }


class ContextFilter(logging.Filter):
    """Stamp request and actor ids from context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.actor_id = actor_id_var.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "actor_id"):
            value = getattr(record, key, "-")
            if value != "-":
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(extra_fields(record))
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Readable single-line output with extras appended as key=value."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        line = super().format(record)
        extras = extra_fields(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        return line


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Configure the root logger. Safe to call more than once.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        environment: 'production' selects JSON output
        debug: Force DEBUG regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if environment == "production" else ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
