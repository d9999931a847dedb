"""Structured JSON logging.

Every record is one JSON line. Context passed as ``extra={"context": {...}}``
is kept under ``context``; a conversation id found there is also promoted to
a top-level field so one conversation can be followed across modules.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")
PROMOTED_FIELDS = ("conversation_id", "department")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            for name in PROMOTED_FIELDS:
                if name in context:
                    entry[name] = context[name]
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Send every log record to ``stream`` (stdout by default) as JSON, replacing existing handlers."""
    root = logging.getLogger()
    numeric = logging.getLevelName(level.upper())
    root.setLevel(numeric if isinstance(numeric, int) else logging.INFO)

    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"switchboard.{name}")


class ConversationLogAdapter(logging.LoggerAdapter):
    """Binds a conversation id (and optional extra fields) to every record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra") or {}
        kwargs["extra"] = {**extra, "context": {**self.extra, **extra.get("context", {})}}
        return msg, kwargs


def conversation_logger(logger: logging.Logger, conversation_id: str, **fields: Any) -> ConversationLogAdapter:
    return ConversationLogAdapter(logger, {"conversation_id": conversation_id, **fields})
