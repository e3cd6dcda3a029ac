"""Structured Logging: JSON and text formatters carrying the dispatch context.

Invariants:
    - Every record has timestamp, level, logger name and message
    - Dispatch context (user_id, chat_id, update_id, command, state, error_code, ...)
      is emitted when a record carries it, in both formats
    - setup_logging is idempotent: calling it again replaces its own handler

Design Decisions:
    - stdlib logging with a small JSONFormatter: no extra dependency
    - Bot token travels in the Telegram URL path, so httpx request logs are muted
"""

import json
import logging
from datetime import datetime, timezone

EXTRA_KEYS = (
    "user_id", "chat_id", "update_id", "command", "state",
    "error_code", "attempt", "status_code", "path",
)

_HANDLER_NAME = "backlog_bot"


def _extras(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in EXTRA_KEYS if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line with the dispatch context appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if not extras:
            return line
        context = " ".join(f"{k}={v}" for k, v in extras.items())
        first, sep, rest = line.partition("\n")
        return f"{first} [{context}]{sep}{rest}"


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger("httpx").setLevel(logging.WARNING)
