"""Structured Logging — JSON formatter and setup for the settlement service.

Invariants:
    - Every line carries timestamp, level, logger name and message
    - Settlement context (round_id, reference, participant, amount, outcome ...) is
      emitted as top-level keys when passed via `extra=`
    - setup_logging is idempotent: a second call replaces, never duplicates, its handler

Design Decisions:
    - stdlib JSONFormatter, no logging dependency (ADR: one JSON line per event)
    - Scheduler and HTTP client loggers capped at WARNING: a 10s tick would
      otherwise log every run
"""

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "round_id", "reference", "participant", "amount", "outcome",
    "error_code", "attempt", "path", "fields",
)
_NOISY_LOGGERS = ("apscheduler", "httpx", "httpcore")
_HANDLER_NAME = "burnwheel"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log.update(_context(record))
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable lines with settlement context appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ctx = _context(record)
        if ctx:
            line += " " + " ".join(f"{k}={v}" for k, v in ctx.items())
        return line


def _context(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in _EXTRA_FIELDS
        if record.__dict__.get(key) is not None
    }


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure root logging once per process (re-entrant for tests)."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ConsoleFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
