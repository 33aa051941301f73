"""Logging Setup - one JSON object per log line, or plain text for local runs.

Invariants:
    - Every JSON line carries timestamp (UTC), level, logger and message
    - Store and API context passed via `extra` (subscription_id, user_id, service,
      operation, error_code, path, total) is copied out only when set
    - Values json cannot encode (UUID, date) are rendered with str()

Design Decisions:
    - Formatter on stdlib logging, configured once from the app lifespan
"""

import logging
import json
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "subscription_id", "user_id", "service", "operation",
    "error_code", "path", "total",
)


class JSONFormatter(logging.Formatter):
    """Render a LogRecord plus its known extra fields as a JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Attach a stream handler to the root logger; fmt is "json" or "text"."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
