"""
Logging setup for the graph backend.

Console output always; when LOG_DIR is set, JSON lines are also written to a
daily rotating file kept for 14 days.
"""
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from config import LOG_DIR, LOG_LEVEL

LOGGER_NAME = "graph_backend"
LOG_FILE_NAME = "graph_backend.log"
LOG_RETENTION_DAYS = 14

# Request bodies under these prefixes carry passwords
REDACTED_PATH_PREFIXES = ("/auth", "/user")
REDACTED = "[REDACTED]"

# LogRecord attributes that are not user supplied `extra` fields
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def structured_log_line(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including any `extra` fields."""

    def format(self, record: logging.LogRecord) -> str:
        event: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                event[key] = value
        if record.exc_info:
            event["exc_info"] = self.formatException(record.exc_info)
        return structured_log_line(event)


def ensure_log_dir(log_dir: str) -> Path:
    """Ensure log directory exists."""
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure the application logger. Safe to call more than once.

    Args:
        level: Level name, defaults to LOG_LEVEL
        log_dir: Directory for the rotating JSON log, defaults to LOG_DIR
    """
    level = (level or LOG_LEVEL).upper()
    log_dir = log_dir if log_dir is not None else LOG_DIR

    logging.basicConfig(level=level, format="%(message)s")
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if log_dir and not any(getattr(h, "_graph_backend_file", False) for h in logger.handlers):
        handler = logging.handlers.TimedRotatingFileHandler(
            ensure_log_dir(log_dir) / LOG_FILE_NAME,
            when="midnight",
            backupCount=LOG_RETENTION_DAYS,
            encoding="utf-8",
        )
        handler.setFormatter(JsonFormatter())
        handler._graph_backend_file = True
        logger.addHandler(handler)
    return logger


def should_redact_body(path: str) -> bool:
    return any(path == p or path.startswith(p + "/") for p in REDACTED_PATH_PREFIXES)


def loggable_body(path: str, body: bytes, limit: int = 2048) -> Optional[str]:
    """Request body as it may appear in logs: redacted for credential routes, truncated otherwise."""
    if not body:
        return None
    if should_redact_body(path):
        return REDACTED
    text = body[:limit].decode("utf-8", errors="replace")
    return text + "..." if len(body) > limit else text
