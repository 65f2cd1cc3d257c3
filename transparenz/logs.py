"""Structured JSON logging and HTTP request logging."""

from __future__ import annotations

import json
import logging
import sys
from typing import IO

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "dpanic": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            "ts": record.created,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            entry["stacktrace"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _parse_level(text: str) -> int:
    if text == "":
        return logging.INFO
    if text in (text.lower(), text.upper()) and text.lower() in _LEVELS:
        return _LEVELS[text.lower()]
    raise ValueError(f"invalid log level {text!r}: unrecognized level".replace("'", '"'))


def init_logger(level: str = "info", stream: IO[str] | None = None) -> logging.Logger:
    """Create a logger writing one JSON object per line at the given level."""
    threshold = _parse_level(level)
    logger = logging.Logger("transparenz", threshold)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(_JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status: int,
    duration_ms: int,
    org_id: str = "",
    request_id: str = "",
) -> int:
    """Log one handled HTTP request at a level chosen by its status; return that level."""
    if status >= 500:
        level = logging.ERROR
    elif status >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    fields = {
        "method": method,
        "path": path,
        "status": status,
        "duration": duration_ms,
        "org_id": org_id,
        "request_id": request_id,
    }
    logger.log(level, "HTTP request", extra={"fields": fields})
    return level