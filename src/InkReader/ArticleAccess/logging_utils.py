"""Structured logging helpers shared across article access components."""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional, Union

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging"]

ROOT_LOGGER_NAME = "InkReader"

_SENSITIVE_KEYS = {
    "authorization",
    "auth_token",
    "token",
    "jwt",
    "signature",
    "session_key",
    "secret",
    "password",
}
_BEARER_RE = re.compile(r"bearer\s+\S+", re.IGNORECASE)
MASK = "***masked***"


def mask_sensitive_data(payload: object, key_hint: Optional[str] = None) -> object:
    """Return a copy of ``payload`` with tokens and signatures masked."""

    if isinstance(payload, dict):
        return {key: mask_sensitive_data(value, str(key).lower()) for key, value in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [mask_sensitive_data(item, key_hint) for item in payload]
    if key_hint in _SENSITIVE_KEYS and payload is not None:
        return MASK
    if isinstance(payload, str) and "bearer " in payload.lower():
        return _BEARER_RE.sub("Bearer " + MASK, payload)
    return payload


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log lines."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def setup_logging(
    level: Union[int, str] = "INFO",
    *,
    json_path: Optional[Path] = None,
    max_log_size_mb: int = 20,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``InkReader`` logger with console and optional JSON output."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_inkreader_managed", False):
            logger.removeHandler(handler)
            if getattr(handler, "stream", None) not in (sys.stdout, sys.stderr):
                handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._inkreader_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if json_path is not None:
        json_path = Path(json_path)
        json_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            json_path,
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._inkreader_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
