"""Logging utilities for graph-glean.

Records carry extraction context through ``extra`` keys prefixed ``ctx_``;
:func:`log_context` builds them so chunk ids are always rendered the same way.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson

_DEFAULT_LEVEL = os.environ.get("GLEAN_LOG_LEVEL", "INFO")
_CONTEXT_PREFIX = "ctx_"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with ``ctx_`` extras grouped under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        context = {
            key[len(_CONTEXT_PREFIX) :]: value
            for key, value in record.__dict__.items()
            if key.startswith(_CONTEXT_PREFIX)
        }
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["error_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def log_context(*, chunk_id: int | None = None, document: int | None = None, **fields: Any) -> dict[str, Any]:
    """Build the ``extra`` mapping for a log call."""
    extra = {f"{_CONTEXT_PREFIX}{key}": value for key, value in fields.items()}
    if chunk_id is not None:
        extra[f"{_CONTEXT_PREFIX}chunk_id"] = f"{chunk_id:016x}"
    if document is not None:
        extra[f"{_CONTEXT_PREFIX}document"] = document
    return extra


def configure_logging(level: str | int = _DEFAULT_LEVEL, use_json: bool = True) -> None:
    """Send all records to stderr, keeping stdout free for command output."""
    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stderr)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.handlers = [handler]


def get_logger(name: str = "graph_glean") -> logging.Logger:
    """Return a logger, configuring the root on first use."""
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger", "log_context"]
