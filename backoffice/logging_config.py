"""Handler setup for the ``backoffice`` logger tree.

Modules log with ``extra={...}``; the formatter here writes those fields out
next to the message as one JSON line per record.
"""
from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

LOGGER_NAME = "backoffice"

_STDLIB_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            payload["exc_type"] = type(record.exc_info[1]).__name__
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: Union[int, str] = logging.INFO,
    stream: Any = None,
    handler: Optional[logging.Handler] = None,
) -> None:
    """Attach one structured handler to the ``backoffice`` logger (idempotent)."""

    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    root.propagate = False
    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``. Tests only."""

    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(LOGGER_NAME)
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True
