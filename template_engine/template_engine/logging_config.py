"""Logging setup shared by the CLI and embedding applications.

Plain mode uses the usual ``asctime  level  name  message`` line format.
Structured mode emits one JSON object per line::

    {
        "timestamp": "2026-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "template_engine.builder.template_manager",
        "message": "Built template 'app_template': ...",
        "exc_info": "Traceback ..."  // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

PLAIN_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

# Set on handlers installed here so a second call replaces them.
_HANDLER_MARKER = "_pgtemplate_handler"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(debug: bool = False, structured: bool = False) -> None:
    """Install a single pgtemplate stderr handler on the root logger.

    Parameters
    ----------
    debug:
        Log at DEBUG instead of WARNING.
    structured:
        Emit JSON lines instead of plain text.
    """
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler()
    setattr(handler, _HANDLER_MARKER, True)
    handler.setFormatter(JSONFormatter() if structured else logging.Formatter(PLAIN_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if debug else logging.WARNING)
