"""
Centralized Logging

Architectural Intent:
- One handler on the ``stratus`` logger, configured once by the CLI
- Human-readable lines by default, one JSON object per line when log_json is set
- Log records about a resource carry its address, type and operation as
  structured fields (passed through ``extra=``)

Design Decisions:
- httpx and httpcore log every request at INFO; they are held at WARNING
  unless the run asked for DEBUG output
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Union

from stratus.domain.errors import ValidationError

RESOURCE_FIELDS = ("address", "resource_type", "operation")

_TRANSPORT_LOGGERS = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in RESOURCE_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def resolve_level(level: Union[int, str]) -> int:
    """Accept a numeric level or a level name such as "debug"."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValidationError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure logging for a provider run.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ... or the numeric value)
        json_format: Emit JSON lines instead of the human-readable format.
    """
    level = resolve_level(level)
    root = logging.getLogger("stratus")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )
    root.addHandler(handler)

    transport_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
