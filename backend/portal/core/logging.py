# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for the portal backend.

JSON lines for machines, one-line text for humans. Both formats carry the
correlation fields (tool, action, user, agent, workflow, execution) passed
through ``extra=``, and both scrub OAuth secrets before anything is written.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

# Printed first, in this order, by the text formatter
CORRELATION_FIELDS = ("tool", "action", "user_id", "agent_id", "workflow_id", "execution_id")

# Never written to a log in clear text
SECRET_FIELDS = frozenset({
    "access_token",
    "refresh_token",
    "client_secret",
    "code",
    "state",
    "authorization",
    "password",
})

REDACTED = "[REDACTED]"


def redact(value: Any) -> Any:
    """Recursively mask secret keys in dicts and lists."""
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SECRET_FIELDS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields supplied via ``extra=``, secrets masked."""
    return redact({k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS})


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **extra_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """
    Human-readable lines:

        2025-01-01 12:00:00 - portal.service.router - INFO - message [tool=slack user_id=u1]
    """

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = extra_fields(record)
        ordered = [k for k in CORRELATION_FIELDS if k in fields]
        ordered += sorted(k for k in fields if k not in CORRELATION_FIELDS)
        if not ordered:
            return line
        context = " ".join(f"{k}={fields[k]}" for k in ordered)
        return f"{line} [{context}]"


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Get a configured logger.

    Calling again with the same name reconfigures the logger in place
    instead of stacking handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False

    formatter = JSONFormatter() if log_format == "json" else TextFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "INFO",
    **fields: Any
) -> None:
    """Log a named event; ``fields`` become structured extras."""
    getattr(logger, level.lower())(event, extra={"event": event, **fields})


def get_api_logger() -> logging.Logger:
    """Logger for API routes."""
    from portal.core.config import get_config
    config = get_config()
    return get_logger("portal.api", log_level=config.log_level, log_format=config.log_format)


def get_service_logger(service_name: str) -> logging.Logger:
    """Logger for a service component, e.g. ``portal.service.router``."""
    from portal.core.config import get_config
    config = get_config()
    return get_logger(
        f"portal.service.{service_name}",
        log_level=config.log_level,
        log_format=config.log_format
    )
