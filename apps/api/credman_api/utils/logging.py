"""Structured JSON logging utilities.

- One JSON object per line for log aggregation
- request_id / user_id / organization_id come from context variables
- Everything passed via extra={...} is sanitized before it is serialized
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from credman_api.context import organization_id_var, request_id_var, user_id_var
from credman_api.utils.sanitize import REDACTED, is_sensitive_key, sanitize_exc, sanitize_obj, sanitize_str

# Attributes every LogRecord carries; anything else came from extra={...}
_RESERVED_ATTRS = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
})

_CONTEXT_FIELDS = (
    ("request_id", request_id_var),
    ("user_id", user_id_var),
    ("organization_id", organization_id_var),
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter with request and identity context.

    Standard fields: timestamp (ISO 8601 UTC), level, message, module, func, line.
    Context fields are only emitted when set, so background code that runs
    outside a request produces no empty identity fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_str(record.getMessage()),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }

        for field, var in _CONTEXT_FIELDS:
            value = var.get()
            if value:
                log_data[field] = value

        if record.exc_info:
            log_data["exc_info"] = sanitize_exc(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_data:
                continue
            log_data[key] = REDACTED if is_sensitive_key(key) else sanitize_obj(value)

        return json.dumps(log_data, default=str)


def configure_json_logging(log_level: str = "INFO") -> None:
    """Configure the root logger with a single JSON stream handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)
