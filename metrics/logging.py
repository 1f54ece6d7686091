"""
Structured JSON logging formatter for production environments.
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any

# Extra attributes copied into the JSON entry when a log call provides them
EXTRA_FIELDS = (
    "kind",
    "source",
    "provider",
    "operation",
    "error_type",
    "duration",
    "status_code",
    "request_id",
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": record.getMessage(),
            "process_id": record.process,
            "thread_id": record.thread,
            "pathname": record.pathname,
            "line_number": record.lineno,
            "function_name": record.funcName,
        }

        for field_name in EXTRA_FIELDS:
            if hasattr(record, field_name):
                log_entry[field_name] = getattr(record, field_name)

        # Add exception details if present
        if record.exc_info:
            exc_type, exc_value, exc_traceback = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": traceback.format_exception(exc_type, exc_value, exc_traceback),
            }

        return json.dumps(log_entry, ensure_ascii=False, default=str)
