"""Structured (one JSON object per line) logging for the auth service."""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Attributes passed via `extra=` that are copied into the JSON line
REQUEST_FIELDS = ("request_id", "route", "method", "status", "remote_addr", "principal", "action")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        line.update({k: getattr(record, k) for k in REQUEST_FIELDS if getattr(record, k, None) is not None})
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def configure_logging(log_file: str | None = None, log_level: str | None = None) -> None:
    """Send JSON logs to stdout, and to log_file when given.

    Defaults come from ORACLENET_LOG_FILE and ORACLENET_LOG_LEVEL (INFO).
    """
    formatter = JsonFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    log_file = log_file or os.getenv("ORACLENET_LOG_FILE")
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a"))

    for handler in handlers:
        handler.setFormatter(formatter)

    level_name = (log_level or os.getenv("ORACLENET_LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.handlers = handlers
