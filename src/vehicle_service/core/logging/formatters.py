"""
Log formatters.

  - JsonFormatter: one JSON object per line for log collectors. Includes
    service/env/version/request_id and every `extra` field; values that are not
    JSON-serializable are stringified so formatting never raises.
  - ColorFormatter: compact, ANSI-colored lines for local development.
"""

import json
import logging
from logging import LogRecord
from typing import Any

from ...utils.logging import DEFAULT_PROJECT_NAME, get_project_version

PROJECT_VERSION = get_project_version()

# LogRecord attributes that are not user-supplied extras.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "request_id", "taskName"}


class JsonFormatter(logging.Formatter):
    """
    Structured JSON formatter.

    Construction:
      - env: environment name ("development", "production", ...)
      - service: logical service name
      - datefmt: passed to logging.Formatter (used by formatTime)
    """

    def __init__(self, *, env: str | None = None, service: str = DEFAULT_PROJECT_NAME, datefmt: str | None = None):
        super().__init__(datefmt=datefmt)
        self.env = env
        self.service = service

    def format(self, record: LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "request_id": getattr(record, "request_id", "-"),
            "service": self.service,
            "env": self.env,
            "version": PROJECT_VERSION,
        }

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_record or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                log_record[key] = value
            except (TypeError, ValueError):
                log_record[key] = str(value)

        return json.dumps(log_record, ensure_ascii=False, default=str)


class ColorFormatter(logging.Formatter):
    """
    TIMESTAMP | LEVEL | LOGGER | REQUEST_ID | MESSAGE, with the level colorized.
    """

    COLOR_CODES = {
        "DEBUG": "\033[1;36m",     # bold cyan
        "INFO": "\033[32m",        # green
        "WARNING": "\033[33m",     # yellow
        "ERROR": "\033[31m",       # red
        "CRITICAL": "\033[1;41m",  # bold on red background
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: LogRecord) -> str:
        color = self.COLOR_CODES.get(record.levelname, "")
        reset = self.COLOR_CODES["RESET"]
        timestamp = self.formatTime(record, self.datefmt)

        line = (
            f"{timestamp} | {color}{record.levelname:<8}{reset} | "
            f"{record.name:<40} | "
            f"{getattr(record, 'request_id', '-'):<36} | "
            f"{record.getMessage()}"
        )
        if record.exc_info:
            line = line + "\n" + self.formatException(record.exc_info)
        return line
