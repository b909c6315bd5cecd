"""
Logging filters.

- RequestIdFilter: stamps `record.request_id` from a contextvar set per HTTP
  request (see middleware.py). contextvars follow asyncio tasks across awaits,
  which threading.local() does not.
- RedactFilter: masks record attributes whose name marks them as secret
  (credentials for the store and the damage backend, auth headers, ...).

Both filters always return True; they annotate records, they never drop them.
"""

import contextvars
import logging
from logging import LogRecord

# Default None = "no request in progress"; the filter renders that as "-".
_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


def set_request_id(request_id: str | None) -> contextvars.Token:
    """Set the request id for the current context; returns a token for reset_request_id()."""
    return _request_id_ctx.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    _request_id_ctx.reset(token)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """
    Guarantees every LogRecord has `request_id`:
    an explicit `extra={"request_id": ...}` wins, then the contextvar, then "-".
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


class RedactFilter(logging.Filter):
    MASK = "***REDACTED***"
    SENSITIVE = {
        "password",
        "secret",
        "token",
        "authorization",
        "auth",
        "master_key",
        "database_master_key",
        "damage_backend_basic_auth",
        "credential",
    }

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = self.MASK
        return True
