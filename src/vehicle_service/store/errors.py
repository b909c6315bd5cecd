"""
Document-store error model.

The store client never lets a raw SQLAlchemy/DBAPI exception escape. Everything
is translated into a `QueryError(code, body)` shaped like the errors a hosted
document database returns:

| Condition                                    | code            |
| -------------------------------------------- | --------------- |
| unique violation (duplicate id)              | 409             |
| NOT NULL / CHECK violation                   | 400             |
| FOREIGN KEY violation                        | 404             |
| resource / link does not exist               | 404             |
| malformed query or link                      | 400             |
| connection lost / operational failure        | "ECONNRESET"    |
| anything else raised by the database driver  | 500             |
"""

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Type

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

CONNECTION_RESET = "ECONNRESET"


class QueryError(Exception):
    """
    Error returned by the document store.

    - code: numeric status (400, 404, 409, 500, ...) or the string "ECONNRESET"
    - body: raw, store-provided description (logged at DEBUG only)
    """

    def __init__(self, code: int | str, body: str = ""):
        super().__init__(f"{code}: {body}" if body else str(code))
        self.code = code
        self.body = body

    def __repr__(self) -> str:
        return f"QueryError(code={self.code!r}, body={self.body!r})"


# =================================================================================================================
# Constraint classification
# =================================================================================================================


class ConstraintViolation(str, Enum):
    UNIQUE = "unique"
    NOT_NULL = "not_null"
    FOREIGN_KEY = "foreign_key"
    CHECK = "check"
    UNKNOWN = "unknown"


# https://www.postgresql.org/docs/current/errcodes-appendix.html
class PostgresErrorCodes(str, Enum):
    UNIQUE_VIOLATION = "23505"
    NOT_NULL_VIOLATION = "23502"
    FOREIGN_KEY_VIOLATION = "23503"
    CHECK_VIOLATION = "23514"


PGCODE_VIOLATION_MAP = {
    PostgresErrorCodes.UNIQUE_VIOLATION: ConstraintViolation.UNIQUE,
    PostgresErrorCodes.NOT_NULL_VIOLATION: ConstraintViolation.NOT_NULL,
    PostgresErrorCodes.FOREIGN_KEY_VIOLATION: ConstraintViolation.FOREIGN_KEY,
    PostgresErrorCodes.CHECK_VIOLATION: ConstraintViolation.CHECK,
}

VIOLATION_STATUS = {
    ConstraintViolation.UNIQUE: 409,
    ConstraintViolation.NOT_NULL: 400,
    ConstraintViolation.CHECK: 400,
    ConstraintViolation.FOREIGN_KEY: 404,
    ConstraintViolation.UNKNOWN: 500,
}


def _match_any(msg: str, keywords: list[str]) -> bool:
    return any(keyword in msg for keyword in keywords)


def _classify_from_postgres_diag(orig) -> ConstraintViolation | None:
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if not pgcode:
        return None

    violation = PGCODE_VIOLATION_MAP.get(pgcode)
    if violation:
        logger.debug("store.integrity.pg_diagnostic", extra={"pgcode": pgcode})
        return violation

    logger.warning("store.integrity.unknown_pgcode", extra={"pgcode": pgcode})
    return ConstraintViolation.UNKNOWN


def _classify_from_generic_message(msg: str) -> ConstraintViolation:
    """Fallback for SQLite and other drivers without structured diagnostics."""
    normalized = msg.lower()

    if _match_any(normalized, ["unique constraint", "unique failed", "unique violation", "duplicate"]):
        return ConstraintViolation.UNIQUE

    if _match_any(normalized, ["not null constraint", "not null", "null value in column"]):
        return ConstraintViolation.NOT_NULL

    if _match_any(normalized, ["foreign key constraint", "foreign key", "is not present in table"]):
        return ConstraintViolation.FOREIGN_KEY

    if _match_any(normalized, ["check constraint", "check failed"]):
        return ConstraintViolation.CHECK

    logger.warning("store.integrity.unknown_message", extra={"message_snippet": (msg or "")[:200]})
    return ConstraintViolation.UNKNOWN


def classify_integrity_error(exc: IntegrityError) -> ConstraintViolation:
    violation = _classify_from_postgres_diag(exc.orig)
    if violation is not None:
        return violation
    return _classify_from_generic_message(str(exc.orig))


def is_connection_failure(exc: BaseException) -> bool:
    """True for failures where the store could not be reached or the connection dropped."""
    if isinstance(exc, (DisconnectionError, OperationalError, ConnectionError, TimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def to_query_error(exc: BaseException, resource: str | None = None) -> QueryError:
    """Translate a raw database exception into a `QueryError`."""
    if isinstance(exc, QueryError):
        return exc

    if isinstance(exc, IntegrityError):
        violation = classify_integrity_error(exc)
        code = VIOLATION_STATUS[violation]
        logger.info(
            "store.integrity_violation",
            extra={"resource": resource, "violation": violation.value, "code": code},
        )
        return QueryError(code, f"{resource or 'Resource'} {violation.value} constraint violated.")

    if is_connection_failure(exc):
        logger.warning("store.connection_failure", extra={"resource": resource, "error_type": type(exc).__name__})
        return QueryError(CONNECTION_RESET, str(exc))

    logger.warning("store.database_error", extra={"resource": resource, "error_type": type(exc).__name__})
    logger.debug("store.database_error_raw", extra={"resource": resource, "raw": str(exc)})
    return QueryError(500, f"{resource or 'Resource'} database error.")


# Exceptions raised by the driver stack that we translate. Anything else (including
# programming errors in callers) is left to propagate untouched.
TRANSLATED_ERRORS: tuple[Type[BaseException], ...] = (
    SQLAlchemyError,
    ConnectionError,
    TimeoutError,
)


@asynccontextmanager
async def store_error_handler(session: AsyncSession, resource: str | None = None):
    """
    Usage:
        async with store_error_handler(session, "documents"):
            ... DB ops ...
    Rolls back on failure and raises the translated `QueryError`.
    """
    try:
        yield
    except QueryError:
        await _safe_rollback(session, resource)
        raise
    except TRANSLATED_ERRORS as exc:
        await _safe_rollback(session, resource)
        raise to_query_error(exc, resource) from exc


async def _safe_rollback(session: AsyncSession, resource: str | None) -> None:
    try:
        await session.rollback()
    except SQLAlchemyError:
        logger.exception("store.rollback_failed", extra={"resource": resource})


__all__ = [
    "CONNECTION_RESET",
    "QueryError",
    "ConstraintViolation",
    "classify_integrity_error",
    "is_connection_failure",
    "to_query_error",
    "store_error_handler",
]
