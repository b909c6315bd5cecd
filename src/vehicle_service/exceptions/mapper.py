"""
Error classifiers.

Two boundaries translate arbitrary exceptions into the closed `ErrorKind` set:

- repository boundary (`handle_repository_errors`): used inside every repository
  operation. Decides whether a store failure is transient (retryable), permanent,
  HTTP-mapped (409) or unexpected.
- service boundary (`handle_service_errors`): used by the service layer. Anything
  that is not already an `HttpError` becomes a 503.

Both exist as pure `classify_*` functions (return the classified error), raising
`handle_*` functions and async context managers.
"""

import logging
from contextlib import asynccontextmanager
from typing import NoReturn

from pydantic import ValidationError

from ..store.errors import CONNECTION_RESET, QueryError
from .base import (
    EntityValidationError,
    HttpError,
    RepositoryError,
    ServiceError,
    UnexpectedServiceError,
)

logger = logging.getLogger(__name__)

VALIDATION_FAILURE_MESSAGE = (
    "Validation error(s) occurred during transformation from database document into entity."
)

_VALIDATION_TYPES = (ValidationError, EntityValidationError)

# Errors that already went through a boundary; re-raised unchanged.
_CLASSIFIED_TYPES = (RepositoryError, HttpError, UnexpectedServiceError)


def is_validation_failure(exc: BaseException, *, depth: int = 1) -> bool:
    """
    True when `exc` is a validation failure.

    Accepted shapes:
      - a pydantic ValidationError or an EntityValidationError
      - a non-empty exception group whose members are all validation failures;
        members may themselves be such groups, `depth` levels down
    """
    if isinstance(exc, _VALIDATION_TYPES):
        return True
    if isinstance(exc, BaseExceptionGroup):
        return bool(exc.exceptions) and all(
            isinstance(e, _VALIDATION_TYPES)
            or (depth > 0 and isinstance(e, BaseExceptionGroup) and is_validation_failure(e, depth=depth - 1))
            for e in exc.exceptions
        )
    return False


# -----------------------
# Repository boundary
# -----------------------

def classify_repository_error(exc: BaseException) -> ServiceError:
    if isinstance(exc, _CLASSIFIED_TYPES):
        return exc

    if isinstance(exc, TypeError):
        logger.info("mapper.repository.type_error", extra={"error": str(exc)})
        return RepositoryError(str(exc))

    if isinstance(exc, QueryError):
        match exc.code:
            case "ECONNRESET":
                logger.warning("mapper.repository.transient", extra={"code": CONNECTION_RESET})
                return RepositoryError(str(exc), retry=True)
            case 409:
                logger.info("mapper.repository.conflict", extra={"code": 409})
                return HttpError(409)
            case _:
                logger.info("mapper.repository.query_error", extra={"code": exc.code})
                logger.debug("mapper.repository.query_error_raw", extra={"body": exc.body})
                return RepositoryError(str(exc))

    if is_validation_failure(exc):
        logger.info("mapper.repository.validation_failure", extra={"error_type": type(exc).__name__})
        return RepositoryError(VALIDATION_FAILURE_MESSAGE)

    logger.error(
        "mapper.repository.unexpected",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"error_type": type(exc).__name__},
    )
    return UnexpectedServiceError()


def handle_repository_errors(exc: BaseException) -> NoReturn:
    """Classify `exc` at the repository boundary and raise the result."""
    classified = classify_repository_error(exc)
    if classified is exc:
        raise classified
    raise classified from exc


@asynccontextmanager
async def repository_error_boundary():
    """
    Usage:
        async with repository_error_boundary():
            ... store calls ...
    """
    try:
        yield
    except Exception as exc:
        handle_repository_errors(exc)


# -----------------------
# Service boundary
# -----------------------

def classify_service_error(exc: BaseException) -> HttpError:
    if isinstance(exc, HttpError):
        return exc
    logger.info(
        "mapper.service.unavailable",
        extra={"error_type": type(exc).__name__, "kind": getattr(getattr(exc, "kind", None), "value", None)},
    )
    return HttpError(503)


def handle_service_errors(exc: BaseException) -> NoReturn:
    """Classify `exc` at the service boundary and raise the resulting `HttpError`."""
    classified = classify_service_error(exc)
    if classified is exc:
        raise classified
    raise classified from exc


@asynccontextmanager
async def service_error_boundary():
    try:
        yield
    except Exception as exc:
        handle_service_errors(exc)


__all__ = [
    "VALIDATION_FAILURE_MESSAGE",
    "is_validation_failure",
    "classify_repository_error",
    "handle_repository_errors",
    "repository_error_boundary",
    "classify_service_error",
    "handle_service_errors",
    "service_error_boundary",
]
