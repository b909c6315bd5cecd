"""
Service-level exceptions.

Every error that crosses a layer boundary is an instance of `ServiceError` and
carries a `kind` tag. The tag is what the classifiers and the HTTP layer branch
on; the concrete class only adds payload (`retry`, `status_code`).

| Class                   | kind                                         | HTTP (outermost) |
| ----------------------- | -------------------------------------------- | ---------------- |
| `EntityValidationError` | VALIDATION                                   | 400 (on create)  |
| `RepositoryError`       | TRANSIENT_REPOSITORY / PERMANENT_REPOSITORY  | 503              |
| `HttpError`             | HTTP_MAPPED                                  | its status code  |
| `UnexpectedServiceError`| UNEXPECTED                                   | 503 / 500        |
"""

from enum import Enum
from typing import Iterable


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    TRANSIENT_REPOSITORY = "transient_repository"
    PERMANENT_REPOSITORY = "permanent_repository"
    HTTP_MAPPED = "http_mapped"
    UNEXPECTED = "unexpected"


class ServiceError(Exception):
    """
    Base for all classified errors.

    Instances are treated as immutable once raised: classifiers re-raise them
    unchanged instead of wrapping or editing them.
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class RepositoryError(ServiceError):
    """
    Raised by the data-access layer.

    - message: human-friendly description (logged, never sent to clients)
    - retry: True when the failure is transient and the operation may be repeated
    """

    def __init__(self, message: str = "Repository error.", *, retry: bool = False):
        super().__init__(message)
        self.retry = retry

    @property
    def kind(self) -> ErrorKind:  # type: ignore[override]
        return ErrorKind.TRANSIENT_REPOSITORY if self.retry else ErrorKind.PERMANENT_REPOSITORY

    def __repr__(self) -> str:
        return f"RepositoryError(message={self.message!r}, retry={self.retry})"


class HttpError(ServiceError):
    """An error that already knows its HTTP status."""

    kind = ErrorKind.HTTP_MAPPED

    ALLOWED_STATUSES = frozenset({400, 404, 409, 500, 503})

    def __init__(self, status_code: int, message: str | None = None):
        if status_code not in self.ALLOWED_STATUSES:
            raise ValueError(f"Unsupported status code for HttpError: {status_code}")
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"HttpError(status_code={self.status_code})"


class UnexpectedServiceError(ServiceError):
    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str = "An unexpected error occurred."):
        super().__init__(message)


class EntityValidationError(ServiceError):
    """
    Raised when input or a stored document does not satisfy the entity's rules.

    `errors` holds per-field messages, e.g. [{"field": "color", "message": "..."}].
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str = "Validation failed.", *, errors: Iterable[dict] | None = None):
        super().__init__(message)
        self.errors = list(errors) if errors else []

    @property
    def fields(self) -> list[str]:
        return [e.get("field") for e in self.errors if e.get("field")]


__all__ = [
    "ErrorKind",
    "ServiceError",
    "RepositoryError",
    "HttpError",
    "UnexpectedServiceError",
    "EntityValidationError",
]
