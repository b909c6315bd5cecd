from .base import (
    EntityValidationError,
    ErrorKind,
    HttpError,
    RepositoryError,
    ServiceError,
    UnexpectedServiceError,
)
from .mapper import (
    classify_repository_error,
    classify_service_error,
    handle_repository_errors,
    handle_service_errors,
    is_validation_failure,
    repository_error_boundary,
    service_error_boundary,
)

__all__ = [
    "ErrorKind",
    "ServiceError",
    "RepositoryError",
    "HttpError",
    "UnexpectedServiceError",
    "EntityValidationError",
    "classify_repository_error",
    "classify_service_error",
    "handle_repository_errors",
    "handle_service_errors",
    "is_validation_failure",
    "repository_error_boundary",
    "service_error_boundary",
]

# vehicle_service/
# │
# ├── exceptions/
# │   ├── __init__.py
# │   ├── base.py          # ErrorKind + ServiceError hierarchy
# │   └── mapper.py        # repository / service boundary classifiers
# └── store/
#     └── errors.py        # QueryError + DB-level translation
