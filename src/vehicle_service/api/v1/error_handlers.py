"""
FastAPI exception handlers.

Error responses carry a status code and no body:

| Exception                               | Status          |
| --------------------------------------- | --------------- |
| HttpError                               | its status_code |
| Starlette HTTPException 404 / 405       | 404             |
| other Starlette HTTPException           | its status_code |
| RequestValidationError                  | 400             |
| anything else                           | 500             |
"""

import logging

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...exceptions.base import HttpError

logger = logging.getLogger(__name__)


def _empty(status_code: int) -> Response:
    return Response(status_code=status_code)


async def http_error_handler(request: Request, exc: HttpError) -> Response:
    # 5xx are worth a warning; 4xx are expected client errors.
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(
        "http.error",
        extra={"method": request.method, "path": request.url.path, "status_code": exc.status_code},
    )
    return _empty(exc.status_code)


async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Unknown routes and unsupported methods both answer 404."""
    status_code = 404 if exc.status_code in (404, 405) else exc.status_code
    logger.info(
        "http.unmatched",
        extra={"method": request.method, "path": request.url.path, "status_code": status_code},
    )
    return _empty(status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> Response:
    logger.info("http.invalid_request", extra={"method": request.method, "path": request.url.path})
    return _empty(400)


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.exception(
        "http.unhandled_exception",
        extra={"method": request.method, "path": request.url.path, "error_type": type(exc).__name__},
    )
    return _empty(500)


# Register all handlers on an app (called from the app factory)
def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HttpError, http_error_handler)
    app.add_exception_handler(StarletteHTTPException, starlette_http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
