"""
Request ID middleware.

Takes `X-Request-ID` from the request (or generates a UUID4), stores it in the
request-id contextvar for the duration of the request, and echoes it on the
response so clients can correlate their call with our log lines.
"""

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .filters import reset_request_id, set_request_id

REQUEST_ID_HEADER = "X-Request-ID"

# Incoming ids end up in log lines; refuse anything that could forge one.
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(REQUEST_ID_HEADER)
        rid = incoming if incoming and _SAFE_REQUEST_ID.match(incoming) else str(uuid.uuid4())

        token = set_request_id(rid)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            reset_request_id(token)
