"""
Request timeout guard.

Races a unit of work against a deadline. Whichever settles first decides the
outcome; when the deadline wins the work is cancelled and the caller sees a
single HttpError(503).
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from fastapi import Request, Response
from fastapi.routing import APIRoute

from ...exceptions.base import HttpError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 10_000


class TimeoutGuard:
    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.timeout_ms = timeout_ms

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    async def run(self, work: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(work, timeout=self.timeout_seconds)
        except TimeoutError:
            logger.warning("request.timeout", extra={"timeout_ms": self.timeout_ms})
            raise HttpError(503) from None


class TimeoutGuardedRoute(APIRoute):
    """
    APIRoute whose handler runs under the app's `TimeoutGuard`
    (read from `request.app.state.timeout_guard`; defaults to 10 s).
    """

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        handler = super().get_route_handler()

        async def guarded_handler(request: Request) -> Response:
            guard: TimeoutGuard = getattr(request.app.state, "timeout_guard", None) or TimeoutGuard()
            return await guard.run(handler(request))

        return guarded_handler
