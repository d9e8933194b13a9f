"""Fixed-window rate limiting middleware."""

import math
import threading
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from routekit.core.logging import get_logger


logger = get_logger(__name__)


class FixedWindowCounter:
    """Thread-safe per-key request counter over fixed time windows."""

    def __init__(
        self,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        # key -> (window start, hits in window)
        self._windows: dict[str, tuple[float, int]] = {}
        self._next_sweep = clock() + window_seconds

    def hit(self, key: str) -> tuple[int, float]:
        """Count one hit for ``key``.

        Returns:
            Tuple of (hits in the current window, seconds until the window resets)
        """
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._sweep(now)

            window_start, hits = self._windows.get(key, (now, 0))
            if now >= window_start + self.window_seconds:
                window_start, hits = now, 0

            hits += 1
            self._windows[key] = (window_start, hits)
            return hits, window_start + self.window_seconds - now

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, (start, _) in self._windows.items()
            if now >= start + self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_seconds


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Limit each client address to ``max_requests`` per window.

    Responses carry the draft-standard ``RateLimit-*`` headers; the legacy
    ``X-RateLimit-*`` headers are never sent.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window_seconds: float = 15 * 60,
        message: str = "Too many requests from this IP, please try again later.",
        key_func: Callable[[Request], str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(app)
        self.max_requests = max_requests
        self.message = message
        self.key_func = key_func or client_address
        self.counter = FixedWindowCounter(window_seconds, clock=clock)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        key = self.key_func(request)
        hits, reset_in = self.counter.hit(key)
        remaining = max(0, self.max_requests - hits)
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(max(0, math.ceil(reset_in))),
        }

        if hits > self.max_requests:
            logger.warning(
                "rate_limit_exceeded",
                client=key,
                path=request.url.path,
                limit=self.max_requests,
                category="middleware",
            )
            headers["Retry-After"] = headers["RateLimit-Reset"]
            return JSONResponse(
                status_code=429,
                content={"error": "Too Many Requests", "message": self.message},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


def client_address(request: Request) -> str:
    """Default client identity: the peer address."""
    if request.client:
        return request.client.host
    return "unknown"
