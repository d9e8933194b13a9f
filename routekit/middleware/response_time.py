"""Response timing header middleware."""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


class ResponseTimeMiddleware(BaseHTTPMiddleware):
    """Report elapsed wall-clock milliseconds in a response header."""

    def __init__(
        self, app: ASGIApp, header_name: str = "X-Response-Time", digits: int = 3
    ) -> None:
        super().__init__(app)
        self.header_name = header_name
        self.digits = digits

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        response.headers[self.header_name] = f"{elapsed_ms:.{self.digits}f}ms"
        return response
