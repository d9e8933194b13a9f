"""Request-completion middleware feeding route traffic metrics."""

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from routekit.core.logging import get_logger


if TYPE_CHECKING:
    from routekit.routing.manager import RouteManager


logger = get_logger(__name__)


def match_route_path(path: str, route_paths: list[str]) -> str | None:
    """Longest registered mount path that prefixes ``path``.

    Args:
        path: Request URL path
        route_paths: Candidate mount paths, longest first
    """
    for route_path in route_paths:
        if route_path == "/" or path == route_path or path.startswith(route_path + "/"):
            return route_path
    return None


class RouteMetricsMiddleware(BaseHTTPMiddleware):
    """Record duration and status of every request served by a managed route."""

    def __init__(self, app: ASGIApp, manager: "RouteManager") -> None:
        super().__init__(app)
        self.manager = manager

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        route_path = match_route_path(request.url.path, self.manager.route_paths())
        if route_path is None:
            return await call_next(request)

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.manager.record_access(
                route_path, duration_ms, status_code, is_error=status_code >= 400
            )
            logger.debug(
                "route_access_recorded",
                route_path=route_path,
                status_code=status_code,
                duration_ms=round(duration_ms, 3),
                category="metrics",
            )
