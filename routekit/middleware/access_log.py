"""Access logging middleware for structured HTTP request/response logging."""

import time
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


logger = structlog.get_logger(__name__)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Middleware for structured access logging with request/response details."""

    def __init__(self, app: ASGIApp):
        """Initialize the access log middleware.

        Args:
            app: The ASGI application
        """
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        """Process the request and log access details.

        Args:
            request: The incoming HTTP request
            call_next: The next middleware/handler in the chain

        Returns:
            The HTTP response
        """
        start_time = time.perf_counter()

        client_ip = "unknown"
        if request.client:
            client_ip = request.client.host

        method = request.method
        path = str(request.url.path)
        user_agent = request.headers.get("user-agent", "unknown")

        response: Response | None = None
        error_message: str | None = None

        try:
            response = await call_next(request)
        except Exception as e:
            error_message = str(e)
            # Re-raise to let error handlers process it
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            if response is not None:
                status_code = response.status_code
                log = logger.warning if status_code >= 400 else logger.info
                log(
                    "access_log",
                    method=method,
                    path=path,
                    status_code=status_code,
                    duration_ms=round(duration_ms, 3),
                    user_agent=user_agent,
                    client_ip=client_ip,
                    category="access",
                )
            else:
                logger.error(
                    "access_log_error",
                    method=method,
                    path=path,
                    client_ip=client_ip,
                    user_agent=user_agent,
                    duration_ms=round(duration_ms, 3),
                    error_message=error_message or "No response generated",
                    category="access",
                )

        return response
