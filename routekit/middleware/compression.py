"""Gzip compression with a per-request opt-out."""

from starlette.datastructures import Headers
from starlette.middleware.gzip import GZipMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class CompressionMiddleware:
    """Compress responses above ``minimum_size`` unless the client opts out.

    A request carrying the bypass header (``x-no-compression`` by default)
    is passed straight through to the wrapped application.
    """

    def __init__(
        self,
        app: ASGIApp,
        minimum_size: int = 1024,
        compresslevel: int = 6,
        bypass_header: str = "x-no-compression",
    ) -> None:
        self.app = app
        self.bypass_header = bypass_header.lower()
        self.gzip = GZipMiddleware(
            app, minimum_size=minimum_size, compresslevel=compresslevel
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if self.bypass_header in Headers(scope=scope):
            await self.app(scope, receive, send)
            return

        await self.gzip(scope, receive, send)
