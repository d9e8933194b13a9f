"""Binding between the route manager and the web server it mounts onto."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from fastapi import APIRouter, FastAPI
from starlette.middleware import Middleware
from starlette.routing import BaseRoute

from routekit.core.logging import get_logger


logger = get_logger(__name__)


@runtime_checkable
class HostServer(Protocol):
    """The primitives the route manager needs from a web server."""

    def mount(self, path: str, handler_collection: Any) -> None:
        """Serve ``handler_collection`` under ``path``."""
        ...

    def unmount(self, path: str) -> bool:
        """Stop serving whatever was mounted under ``path``."""
        ...

    def use(self, handler: Any) -> None:
        """Install a middleware factory for every request."""
        ...


class FastAPIHost:
    """``HostServer`` backed by a FastAPI application.

    ``APIRouter`` collections are included under the path prefix; any other
    ASGI app is mounted. Mounting the same path again replaces what was
    mounted there before, which is what makes hot reload observable.
    """

    def __init__(self, app: FastAPI) -> None:
        self.app = app
        self._mounted: dict[str, list[BaseRoute]] = {}

    def mount(self, path: str, handler_collection: Any) -> None:
        self.unmount(path)

        routes = self.app.router.routes
        before = list(routes)
        if isinstance(handler_collection, APIRouter):
            self.app.include_router(handler_collection, prefix=path)
        else:
            self.app.mount(path, handler_collection)

        self._mounted[path] = [route for route in routes if route not in before]
        # Force a fresh OpenAPI schema on next request
        self.app.openapi_schema = None

        logger.debug(
            "handler_collection_mounted",
            path=path,
            routes=len(self._mounted[path]),
            category="routing",
        )

    def unmount(self, path: str) -> bool:
        """Remove whatever this host previously mounted at ``path``."""
        added = self._mounted.pop(path, None)
        if not added:
            return False
        routes = self.app.router.routes
        routes[:] = [route for route in routes if route not in added]
        self.app.openapi_schema = None
        logger.debug("handler_collection_unmounted", path=path, category="routing")
        return True

    def use(self, handler: Any) -> None:
        if self.app.middleware_stack is not None:
            raise RuntimeError("Cannot add middleware after an application has started")
        # Appended, not prepended like add_middleware: install order is
        # execution order, outermost first
        self.app.user_middleware.append(Middleware(handler))

    def mounted_paths(self) -> list[str]:
        return list(self._mounted)
