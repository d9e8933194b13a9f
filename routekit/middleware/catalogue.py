"""Named catalogue of reusable middleware.

Each entry is a middleware *factory*: a callable taking the wrapped ASGI app
and returning the wrapping one (a Starlette middleware class, a
``functools.partial`` of one, or a plain function). The catalogue hands these
to the host server for global installation, or resolves them by name for a
single route or version namespace.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from routekit.config.settings import Settings
from routekit.core.logging import get_logger
from routekit.routing.models import utcnow

from .access_log import AccessLogMiddleware
from .compression import CompressionMiddleware
from .cors import create_cors_middleware
from .rate_limit import RateLimitMiddleware
from .response_time import ResponseTimeMiddleware
from .security import SecurityHeadersMiddleware
from .validation import create_validation_middleware


if TYPE_CHECKING:
    from routekit.routing.host import HostServer


logger = get_logger(__name__)

MiddlewareFactory = Callable[..., Any]

DEFAULT_GLOBAL_MIDDLEWARE: tuple[str, ...] = (
    "security_headers",
    "cors",
    "compression",
    "access_log",
    "response_time",
)


class MiddlewareDescriptor(BaseModel):
    """A catalogue entry."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    handler: MiddlewareFactory
    options: dict[str, Any] = Field(default_factory=dict)
    registered_at: datetime = Field(default_factory=utcnow)
    usage_count: int = 0


class MiddlewareCatalogue:
    """Registry of named middleware with usage tracking."""

    def __init__(
        self, settings: Settings | None = None, register_defaults: bool = True
    ) -> None:
        self.settings = settings or Settings()
        self._lock = threading.RLock()
        self._entries: dict[str, MiddlewareDescriptor] = {}
        self._global: list[str] = []
        self._route_bindings: dict[str, list[str]] = {}
        self._version_bindings: dict[str, list[str]] = {}

        if register_defaults:
            self.register_defaults()

    def register_defaults(self) -> None:
        """Register the default middleware set according to settings."""
        mw = self.settings.middleware
        environment = self.settings.server.environment

        if mw.enable_cors:
            self.register(
                "cors",
                create_cors_middleware(mw.cors),
                mw.cors.model_dump(),
            )

        if mw.enable_compression:
            self.register(
                "compression",
                partial(
                    CompressionMiddleware,
                    minimum_size=mw.compression.minimum_size,
                    compresslevel=mw.compression.level,
                    bypass_header=mw.compression.bypass_header,
                ),
                mw.compression.model_dump(),
            )

        if mw.enable_rate_limit:
            self.register(
                "rate_limit",
                partial(
                    RateLimitMiddleware,
                    max_requests=mw.rate_limit.max_requests,
                    window_seconds=mw.rate_limit.window_seconds,
                    message=mw.rate_limit.message,
                ),
                mw.rate_limit.model_dump(),
            )

        if mw.enable_security:
            csp = (
                None
                if self.settings.server.is_local
                else mw.security.content_security_policy
            )
            self.register(
                "security_headers",
                partial(
                    SecurityHeadersMiddleware,
                    content_security_policy=csp,
                    hsts_max_age=mw.security.hsts_max_age,
                ),
                {"content_security_policy": csp is not None},
            )

        self.register("access_log", AccessLogMiddleware)
        self.register("response_time", ResponseTimeMiddleware)

        logger.info(
            "default_middleware_initialized",
            count=len(self._entries),
            environment=environment,
            category="middleware",
        )

    def register(
        self,
        name: str,
        handler: MiddlewareFactory,
        options: dict[str, Any] | None = None,
    ) -> bool:
        """Register (or silently replace) a named middleware.

        Returns:
            False when ``handler`` is not callable
        """
        if not callable(handler):
            logger.error(
                "middleware_registration_failed",
                name=name,
                error=f"Middleware {name} must be callable",
                category="middleware",
            )
            return False

        with self._lock:
            self._entries[name] = MiddlewareDescriptor(
                name=name, handler=handler, options=dict(options or {})
            )

        logger.debug("middleware_registered", name=name, category="middleware")
        return True

    def get(self, name: str) -> MiddlewareFactory | None:
        """Fetch a middleware for application, counting the use."""
        with self._lock:
            descriptor = self._entries.get(name)
            if descriptor is None:
                return None
            descriptor.usage_count += 1
            return descriptor.handler

    def descriptor(self, name: str) -> MiddlewareDescriptor | None:
        """Entry metadata without counting a use."""
        with self._lock:
            return self._entries.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def apply_global(
        self, host: HostServer, names: Sequence[str] | None = None
    ) -> list[str]:
        """Install middleware on the host server.

        Args:
            host: Host server exposing ``use(handler)``
            names: Names to install in order; the default list when empty

        Returns:
            Names actually installed
        """
        to_apply = list(names) if names else list(DEFAULT_GLOBAL_MIDDLEWARE)
        applied: list[str] = []

        for name in to_apply:
            handler = self.get(name)
            if handler is None:
                logger.warning(
                    "global_middleware_not_found", name=name, category="middleware"
                )
                continue
            host.use(handler)
            applied.append(name)
            with self._lock:
                self._global.append(name)
            logger.debug("global_middleware_applied", name=name, category="middleware")

        logger.info(
            "global_middleware_applied",
            count=len(applied),
            middleware=applied,
            category="middleware",
        )
        return applied

    def apply_to_route(
        self, route_path: str, names: Sequence[str]
    ) -> list[MiddlewareFactory]:
        """Resolve middleware for one route, remembering the binding."""
        return self._resolve_binding(route_path, names, self._route_bindings, "route")

    def apply_to_version(
        self, version: str, names: Sequence[str]
    ) -> list[MiddlewareFactory]:
        """Resolve middleware for a version namespace, remembering the binding."""
        return self._resolve_binding(version, names, self._version_bindings, "version")

    def _resolve_binding(
        self,
        key: str,
        names: Sequence[str],
        bindings: dict[str, list[str]],
        scope: str,
    ) -> list[MiddlewareFactory]:
        handlers: list[MiddlewareFactory] = []
        for name in names:
            handler = self.get(name)
            if handler is None:
                logger.warning(
                    "middleware_not_found",
                    name=name,
                    scope=scope,
                    target=key,
                    category="middleware",
                )
                continue
            handlers.append(handler)

        if handlers:
            with self._lock:
                bindings[key] = list(names)
            logger.debug(
                "middleware_bound",
                scope=scope,
                target=key,
                middleware=list(names),
                category="middleware",
            )
        return handlers

    def route_bindings(self) -> dict[str, list[str]]:
        with self._lock:
            return {k: list(v) for k, v in self._route_bindings.items()}

    def version_bindings(self) -> dict[str, list[str]]:
        with self._lock:
            return {k: list(v) for k, v in self._version_bindings.items()}

    @staticmethod
    def create_validation_middleware(schema: type[BaseModel]) -> MiddlewareFactory:
        """Build a body-validation middleware for a pydantic model."""
        return create_validation_middleware(schema)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total": len(self._entries),
                "global": len(self._global),
                "routes": len(self._route_bindings),
                "versions": len(self._version_bindings),
                "usage": {
                    name: entry.usage_count for name, entry in self._entries.items()
                },
            }

    def remove(self, name: str) -> bool:
        with self._lock:
            removed = self._entries.pop(name, None) is not None
        if removed:
            logger.info("middleware_removed", name=name, category="middleware")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._global.clear()
            self._route_bindings.clear()
            self._version_bindings.clear()
        logger.info("middleware_cleared", category="middleware")
