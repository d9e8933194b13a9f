"""Route manager: coordinates loading, mounting, registration and metrics.

Lifecycle::

    UNINITIALIZED -> INITIALIZING -> READY -> SHUT_DOWN

``initialize()`` drives a strictly ordered pipeline: discovery finishes
before any module loads, and every load of a batch finishes before that
batch is registered. Per-module load failures are isolated; a discovery
failure, or a batch in which no loaded module could be registered, aborts
initialization.

Hot reload does not coordinate with in-flight requests. Between unregister
and re-register the path is absent, and a reload that fails leaves it absent
rather than serving a half-updated route.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from enum import Enum
from typing import Any

from routekit.config.settings import Settings
from routekit.core.errors import RouteManagerStateError, RouteRegistrationError
from routekit.core.logging import get_logger

from .host import HostServer
from .loader import RouteLoader
from .models import LoadedModule, RegistryEntry
from .registry import RouteRegistry


logger = get_logger(__name__)


class ManagerState(str, Enum):
    """Route manager lifecycle states."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUT_DOWN = "shut_down"


class RouteManager:
    """Composes the loader and registry around a host server."""

    def __init__(
        self,
        host: HostServer,
        settings: Settings | None = None,
        loader: RouteLoader | None = None,
        registry: RouteRegistry | None = None,
    ) -> None:
        self.host = host
        self.settings = settings or Settings()
        self.loader = loader or RouteLoader(self.settings.routes)
        self.registry = registry or RouteRegistry(
            slow_request_threshold_ms=self.settings.metrics.slow_request_threshold_ms
        )

        self.state = ManagerState.UNINITIALIZED
        self.initialization_time_ms: float | None = None
        self._ready_at: float | None = None
        self._init_lock = asyncio.Lock()

    @property
    def environment(self) -> str:
        return self.settings.server.environment

    @property
    def initialized(self) -> bool:
        return self.state is ManagerState.READY

    def is_ready(self) -> bool:
        return self.state is ManagerState.READY

    async def initialize(self) -> RouteManager:
        """Load and register routes; a no-op once ready.

        Raises:
            RouteManagerStateError: If called after shutdown
            RouteDiscoveryError: If the routes directory cannot be read
            RouteRegistrationError: If nothing that loaded could be registered
        """
        async with self._init_lock:
            if self.state is ManagerState.READY:
                logger.warning("route_manager_already_initialized", category="lifecycle")
                return self
            if self.state is ManagerState.SHUT_DOWN:
                raise RouteManagerStateError(
                    "Route manager has been shut down", state=self.state.value
                )

            self.state = ManagerState.INITIALIZING
            start_time = time.perf_counter()
            logger.info(
                "route_manager_initializing",
                environment=self.environment,
                category="lifecycle",
            )

            try:
                if self.settings.auto_load:
                    await self.load_and_register_routes()
                    for version in self.settings.routes.versions:
                        await self._register_batch(
                            await self.loader.load_versioned(version)
                        )
            except Exception as e:
                self.state = ManagerState.UNINITIALIZED
                logger.error(
                    "route_manager_initialization_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    category="lifecycle",
                )
                raise

            self.initialization_time_ms = (time.perf_counter() - start_time) * 1000
            self._ready_at = time.monotonic()
            self.state = ManagerState.READY

            logger.info(
                "route_manager_initialized",
                initialization_time_ms=round(self.initialization_time_ms, 3),
                total_routes=self.registry.stats()["routes"],
                category="lifecycle",
            )
            return self

    async def load_and_register_routes(self) -> dict[str, LoadedModule]:
        """Load every module of the routes directory and register it."""
        loaded = await self.loader.load_all()
        await self._register_batch(loaded)
        logger.info(
            "routes_loaded_and_registered",
            total_routes=len(loaded),
            category="lifecycle",
        )
        return loaded

    async def _register_batch(self, loaded: dict[str, LoadedModule]) -> None:
        failed = [
            route_path
            for route_path, module in loaded.items()
            if not self.register_loaded(route_path, module)
        ]
        if loaded and len(failed) == len(loaded):
            raise RouteRegistrationError(
                f"None of the {len(loaded)} loaded routes could be registered",
                route_paths=failed,
            )

    def register_loaded(self, route_path: str, module: LoadedModule) -> bool:
        """Mount a loaded module on the host and record it in the registry."""
        try:
            self.host.mount(route_path, module.handler_collection)
            registered = self.registry.register(
                route_path, module, version=module.version
            )
            if not registered:
                self.host.unmount(route_path)
            elif self.settings.metrics.enabled:
                self.registry.init_metrics(route_path)
        except Exception as e:
            logger.error(
                "route_mount_failed",
                route_path=route_path,
                error=str(e),
                category="routing",
            )
            return False

        logger.debug(
            "route_mounted",
            route_path=route_path,
            version=module.version,
            category="routing",
        )
        return registered

    def register_custom(
        self,
        path: str,
        handler_collection: Any,
        *,
        middleware: Sequence[Any] | None = None,
        version: str | None = None,
        validation: Any = None,
    ) -> bool:
        """Mount an explicitly supplied handler collection.

        Middleware factories wrap the collection so that the first one in the
        list runs first. A pydantic ``validation`` model is also recorded as
        the ``POST`` schema of the final path.
        """
        middleware = list(middleware or [])
        full_path = f"/api/{version}{path}" if version else path

        try:
            wrapped = handler_collection
            for factory in reversed(middleware):
                if callable(factory):
                    wrapped = factory(wrapped)

            module = LoadedModule(
                name=path.lstrip("/"),
                route_path=full_path,
                handler_collection=wrapped,
                version=version,
                custom=True,
            )
            self.host.mount(full_path, wrapped)

            registered = self.registry.register(
                full_path,
                module,
                version=version,
                middleware_names=middleware,
                has_validation=validation is not None,
            )
            if not registered:
                self.host.unmount(full_path)
            elif validation is not None:
                self.registry.register_validation_schema(full_path, "POST", validation)
            if registered and self.settings.metrics.enabled:
                self.registry.init_metrics(full_path)
        except Exception as e:
            logger.error(
                "custom_route_registration_failed",
                path=path,
                error=str(e),
                category="routing",
            )
            return False

        logger.info(
            "custom_route_registered",
            route_path=full_path,
            middleware=len(middleware),
            version=version,
            category="routing",
        )
        return registered

    async def load_versioned(self, version: str) -> dict[str, LoadedModule]:
        """Load and register the modules of one version subdirectory."""
        loaded = await self.loader.load_versioned(version)
        for route_path, module in loaded.items():
            self.register_loaded(route_path, module)

        logger.info(
            "versioned_routes_loaded",
            version=version,
            count=len(loaded),
            category="routing",
        )
        return loaded

    async def reload_route(self, route_path: str) -> bool:
        """Re-import a route from disk and swap it in.

        Returns:
            False when the route was never loaded or could not be reloaded;
            the route is then neither registered nor served
        """
        previous = self.loader.get(route_path)
        if previous is not None:
            version = previous.version
        else:
            version = next(
                (
                    entry.version
                    for entry in self.registry.list_all()
                    if entry.route_path == route_path
                ),
                None,
            )
        self.registry.unregister(route_path, version)
        self.host.unmount(route_path)

        try:
            reloaded = await self.loader.reload(route_path)
        except Exception as e:
            logger.error(
                "route_reload_failed",
                route_path=route_path,
                error=str(e),
                category="routing",
            )
            return False

        if reloaded is None:
            logger.warning(
                "route_reload_left_route_absent",
                route_path=route_path,
                category="routing",
            )
            return False
        return self.register_loaded(route_path, reloaded)

    def record_access(
        self,
        route_path: str,
        duration_ms: float,
        status_code: int,
        is_error: bool = False,
    ) -> None:
        if self.settings.metrics.enabled:
            self.registry.record_access(route_path, duration_ms, status_code, is_error)

    def get_route(self, route_path: str, version: str | None = None) -> RegistryEntry | None:
        return self.registry.get(route_path, version)

    def list_routes(self) -> list[RegistryEntry]:
        return self.registry.list_all()

    def route_paths(self) -> list[str]:
        """Registered mount paths, longest first."""
        return sorted(
            {entry.route_path for entry in self.registry.list_all()},
            key=len,
            reverse=True,
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            **self.registry.stats(),
            "loader": self.loader.stats(),
            "initialized": self.initialized,
            "initialization_time_ms": self.initialization_time_ms,
            "environment": self.environment,
        }

    def get_metrics(self, route_path: str | None = None) -> dict[str, Any] | None:
        if route_path is not None:
            return self.registry.get_metrics(route_path)
        return self.registry.get_all_metrics()

    def get_status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "initialized": self.initialized,
            "ready": self.is_ready(),
            "environment": self.environment,
            "initialization_time_ms": self.initialization_time_ms,
            "uptime_seconds": (
                time.monotonic() - self._ready_at if self._ready_at is not None else 0.0
            ),
            "stats": self.get_stats(),
        }

    def shutdown(self) -> None:
        """Clear all route state; the manager cannot be initialized again."""
        logger.info("route_manager_shutting_down", category="lifecycle")
        self.registry.clear()
        self.loader.clear()
        self.state = ManagerState.SHUT_DOWN
        self._ready_at = None
        logger.info("route_manager_shutdown_complete", category="lifecycle")
