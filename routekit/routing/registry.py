"""Route registry: the authoritative record of mounted routes.

Entries are partitioned into an unversioned map and a map of per-version
maps. Traffic metrics are kept per route path, independently of the entry
partitioning, and are created eagerly when a route is registered.

All state sits behind one re-entrant lock. Traffic-time ``record_access``
calls run concurrently with each other and with administrative calls, and
none of their updates may be lost.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Any

from routekit.core.logging import get_logger

from .models import (
    LoadedModule,
    MiddlewareStack,
    RegistryCounters,
    RegistryEntry,
    RouteMetrics,
    ValidationSchemaRecord,
    qualified_name,
    utcnow,
)


logger = get_logger(__name__)

SLOW_REQUEST_THRESHOLD_MS = 1000.0


def schema_key(route_key: str, method: str) -> str:
    return f"{method.upper()}:{route_key}"


class RouteRegistry:
    """Thread-safe registry of route entries, bundles, schemas and metrics."""

    def __init__(self, slow_request_threshold_ms: float = SLOW_REQUEST_THRESHOLD_MS):
        self.slow_request_threshold_ms = slow_request_threshold_ms
        self._lock = threading.RLock()
        self._routes: dict[str, RegistryEntry] = {}
        self._versions: dict[str, dict[str, RegistryEntry]] = {}
        self._middleware_stacks: dict[str, MiddlewareStack] = {}
        self._validation_schemas: dict[str, ValidationSchemaRecord] = {}
        self._metrics: dict[str, RouteMetrics] = {}
        self._counters = RegistryCounters()

    # Route entries

    def register(
        self,
        route_path: str,
        module: LoadedModule | None = None,
        *,
        version: str | None = None,
        middleware_names: Sequence[Any] | None = None,
        has_validation: bool = False,
    ) -> bool:
        """Create or overwrite the entry for (route_path, version).

        Returns:
            False on any internal failure; this method never raises
        """
        try:
            with self._lock:
                entry = RegistryEntry(
                    route_path=route_path,
                    version=version,
                    name=module.name if module else None,
                    source_path=module.source_path if module else None,
                    custom=module.custom if module else False,
                    middleware_count=len(middleware_names or ()),
                    has_validation=bool(has_validation),
                )

                if version:
                    version_routes = self._versions.get(version)
                    if version_routes is None:
                        version_routes = self._versions[version] = {}
                        self._counters.versions += 1
                    target = version_routes
                else:
                    target = self._routes

                if route_path not in target:
                    self._counters.registered += 1
                target[route_path] = entry

                self._init_metrics_locked(route_path)
        except Exception as e:
            with self._lock:
                self._counters.errors += 1
            logger.error(
                "route_registration_failed",
                route_path=route_path,
                version=version,
                error=str(e),
                category="routing",
            )
            return False

        logger.debug(
            "route_registered",
            route_path=route_path,
            version=version,
            middleware=entry.middleware_count,
            has_validation=entry.has_validation,
            category="routing",
        )
        return True

    def get(self, route_path: str, version: str | None = None) -> RegistryEntry | None:
        with self._lock:
            if version:
                return self._versions.get(version, {}).get(route_path)
            return self._routes.get(route_path)

    def has(self, route_path: str, version: str | None = None) -> bool:
        return self.get(route_path, version) is not None

    def unregister(self, route_path: str, version: str | None = None) -> bool:
        """Remove an entry and the metrics of its path."""
        with self._lock:
            if version:
                version_routes = self._versions.get(version)
                if version_routes is None:
                    return False
                removed = version_routes.pop(route_path, None) is not None
                if not version_routes:
                    del self._versions[version]
                    self._counters.versions -= 1
            else:
                removed = self._routes.pop(route_path, None) is not None

            if removed:
                self._metrics.pop(route_path, None)
                self._counters.registered -= 1

        if removed:
            logger.debug(
                "route_unregistered",
                route_path=route_path,
                version=version,
                category="routing",
            )
        return removed

    def list_all(self) -> list[RegistryEntry]:
        """Every entry, unversioned first, as independent copies."""
        with self._lock:
            entries = [entry.model_copy() for entry in self._routes.values()]
            for version_routes in self._versions.values():
                entries.extend(entry.model_copy() for entry in version_routes.values())
            return entries

    def version_routes(self, version: str) -> dict[str, RegistryEntry]:
        with self._lock:
            return {
                path: entry.model_copy()
                for path, entry in self._versions.get(version, {}).items()
            }

    def versions(self) -> list[str]:
        with self._lock:
            return list(self._versions)

    # Middleware bundles

    def register_middleware_stack(self, name: str, handlers: Sequence[Any]) -> bool:
        """Store a named, pre-composed middleware list."""
        if not isinstance(handlers, list | tuple):
            logger.error(
                "middleware_stack_registration_failed",
                name=name,
                error="Middleware stack must be a list",
                category="routing",
            )
            return False

        with self._lock:
            if name not in self._middleware_stacks:
                self._counters.middleware_stacks_registered += 1
            self._middleware_stacks[name] = MiddlewareStack(
                handlers=list(handlers),
                handler_names=[qualified_name(h) for h in handlers],
            )

        logger.debug(
            "middleware_stack_registered",
            name=name,
            middleware_count=len(handlers),
            category="routing",
        )
        return True

    def get_middleware_stack(self, name: str) -> list[Any] | None:
        with self._lock:
            stack = self._middleware_stacks.get(name)
            if stack is None:
                return None
            stack.usage_count += 1
            return list(stack.handlers)

    # Validation schemas

    def register_validation_schema(self, route_key: str, method: str, schema: Any) -> bool:
        key = schema_key(route_key, method)
        with self._lock:
            self._validation_schemas[key] = ValidationSchemaRecord(
                schema_obj=schema, schema_name=qualified_name(schema)
            )
        logger.debug("validation_schema_registered", key=key, category="routing")
        return True

    def get_validation_schema(self, route_key: str, method: str) -> Any | None:
        with self._lock:
            record = self._validation_schemas.get(schema_key(route_key, method))
            if record is None:
                return None
            record.usage_count += 1
            return record.schema_obj

    # Metrics

    def init_metrics(self, route_path: str) -> None:
        """Create zeroed metrics for ``route_path`` unless already present."""
        with self._lock:
            self._init_metrics_locked(route_path)

    def _init_metrics_locked(self, route_path: str) -> RouteMetrics:
        metrics = self._metrics.get(route_path)
        if metrics is None:
            metrics = self._metrics[route_path] = RouteMetrics()
        return metrics

    def record_access(
        self,
        route_path: str,
        duration_ms: float,
        status_code: int,
        is_error: bool = False,
    ) -> None:
        """Fold one completed request into the metrics of ``route_path``.

        Unknown paths get metrics created on the fly.
        """
        with self._lock:
            metrics = self._init_metrics_locked(route_path)
            slow = metrics.record(
                duration_ms, status_code, is_error, self.slow_request_threshold_ms
            )
            if slow:
                self._counters.slow_request_count += 1

            entry = self._routes.get(route_path)
            if entry is not None:
                entry.access_count += 1
                entry.last_accessed = metrics.last_accessed

    def get_metrics(self, route_path: str) -> dict[str, Any] | None:
        with self._lock:
            metrics = self._metrics.get(route_path)
            return metrics.snapshot() if metrics is not None else None

    def get_all_metrics(self) -> dict[str, Any]:
        with self._lock:
            return {
                "overview": self._counters.model_dump(),
                "routes": {
                    path: metrics.snapshot() for path, metrics in self._metrics.items()
                },
                "middleware_stacks": list(self._middleware_stacks),
                "validation_schemas": len(self._validation_schemas),
                "total_routes": self._total_routes_locked(),
            }

    def _total_routes_locked(self) -> int:
        return len(self._routes) + sum(len(v) for v in self._versions.values())

    # Introspection

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                **self._counters.model_dump(),
                "routes": len(self._routes),
                "versions": len(self._versions),
                "middleware_stacks": len(self._middleware_stacks),
                "validation_schemas": len(self._validation_schemas),
                "route_metrics": len(self._metrics),
            }

    def export(self) -> dict[str, Any]:
        """JSON-serializable deep snapshot of every internal map."""
        with self._lock:
            return {
                "routes": {
                    path: entry.model_dump(mode="json")
                    for path, entry in self._routes.items()
                },
                "versions": {
                    version: {
                        path: entry.model_dump(mode="json")
                        for path, entry in routes.items()
                    }
                    for version, routes in self._versions.items()
                },
                "middleware_stacks": {
                    name: stack.model_dump(mode="json")
                    for name, stack in self._middleware_stacks.items()
                },
                "validation_schemas": {
                    key: record.model_dump(mode="json")
                    for key, record in self._validation_schemas.items()
                },
                "route_metrics": {
                    path: metrics.model_dump(mode="json")
                    for path, metrics in self._metrics.items()
                },
                "stats": self._counters.model_dump(),
                "slow_request_threshold_ms": self.slow_request_threshold_ms,
                "exported_at": utcnow().isoformat(),
            }

    @classmethod
    def from_export(cls, data: dict[str, Any]) -> RouteRegistry:
        """Rebuild a registry from ``export()`` output.

        Middleware stacks and validation schemas come back as metadata only;
        the exported data carries their names, not the callables.
        """
        registry = cls(
            slow_request_threshold_ms=data.get(
                "slow_request_threshold_ms", SLOW_REQUEST_THRESHOLD_MS
            )
        )
        registry._routes = {
            path: RegistryEntry.model_validate(entry)
            for path, entry in data.get("routes", {}).items()
        }
        registry._versions = {
            version: {
                path: RegistryEntry.model_validate(entry)
                for path, entry in routes.items()
            }
            for version, routes in data.get("versions", {}).items()
        }
        registry._middleware_stacks = {
            name: MiddlewareStack.model_validate(stack)
            for name, stack in data.get("middleware_stacks", {}).items()
        }
        registry._validation_schemas = {
            key: ValidationSchemaRecord.model_validate(record)
            for key, record in data.get("validation_schemas", {}).items()
        }
        registry._metrics = {
            path: RouteMetrics.model_validate(metrics)
            for path, metrics in data.get("route_metrics", {}).items()
        }
        registry._counters = RegistryCounters.model_validate(data.get("stats", {}))
        return registry

    def clear(self) -> None:
        with self._lock:
            self._routes.clear()
            self._versions.clear()
            self._middleware_stacks.clear()
            self._validation_schemas.clear()
            self._metrics.clear()
            self._counters = RegistryCounters()
        logger.debug("route_registry_cleared", category="routing")
