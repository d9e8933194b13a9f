"""Tests for the route registry and its traffic metrics."""

import json
import threading
from functools import partial
from pathlib import Path

import pytest
from pydantic import BaseModel

from routekit.middleware.response_time import ResponseTimeMiddleware
from routekit.middleware.security import SecurityHeadersMiddleware
from routekit.routing.models import LoadedModule, RouteMetrics
from routekit.routing.registry import RouteRegistry, schema_key


pytestmark = pytest.mark.unit


class CourseCreate(BaseModel):
    title: str


@pytest.fixture
def registry() -> RouteRegistry:
    return RouteRegistry()


def loaded_module(route_path: str, version: str | None = None) -> LoadedModule:
    return LoadedModule(
        name=route_path.rsplit("/", 1)[-1],
        route_path=route_path,
        handler_collection=object(),
        source_path=Path("routes") / "person.py",
        version=version,
    )


class TestRouteMetrics:
    def test_record_updates_aggregates(self) -> None:
        metrics = RouteMetrics()

        assert metrics.record(200.0, 200, False, 1000.0) is False
        assert metrics.record(1200.0, 500, True, 1000.0) is True

        assert metrics.count == 2
        assert metrics.total_duration == 1400.0
        assert metrics.average_duration == 700.0
        assert metrics.error_count == 1
        assert metrics.slow_request_count == 1
        assert metrics.status_codes == {200: 1, 500: 1}
        assert metrics.last_accessed is not None

    def test_threshold_is_exclusive(self) -> None:
        metrics = RouteMetrics()

        assert metrics.record(1000.0, 200, False, 1000.0) is False
        assert metrics.slow_request_count == 0

    def test_snapshot_rates(self) -> None:
        metrics = RouteMetrics()
        for status_code in (200, 200, 500):
            metrics.record(10.0, status_code, status_code >= 400, 1000.0)

        snapshot = metrics.snapshot()

        assert snapshot["error_rate"] == 33.33
        assert snapshot["slow_request_rate"] == 0.0

    def test_snapshot_rates_without_traffic(self) -> None:
        snapshot = RouteMetrics().snapshot()

        assert snapshot["error_rate"] == 0.0
        assert snapshot["slow_request_rate"] == 0.0


class TestRegistration:
    def test_register_creates_entry_and_zeroed_metrics(
        self, registry: RouteRegistry
    ) -> None:
        assert registry.register("/persons", loaded_module("/persons"))

        entry = registry.get("/persons")
        assert entry is not None
        assert entry.name == "persons"
        assert entry.access_count == 0
        assert registry.get_metrics("/persons")["count"] == 0
        assert registry.stats()["registered"] == 1

    def test_reregistering_same_key_keeps_one_entry(self, registry: RouteRegistry) -> None:
        registry.register("/persons", loaded_module("/persons"))
        registry.register("/persons", loaded_module("/persons"), middleware_names=["a", "b"])

        assert len(registry.list_all()) == 1
        assert registry.get("/persons").middleware_count == 2
        assert registry.stats()["registered"] == 1

    def test_same_path_in_two_partitions(self, registry: RouteRegistry) -> None:
        registry.register("/users")
        registry.register("/users", version="v1")

        assert registry.get("/users") is not None
        assert registry.get("/users", "v1") is not None
        assert registry.get("/users", "v2") is None
        assert len(registry.list_all()) == 2

    def test_list_all_unversioned_first(self, registry: RouteRegistry) -> None:
        registry.register("/api/v1/users", version="v1")
        registry.register("/auth")

        paths = [entry.route_path for entry in registry.list_all()]

        assert paths == ["/auth", "/api/v1/users"]

    def test_list_all_returns_copies(self, registry: RouteRegistry) -> None:
        registry.register("/auth")

        registry.list_all()[0].access_count = 99

        assert registry.get("/auth").access_count == 0

    def test_unregister_last_versioned_entry_drops_version(
        self, registry: RouteRegistry
    ) -> None:
        registry.register("/api/v1/users", version="v1")
        assert registry.versions() == ["v1"]

        assert registry.unregister("/api/v1/users", "v1") is True

        assert registry.versions() == []
        stats = registry.stats()
        assert stats["versions"] == 0
        assert stats["registered"] == 0
        assert registry.get_metrics("/api/v1/users") is None

    def test_unregister_missing(self, registry: RouteRegistry) -> None:
        assert registry.unregister("/nothing") is False
        assert registry.unregister("/nothing", "v4") is False

    def test_version_routes(self, registry: RouteRegistry) -> None:
        registry.register("/api/v2/courses", version="v2")

        assert list(registry.version_routes("v2")) == ["/api/v2/courses"]
        assert registry.version_routes("v7") == {}


class TestMetricsRecording:
    def test_slow_requests_on_persons(self, registry: RouteRegistry) -> None:
        registry.register("/persons", loaded_module("/persons"))

        registry.record_access("/persons", 1500.0, 200)
        registry.record_access("/persons", 1500.0, 200)

        metrics = registry.get_metrics("/persons")
        assert metrics["count"] == 2
        assert metrics["slow_request_count"] == 2
        assert metrics["average_duration"] == 1500.0
        assert metrics["status_codes"] == {200: 2}
        assert metrics["slow_request_rate"] == 100.0
        assert registry.stats()["slow_request_count"] == 2
        assert registry.get("/persons").access_count == 2
        assert registry.get("/persons").last_accessed is not None

    def test_record_access_creates_metrics_for_unknown_path(
        self, registry: RouteRegistry
    ) -> None:
        registry.record_access("/ghost", 5.0, 404, is_error=True)

        metrics = registry.get_metrics("/ghost")
        assert metrics["count"] == 1
        assert metrics["error_count"] == 1
        assert registry.get("/ghost") is None

    def test_custom_threshold(self) -> None:
        registry = RouteRegistry(slow_request_threshold_ms=50.0)

        registry.record_access("/auth", 60.0, 200)

        assert registry.get_metrics("/auth")["slow_request_count"] == 1

    def test_get_all_metrics(self, registry: RouteRegistry) -> None:
        registry.register("/auth")
        registry.register("/api/v1/users", version="v1")
        registry.record_access("/auth", 12.0, 200)

        all_metrics = registry.get_all_metrics()

        assert set(all_metrics["routes"]) == {"/auth", "/api/v1/users"}
        assert all_metrics["routes"]["/auth"]["count"] == 1
        assert all_metrics["total_routes"] == 2
        assert all_metrics["overview"]["registered"] == 2

    def test_concurrent_record_access_loses_nothing(
        self, registry: RouteRegistry
    ) -> None:
        registry.register("/persons")
        threads_count = 8
        per_thread = 500

        def hammer() -> None:
            for _ in range(per_thread):
                registry.record_access("/persons", 1.0, 200)

        threads = [threading.Thread(target=hammer) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        total = threads_count * per_thread
        assert registry.get_metrics("/persons")["count"] == total
        assert registry.get("/persons").access_count == total


class TestStacksAndSchemas:
    def test_middleware_stack_usage(self, registry: RouteRegistry) -> None:
        handlers = [SecurityHeadersMiddleware, partial(ResponseTimeMiddleware, digits=1)]

        assert registry.register_middleware_stack("secure", handlers)
        assert registry.get_middleware_stack("secure") == handlers
        assert registry.get_middleware_stack("missing") is None

        stats = registry.stats()
        assert stats["middleware_stacks"] == 1
        assert stats["middleware_stacks_registered"] == 1

    def test_middleware_stack_must_be_sequence(self, registry: RouteRegistry) -> None:
        assert registry.register_middleware_stack("bad", SecurityHeadersMiddleware) is False
        assert registry.get_middleware_stack("bad") is None

    def test_validation_schema_keys(self, registry: RouteRegistry) -> None:
        registry.register_validation_schema("/courses", "post", CourseCreate)

        assert schema_key("/courses", "post") == "POST:/courses"
        assert registry.get_validation_schema("/courses", "POST") is CourseCreate
        assert registry.get_validation_schema("/courses", "PUT") is None


class TestExport:
    def test_export_is_json_serializable_and_restorable(
        self, registry: RouteRegistry
    ) -> None:
        registry.register("/persons", loaded_module("/persons"))
        registry.register("/api/v1/users", version="v1")
        registry.register_middleware_stack("timing", [ResponseTimeMiddleware])
        registry.register_validation_schema("/persons", "POST", CourseCreate)
        registry.record_access("/persons", 1500.0, 200)

        data = json.loads(json.dumps(registry.export()))
        restored = RouteRegistry.from_export(data)

        assert restored.get("/persons").access_count == 1
        assert restored.get("/api/v1/users", "v1") is not None
        assert restored.get_metrics("/persons")["status_codes"] == {200: 1}
        assert restored.stats() == registry.stats()
        # Callables are not exported, only their names
        assert restored.get_middleware_stack("timing") == []
        assert data["middleware_stacks"]["timing"]["handler_names"] == [
            "routekit.middleware.response_time.ResponseTimeMiddleware"
        ]

    def test_clear(self, registry: RouteRegistry) -> None:
        registry.register("/auth")
        registry.register_middleware_stack("timing", [ResponseTimeMiddleware])

        registry.clear()

        assert registry.list_all() == []
        assert registry.stats()["registered"] == 0
        assert registry.get_all_metrics()["routes"] == {}
