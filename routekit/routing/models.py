"""
Data models for route discovery, registration and traffic metrics.
"""

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


class RouteCandidate(BaseModel):
    """A file eligible for loading as a route module."""

    model_config = ConfigDict(frozen=True)

    filename: str
    source_path: Path
    name: str
    version: str | None = None


class LoadedModule(BaseModel):
    """A successfully loaded route module.

    Never mutated; a reload produces a new instance.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    route_path: str
    handler_collection: Any
    source_path: Path | None = None
    version: str | None = None
    loaded_at: datetime = Field(default_factory=utcnow)
    custom: bool = False


class LoadError(BaseModel):
    """A failed load attempt."""

    source_path: Path
    message: str
    timestamp: datetime = Field(default_factory=utcnow)


class RegistryEntry(BaseModel):
    """Registration metadata for one mounted route."""

    route_path: str
    version: str | None = None
    name: str | None = None
    source_path: Path | None = None
    custom: bool = False
    middleware_count: int = 0
    has_validation: bool = False
    registered_at: datetime = Field(default_factory=utcnow)
    last_accessed: datetime | None = None
    access_count: int = 0


class RouteMetrics(BaseModel):
    """Live traffic metrics for one route path."""

    count: int = 0
    total_duration: float = 0.0
    average_duration: float = 0.0
    error_count: int = 0
    slow_request_count: int = 0
    status_codes: dict[int, int] = Field(default_factory=dict)
    last_accessed: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def record(
        self,
        duration_ms: float,
        status_code: int,
        is_error: bool,
        slow_threshold_ms: float,
    ) -> bool:
        """Apply one completed request.

        Returns:
            True if the request counted as slow
        """
        self.count += 1
        self.total_duration += duration_ms
        self.average_duration = self.total_duration / self.count
        self.last_accessed = utcnow()

        if is_error:
            self.error_count += 1

        slow = duration_ms > slow_threshold_ms
        if slow:
            self.slow_request_count += 1

        self.status_codes[status_code] = self.status_codes.get(status_code, 0) + 1
        return slow

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view with derived error and slow-request rates."""
        data = self.model_dump()
        data["status_codes"] = dict(self.status_codes)
        data["error_rate"] = _percentage(self.error_count, self.count)
        data["slow_request_rate"] = _percentage(self.slow_request_count, self.count)
        return data


class RegistryCounters(BaseModel):
    """Aggregate registry statistics."""

    registered: int = 0
    versions: int = 0
    middleware_stacks_registered: int = 0
    errors: int = 0
    slow_request_count: int = 0


class MiddlewareStack(BaseModel):
    """A pre-composed, named list of middleware."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    handlers: list[Any] = Field(default_factory=list, exclude=True)
    handler_names: list[str] = Field(default_factory=list)
    registered_at: datetime = Field(default_factory=utcnow)
    usage_count: int = 0


class ValidationSchemaRecord(BaseModel):
    """A validation schema bound to ``METHOD:route_key``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    schema_obj: Any = Field(default=None, exclude=True)
    schema_name: str | None = None
    registered_at: datetime = Field(default_factory=utcnow)
    usage_count: int = 0


def qualified_name(obj: Any) -> str:
    """Best-effort dotted name for a callable or schema object."""
    target = getattr(obj, "func", obj)  # unwrap functools.partial
    module = getattr(target, "__module__", None)
    name = getattr(target, "__qualname__", None) or getattr(target, "__name__", None)
    if name is None:
        return type(obj).__name__
    return f"{module}.{name}" if module else name


def _percentage(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(part / total * 100, 2)
