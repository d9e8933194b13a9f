"""Route discovery, registration and lifecycle management."""

from .host import FastAPIHost, HostServer
from .loader import RouteLoader
from .manager import ManagerState, RouteManager
from .models import (
    LoadedModule,
    LoadError,
    MiddlewareStack,
    RegistryCounters,
    RegistryEntry,
    RouteCandidate,
    RouteMetrics,
    ValidationSchemaRecord,
)
from .registry import SLOW_REQUEST_THRESHOLD_MS, RouteRegistry, schema_key


__all__ = [
    "FastAPIHost",
    "HostServer",
    "LoadError",
    "LoadedModule",
    "ManagerState",
    "MiddlewareStack",
    "RegistryCounters",
    "RegistryEntry",
    "RouteCandidate",
    "RouteLoader",
    "RouteManager",
    "RouteMetrics",
    "RouteRegistry",
    "SLOW_REQUEST_THRESHOLD_MS",
    "ValidationSchemaRecord",
    "schema_key",
]
