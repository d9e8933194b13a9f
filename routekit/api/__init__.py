"""API layer for routekit."""

from routekit.api.app import create_app
from routekit.api.dependencies import RouteManagerDep, get_route_manager
from routekit.api.middleware import RouteMetricsMiddleware, match_route_path


__all__ = [
    "create_app",
    "get_route_manager",
    "match_route_path",
    "RouteManagerDep",
    "RouteMetricsMiddleware",
]
