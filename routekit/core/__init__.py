"""Core abstractions for routekit."""

from routekit.core.errors import (
    ConfigurationError,
    RouteDiscoveryError,
    RouteLoadError,
    RoutekitError,
    RouteManagerStateError,
    RouteRegistrationError,
)
from routekit.core.logging import get_logger, setup_logging


__all__ = [
    "ConfigurationError",
    "RouteDiscoveryError",
    "RouteLoadError",
    "RoutekitError",
    "RouteManagerStateError",
    "RouteRegistrationError",
    "get_logger",
    "setup_logging",
]
