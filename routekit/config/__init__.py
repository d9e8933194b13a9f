"""Configuration module for routekit."""

from .metrics import MetricsSettings
from .middleware import (
    CompressionSettings,
    CORSSettings,
    MiddlewareSettings,
    RateLimitSettings,
    SecurityHeadersSettings,
)
from .routes import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_NAME_SUFFIXES,
    DEFAULT_SPECIAL_ROUTES,
    RouteLoaderSettings,
)
from .server import ServerSettings
from .settings import Settings, get_settings


__all__ = [
    "Settings",
    "get_settings",
    "ServerSettings",
    "RouteLoaderSettings",
    "MiddlewareSettings",
    "MetricsSettings",
    "CORSSettings",
    "CompressionSettings",
    "RateLimitSettings",
    "SecurityHeadersSettings",
    "DEFAULT_EXCLUDE_PATTERNS",
    "DEFAULT_NAME_SUFFIXES",
    "DEFAULT_SPECIAL_ROUTES",
]
