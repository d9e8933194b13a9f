"""Middleware catalogue and default middleware implementations."""

from .access_log import AccessLogMiddleware
from .catalogue import (
    DEFAULT_GLOBAL_MIDDLEWARE,
    MiddlewareCatalogue,
    MiddlewareDescriptor,
    MiddlewareFactory,
)
from .compression import CompressionMiddleware
from .cors import create_cors_middleware, get_cors_config
from .rate_limit import FixedWindowCounter, RateLimitMiddleware
from .response_time import ResponseTimeMiddleware
from .security import SecurityHeadersMiddleware
from .validation import ValidationMiddleware, create_validation_middleware


__all__ = [
    "AccessLogMiddleware",
    "CompressionMiddleware",
    "DEFAULT_GLOBAL_MIDDLEWARE",
    "FixedWindowCounter",
    "MiddlewareCatalogue",
    "MiddlewareDescriptor",
    "MiddlewareFactory",
    "RateLimitMiddleware",
    "ResponseTimeMiddleware",
    "SecurityHeadersMiddleware",
    "ValidationMiddleware",
    "create_cors_middleware",
    "create_validation_middleware",
    "get_cors_config",
]
