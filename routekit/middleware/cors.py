"""CORS middleware factory for the middleware catalogue."""

from functools import partial
from typing import Any

from starlette.middleware.cors import CORSMiddleware

from routekit.config.middleware import CORSSettings
from routekit.core.logging import get_logger


logger = get_logger(__name__)


def get_cors_config(settings: CORSSettings) -> dict[str, Any]:
    """Get CORS configuration dictionary.

    Args:
        settings: CORS settings

    Returns:
        Keyword arguments for Starlette's CORSMiddleware
    """
    return {
        "allow_origins": settings.origins,
        "allow_credentials": settings.credentials,
        "allow_methods": settings.methods,
        "allow_headers": settings.headers,
        "max_age": settings.max_age,
    }


def create_cors_middleware(settings: CORSSettings) -> partial[CORSMiddleware]:
    """Build a CORS middleware factory.

    With ``*`` origins and credentials enabled Starlette echoes the request
    origin back instead of the wildcard, which keeps credentialed requests
    working with a permissive policy.
    """
    config = get_cors_config(settings)
    logger.debug("cors_middleware_configured", origins=settings.origins, category="middleware")
    return partial(CORSMiddleware, **config)
