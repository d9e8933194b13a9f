"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from functools import partial

import structlog
from fastapi import FastAPI

from routekit import __version__
from routekit.config.settings import Settings, get_settings
from routekit.core.logging import get_logger, setup_logging
from routekit.middleware.catalogue import MiddlewareCatalogue
from routekit.routing.host import FastAPIHost
from routekit.routing.manager import RouteManager

from .middleware import RouteMetricsMiddleware
from .routes import router as health_router


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load routes on startup and release them on shutdown."""
    manager: RouteManager = app.state.route_manager
    settings: Settings = app.state.settings

    logger.info(
        "server_start",
        environment=settings.server.environment,
        routes_directory=str(settings.routes.routes_directory),
        category="lifecycle",
    )
    await manager.initialize()

    yield

    logger.debug("server_stop", category="lifecycle")
    manager.shutdown()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the application with its route manager and middleware.

    Args:
        settings: Application settings; loaded from the environment and
            config file when omitted
    """
    if settings is None:
        settings = get_settings()

    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.server.json_logs,
            log_level=settings.server.log_level,
        )

    app = FastAPI(
        title="routekit",
        description="Filesystem-driven route loading with traffic metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(health_router)

    host = FastAPIHost(app)
    catalogue = MiddlewareCatalogue(settings)
    manager = RouteManager(host, settings=settings)

    catalogue.apply_global(host, settings.middleware.global_middleware)
    if settings.metrics.enabled:
        host.use(partial(RouteMetricsMiddleware, manager=manager))

    app.state.settings = settings
    app.state.middleware_catalogue = catalogue
    app.state.route_manager = manager

    return app
