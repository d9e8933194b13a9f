"""FastAPI dependencies for routekit endpoints."""

from typing import Annotated

from fastapi import Depends, Request

from routekit.routing.manager import RouteManager


def get_route_manager(request: Request) -> RouteManager:
    """Route manager attached to the application by ``create_app``."""
    manager: RouteManager = request.app.state.route_manager
    return manager


RouteManagerDep = Annotated[RouteManager, Depends(get_route_manager)]
