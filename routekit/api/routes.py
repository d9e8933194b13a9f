"""Health and introspection endpoints.

- /health/live: process is up
- /health/ready: 503 until the route manager has finished initializing
- /_routekit/routes: registered routes and aggregate statistics
- /_routekit/metrics: traffic metrics, optionally for a single route path
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Response, status

from .dependencies import RouteManagerDep


router = APIRouter()


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    return {"status": "pass"}


@router.get("/health/ready")
async def readiness_probe(manager: RouteManagerDep, response: Response) -> dict[str, Any]:
    ready = manager.is_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "pass" if ready else "fail", "state": manager.state.value}


@router.get("/_routekit/routes")
async def list_routes(manager: RouteManagerDep) -> dict[str, Any]:
    return {
        "status": manager.get_status(),
        "routes": [entry.model_dump(mode="json") for entry in manager.list_routes()],
    }


@router.get("/_routekit/metrics")
async def route_metrics(
    manager: RouteManagerDep, route_path: str | None = None
) -> dict[str, Any]:
    metrics = manager.get_metrics(route_path)
    if metrics is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No metrics for route {route_path}",
        )
    return metrics
