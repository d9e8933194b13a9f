"""Shared test fixtures for routekit tests.

Route modules are written to a temporary routes directory so that discovery,
import and reload run against real files.
"""

from collections.abc import Callable, Generator
from pathlib import Path
from textwrap import dedent

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from routekit.api.app import create_app
from routekit.config.metrics import MetricsSettings
from routekit.config.routes import RouteLoaderSettings
from routekit.config.server import ServerSettings
from routekit.config.settings import Settings


ROUTER_TEMPLATE = '''
from fastapi import APIRouter, HTTPException

router = APIRouter()


@router.get("")
async def index():
    return {{"route": "{label}"}}


@router.get("/{{item_id}}")
async def item(item_id: int):
    if item_id == 0:
        raise HTTPException(status_code=404, detail="missing")
    return {{"route": "{label}", "id": item_id}}
'''


def router_source(label: str) -> str:
    """Source of a minimal route module exporting ``router``."""
    return dedent(ROUTER_TEMPLATE.format(label=label))


WriteRoute = Callable[..., Path]


@pytest.fixture
def routes_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "routes"
    directory.mkdir()
    return directory


@pytest.fixture
def write_route(routes_dir: Path) -> WriteRoute:
    """Write a route module; ``source`` defaults to a router labelled by filename."""

    def _write(filename: str, source: str | None = None, version: str | None = None) -> Path:
        directory = routes_dir / version if version else routes_dir
        directory.mkdir(exist_ok=True)
        path = directory / filename
        path.write_text(source if source is not None else router_source(filename))
        return path

    return _write


@pytest.fixture
def loader_settings(routes_dir: Path) -> RouteLoaderSettings:
    return RouteLoaderSettings(routes_directory=routes_dir, load_timeout=5.0)


@pytest.fixture
def test_settings(loader_settings: RouteLoaderSettings) -> Settings:
    """Isolated settings pointing at the temporary routes directory."""
    return Settings(
        server=ServerSettings(environment="test", log_level="WARNING"),
        routes=loader_settings,
        metrics=MetricsSettings(),
    )


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_app(settings=test_settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client
