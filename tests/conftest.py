from collections.abc import Callable, Iterator
from datetime import date

import httpx
import pytest
from fastapi.testclient import TestClient

from talhao_api.main import app
from talhao_api.routers.sentinel2 import get_resolver
from talhao_api.tiles.auth import CopernicusAuth
from talhao_api.tiles.resolver import TileResolver

TODAY = date(2024, 6, 15)

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "COPERNICUS_CLIENT_ID",
        "COPERNICUS_CLIENT_SECRET",
        "VITE_COPERNICUS_CLIENT_ID",
        "VITE_COPERNICUS_CLIENT_SECRET",
        "COPERNICUS_TOKEN_URL",
        "COPERNICUS_WMS_URL",
        "VITE_STAC_API_URL",
        "STAC_API_URL",
        "VITE_API_URL",
        "TALHAO_TILE_TIMEOUT_SECONDS",
        "TALHAO_RELAY_TIMEOUT_SECONDS",
        "TALHAO_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def credentials() -> Callable[[], tuple[str, str]]:
    return lambda: ("client-id", "client-secret")


def make_resolver(
    handler: Handler,
    *,
    credentials: Callable[[], tuple[str, str] | None] = lambda: None,
    timeout_seconds: float = 2.0,
) -> TileResolver:
    transport = httpx.MockTransport(handler)
    return TileResolver(
        CopernicusAuth(credentials=credentials),
        transport=transport,
        today=lambda: TODAY,
        timeout_seconds=timeout_seconds,
    )


@pytest.fixture
def resolver_factory() -> Callable[..., TileResolver]:
    return make_resolver


@pytest.fixture
def use_upstream() -> Iterator[Callable[..., TileResolver]]:
    """Route the app's upstream traffic through a mock handler."""

    def install(handler: Handler, **kwargs) -> TileResolver:
        resolver = make_resolver(handler, **kwargs)
        app.dependency_overrides[get_resolver] = lambda: resolver
        return resolver

    yield install
    app.dependency_overrides.clear()
