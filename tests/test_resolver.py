import asyncio
import time
from datetime import date

import httpx
import pytest

from talhao_api.tiles import placeholders
from talhao_api.tiles.auth import CopernicusAuth
from talhao_api.tiles.providers import ImageryKind
from talhao_api.tiles.resolver import AttemptOutcome, TileResolver

COPERNICUS = "sh.dataspace.copernicus.eu"
GOOGLE = "mt1.google.com"
BING = "virtualearth.net"
ESRI = "server.arcgisonline.com"
IDENTITY = "identity.dataspace.copernicus.eu"

JPEG = b"\xff\xd8\xff\xe0upstream-jpeg\xff\xd9"
PNG = b"\x89PNG\r\n\x1a\nupstream-png"


def image(content: bytes = JPEG, media_type: str = "image/jpeg") -> httpx.Response:
    return httpx.Response(200, content=content, headers={"content-type": media_type})


class Upstream:
    """Per-host canned responses; hosts without an entry answer 503."""

    def __init__(self, **routes):
        self.routes = {_host(name): route for name, route in routes.items()}
        self.requests: list[httpx.Request] = []

    def hosts(self) -> list[str]:
        return [_label(request.url.host) for request in self.requests]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if IDENTITY in request.url.host:
            return httpx.Response(200, json={"access_token": "secret-token", "expires_in": 3600})
        for host, route in self.routes.items():
            if host in request.url.host:
                if isinstance(route, httpx.Response):
                    return httpx.Response(route.status_code, content=route.content, headers=route.headers)
                result = route(request)
                if asyncio.iscoroutine(result):
                    result = await result
                return result
        return httpx.Response(503)


def _host(name: str) -> str:
    return {"copernicus": COPERNICUS, "google": GOOGLE, "bing": BING, "esri": ESRI}[name]


def _label(host: str) -> str:
    for name in ("copernicus", "google", "bing", "esri"):
        if _host(name) in host:
            return name
    return "identity" if IDENTITY in host else host


def _resolver(upstream: Upstream, *, credentials=lambda: None, timeout_seconds: float = 2.0) -> TileResolver:
    return TileResolver(
        CopernicusAuth(credentials=credentials),
        transport=httpx.MockTransport(upstream),
        today=lambda: date(2024, 6, 15),
        timeout_seconds=timeout_seconds,
    )


def _resolve(resolver: TileResolver, kind: ImageryKind, z: int = 10, x: int = 500, y: int = 500):
    return asyncio.run(resolver.resolve_tile(kind, z, x, y))


def test_primary_success_stops_the_chain() -> None:
    upstream = Upstream(copernicus=image(), google=image(), bing=image())
    tile = _resolve(_resolver(upstream), ImageryKind.SATELLITE)

    assert upstream.hosts() == ["copernicus"]
    assert tile.content == JPEG
    assert tile.source == "sentinel2-satellite"
    assert tile.cache_control == "public, max-age=300, must-revalidate"
    assert tile.date_range == "2024-06-12/2024-06-15"
    assert not tile.fallback
    assert not tile.placeholder


def test_primary_request_targets_tile_bbox_and_date_range() -> None:
    upstream = Upstream(copernicus=image(PNG, "image/png"))
    _resolve(_resolver(upstream), ImageryKind.NDVI, 0, 0, 0)

    params = upstream.requests[0].url.params
    assert params["request"] == "GetMap"
    assert params["layers"] == "SENTINEL2_L2A.NDVI"
    assert params["srs"] == "EPSG:3857"
    assert params["width"] == "256"
    assert params["height"] == "256"
    assert params["colormap"] == "viridis"
    assert params["time"] == "2024-06-12/2024-06-15"
    assert [float(v) for v in params["bbox"].split(",")] == pytest.approx(
        [-20037508.34, -20037508.34, 20037508.34, 20037508.34]
    )


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (ImageryKind.SATELLITE, ["copernicus", "google", "bing"]),
        (ImageryKind.NDVI, ["copernicus", "esri", "google"]),
        (ImageryKind.NDMI, ["copernicus", "esri", "google"]),
        (ImageryKind.NDBI, ["copernicus", "google", "esri"]),
    ],
)
def test_fallback_order_per_kind(kind: ImageryKind, expected: list[str]) -> None:
    upstream = Upstream()
    tile = _resolve(_resolver(upstream), kind)

    assert upstream.hosts() == expected
    assert [attempt.outcome for attempt in tile.attempts] == [AttemptOutcome.HTTP_ERROR] * 3


def test_second_provider_serves_when_primary_fails() -> None:
    upstream = Upstream(google=image())
    tile = _resolve(_resolver(upstream), ImageryKind.SATELLITE)

    assert upstream.hosts() == ["copernicus", "google"]
    assert tile.source == "google-satellite"
    assert tile.fallback
    assert tile.date_range is None
    assert tile.cache_control == "public, max-age=86400"
    assert tile.media_type == "image/jpeg"


def test_bing_is_addressed_by_quadkey() -> None:
    upstream = Upstream(bing=image())
    tile = _resolve(_resolver(upstream), ImageryKind.SATELLITE, 2, 1, 1)

    assert tile.source == "bing-aerial"
    assert str(upstream.requests[-1].url) == "https://ecn.t2.tiles.virtualearth.net/tiles/a03.jpeg?g=1"


def test_esri_is_addressed_row_before_column() -> None:
    upstream = Upstream(esri=image())
    tile = _resolve(_resolver(upstream), ImageryKind.NDVI, 10, 300, 400)

    assert tile.source == "esri-imagery"
    assert tile.cache_control == "public, max-age=604800"
    assert upstream.requests[-1].url.path.endswith("/tile/10/400/300")


def test_all_providers_down_serves_static_placeholder() -> None:
    upstream = Upstream()
    for kind in ImageryKind:
        tile = _resolve(_resolver(upstream), kind)
        assert tile.placeholder
        assert tile.source == "placeholder"
        assert tile.content == placeholders.static_placeholder(kind)
        assert tile.media_type == kind.media_type
        assert tile.cache_control == "public, max-age=86400"


def test_network_errors_fall_through_to_placeholder() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    upstream = Upstream(copernicus=refuse, google=refuse, bing=refuse)
    tile = _resolve(_resolver(upstream), ImageryKind.SATELLITE)

    assert tile.placeholder
    assert [attempt.outcome for attempt in tile.attempts] == [AttemptOutcome.NETWORK_ERROR] * 3


def test_unexpected_provider_error_moves_on_to_next_provider() -> None:
    def explode(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("transport bug")

    upstream = Upstream(copernicus=explode, esri=image())
    tile = _resolve(_resolver(upstream), ImageryKind.NDVI)

    assert tile.source == "esri-imagery"
    assert tile.content == JPEG
    assert upstream.hosts() == ["copernicus", "esri"]
    assert [attempt.outcome for attempt in tile.attempts] == [AttemptOutcome.NETWORK_ERROR, AttemptOutcome.SUCCESS]
    assert tile.attempts[0].error == "transport bug"


def test_unexpected_errors_everywhere_still_yield_a_tile() -> None:
    def explode(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("transport bug")

    upstream = Upstream(copernicus=explode, esri=explode, google=explode)
    tile = _resolve(_resolver(upstream), ImageryKind.NDMI)

    assert tile.placeholder
    assert tile.content
    assert len(tile.attempts) == 3


def test_hanging_provider_is_abandoned_within_budget() -> None:
    async def hang(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return image()

    upstream = Upstream(copernicus=hang, google=image())
    started = time.monotonic()
    tile = _resolve(_resolver(upstream, timeout_seconds=0.1), ImageryKind.SATELLITE)
    elapsed = time.monotonic() - started

    assert elapsed < 1.0

    assert tile.source == "google-satellite"
    assert tile.attempts[0].outcome == AttemptOutcome.TIMEOUT
    assert tile.attempts[1].outcome == AttemptOutcome.SUCCESS


def test_empty_body_counts_as_failure() -> None:
    upstream = Upstream(copernicus=image(b""), esri=image())
    tile = _resolve(_resolver(upstream), ImageryKind.NDVI)

    assert tile.source == "esri-imagery"
    assert tile.attempts[0].outcome == AttemptOutcome.EMPTY


def test_non_image_success_counts_as_failure() -> None:
    error_xml = httpx.Response(200, content=b"<ServiceExceptionReport/>", headers={"content-type": "application/xml"})
    upstream = Upstream(copernicus=error_xml, esri=image())
    tile = _resolve(_resolver(upstream), ImageryKind.NDVI)

    assert tile.source == "esri-imagery"
    assert tile.attempts[0].outcome == AttemptOutcome.HTTP_ERROR


def test_primary_carries_bearer_token_when_configured() -> None:
    upstream = Upstream(copernicus=image())
    resolver = _resolver(upstream, credentials=lambda: ("id", "secret"))
    _resolve(resolver, ImageryKind.SATELLITE)
    _resolve(resolver, ImageryKind.SATELLITE)

    assert upstream.hosts() == ["identity", "copernicus", "copernicus"]
    assert upstream.requests[1].headers["Authorization"] == "Bearer secret-token"


def test_fallback_providers_never_see_the_token() -> None:
    upstream = Upstream(google=image())
    _resolve(_resolver(upstream, credentials=lambda: ("id", "secret")), ImageryKind.SATELLITE)

    google_request = upstream.requests[-1]
    assert GOOGLE in google_request.url.host
    assert "Authorization" not in google_request.headers


def test_unauthenticated_primary_has_no_authorization_header() -> None:
    upstream = Upstream(copernicus=image())
    _resolve(_resolver(upstream), ImageryKind.SATELLITE)

    assert "Authorization" not in upstream.requests[0].headers


def test_visual_tile_generates_index_placeholder() -> None:
    upstream = Upstream()
    resolver = _resolver(upstream)
    tile = asyncio.run(resolver.resolve_visual_tile(ImageryKind.NDVI, 10, 500, 500))

    assert upstream.hosts() == ["copernicus"]
    assert tile.placeholder
    assert tile.media_type == "image/png"
    assert tile.content == placeholders.index_placeholder(ImageryKind.NDVI, 10, 500, 500)


def test_visual_tile_uses_copernicus_when_available() -> None:
    upstream = Upstream(copernicus=image(PNG, "image/png"))
    tile = asyncio.run(_resolver(upstream).resolve_visual_tile(ImageryKind.NDMI, 10, 500, 500))

    assert tile.content == PNG
    assert tile.source == "sentinel2-ndmi"


def test_resolved_tile_headers() -> None:
    primary = _resolve(_resolver(Upstream(copernicus=image())), ImageryKind.SATELLITE)
    assert primary.headers() == {
        "Cache-Control": "public, max-age=300, must-revalidate",
        "Access-Control-Allow-Origin": "*",
        "X-Tile-Source": "sentinel2-satellite",
        "X-Tile-Date": "2024-06-12/2024-06-15",
    }

    fallback = _resolve(_resolver(Upstream(google=image())), ImageryKind.SATELLITE)
    assert fallback.headers()["X-Fallback"] == "true"
    assert "X-Placeholder" not in fallback.headers()

    placeholder = _resolve(_resolver(Upstream()), ImageryKind.SATELLITE)
    assert placeholder.headers()["X-Placeholder"] == "true"
    assert "X-Fallback" not in placeholder.headers()
