"""Upstream imagery providers and the per-kind fallback chains."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

import httpx

from talhao_api import config
from talhao_api.tiles.grid import TileCoordinate, bbox_to_wms_param, quad_key

USER_AGENT = "Mozilla/5.0 (compatible; talhao-api)"

LIVE_CACHE_CONTROL = "public, max-age=300, must-revalidate"
DAY_CACHE_CONTROL = "public, max-age=86400"
WEEK_CACHE_CONTROL = "public, max-age=604800"

GOOGLE_SATELLITE_URL = "https://mt1.google.com/vt/lyrs=s&x={x}&y={y}&z={z}"
BING_AERIAL_URL = "https://ecn.t{server}.tiles.virtualearth.net/tiles/a{quadkey}.jpeg?g=1"
ESRI_WORLD_IMAGERY_URL = "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"


class ImageryKind(StrEnum):
    """Imagery layers served by the proxy."""

    SATELLITE = "satellite"
    NDVI = "ndvi"
    NDMI = "ndmi"
    NDBI = "ndbi"

    @property
    def media_type(self) -> str:
        return "image/jpeg" if self is ImageryKind.SATELLITE else "image/png"

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageryKind.SATELLITE else "png"

    @property
    def is_index(self) -> bool:
        return self is not ImageryKind.SATELLITE


COPERNICUS_LAYERS: dict[ImageryKind, str] = {
    ImageryKind.SATELLITE: "SENTINEL2_L2A.TCI",
    ImageryKind.NDVI: "SENTINEL2_L2A.NDVI",
    ImageryKind.NDMI: "SENTINEL2_L2A.NDMI",
    ImageryKind.NDBI: "SENTINEL2_L2A.NDBI",
}

COLORMAPS: dict[ImageryKind, str] = {
    ImageryKind.NDVI: "viridis",
    ImageryKind.NDMI: "blues",
    ImageryKind.NDBI: "greys",
}


@dataclass(frozen=True)
class TileContext:
    """Everything a provider needs to address one tile."""

    kind: ImageryKind
    coord: TileCoordinate
    bbox: tuple[float, float, float, float]
    date_range: str


@dataclass(frozen=True)
class TileProvider:
    """One entry in a fallback chain.

    ``build_url`` maps a tile context to the upstream URL. Providers marked
    ``authenticated`` receive the Copernicus bearer token when one is available.
    """

    name: str
    build_url: Callable[[TileContext], str]
    timeout_seconds: float
    cache_control: str
    default_media_type: str = "image/png"
    authenticated: bool = False
    primary: bool = False
    headers: dict[str, str] = field(default_factory=dict)

    def build_request(self, ctx: TileContext, token: str | None = None) -> httpx.Request:
        headers = {"User-Agent": USER_AGENT, **self.headers}
        if self.authenticated and token:
            headers["Authorization"] = f"Bearer {token}"
        return httpx.Request("GET", self.build_url(ctx), headers=headers)


def copernicus_wms_url(ctx: TileContext, *, width: int = 256, height: int = 256) -> str:
    """Sentinel-2 WMS GetMap URL for the kind's layer over the tile bbox."""
    params = {
        "service": "WMS",
        "version": "1.3.0",
        "request": "GetMap",
        "layers": COPERNICUS_LAYERS[ctx.kind],
        "format": ctx.kind.media_type,
        "srs": "EPSG:3857",
        "width": str(width),
        "height": str(height),
        "bbox": bbox_to_wms_param(ctx.bbox),
        "time": ctx.date_range,
    }
    colormap = COLORMAPS.get(ctx.kind)
    if colormap:
        params["colormap"] = colormap
    return str(httpx.URL(config.copernicus_wms_url(), params=params))


def google_satellite_url(ctx: TileContext) -> str:
    c = ctx.coord
    return GOOGLE_SATELLITE_URL.format(z=c.z, x=c.x, y=c.y)


def bing_aerial_url(ctx: TileContext) -> str:
    c = ctx.coord
    return BING_AERIAL_URL.format(server=(c.x + c.y) % 4, quadkey=quad_key(c.x, c.y, c.z))


def esri_world_imagery_url(ctx: TileContext) -> str:
    c = ctx.coord
    # Esri REST tiles are addressed row before column.
    return ESRI_WORLD_IMAGERY_URL.format(z=c.z, y=c.y, x=c.x)


def copernicus(kind: ImageryKind, timeout_seconds: float) -> TileProvider:
    return TileProvider(
        name=f"sentinel2-{kind.value}",
        build_url=copernicus_wms_url,
        timeout_seconds=timeout_seconds,
        cache_control=LIVE_CACHE_CONTROL,
        default_media_type=kind.media_type,
        authenticated=True,
        primary=True,
        headers={"Accept": kind.media_type},
    )


def google(timeout_seconds: float) -> TileProvider:
    return TileProvider(
        name="google-satellite",
        build_url=google_satellite_url,
        timeout_seconds=timeout_seconds,
        cache_control=DAY_CACHE_CONTROL,
        default_media_type="image/jpeg",
    )


def bing(timeout_seconds: float) -> TileProvider:
    return TileProvider(
        name="bing-aerial",
        build_url=bing_aerial_url,
        timeout_seconds=timeout_seconds,
        cache_control=DAY_CACHE_CONTROL,
        default_media_type="image/jpeg",
    )


def esri(timeout_seconds: float) -> TileProvider:
    return TileProvider(
        name="esri-imagery",
        build_url=esri_world_imagery_url,
        timeout_seconds=timeout_seconds,
        cache_control=WEEK_CACHE_CONTROL,
        default_media_type="image/jpeg",
    )


def tile_chain(kind: ImageryKind, timeout_seconds: float | None = None) -> list[TileProvider]:
    """Ordered providers for ``/{kind}-tiles`` requests."""
    timeout = timeout_seconds if timeout_seconds is not None else config.tile_timeout_seconds()
    if kind is ImageryKind.SATELLITE:
        return [copernicus(kind, timeout), google(timeout), bing(timeout)]
    if kind is ImageryKind.NDBI:
        return [copernicus(kind, timeout), google(timeout), esri(timeout)]
    return [copernicus(kind, timeout), esri(timeout), google(timeout)]


def visual_chain(kind: ImageryKind, timeout_seconds: float | None = None) -> list[TileProvider]:
    """Ordered providers for ``/{kind}-visual`` requests: Copernicus only."""
    if not kind.is_index:
        raise ValueError(f"visual tiles are only served for index kinds, not '{kind}'")
    timeout = timeout_seconds if timeout_seconds is not None else config.tile_timeout_seconds()
    return [copernicus(kind, timeout)]
