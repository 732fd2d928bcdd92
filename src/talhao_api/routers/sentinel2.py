"""Sentinel-2 imagery endpoints: fallback tiles and Copernicus relays."""

import logging
from datetime import UTC, datetime
from functools import lru_cache

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from talhao_api.errors import (
    invalid_parameter,
    not_found,
    upstream_error,
    upstream_unavailable,
)
from talhao_api.integrations import copernicus
from talhao_api.schemas import AuthStatus, ServiceStatus, STACSearchRequest
from talhao_api.tiles.grid import TileCoordinate, parse_bbox
from talhao_api.tiles.providers import ImageryKind
from talhao_api.tiles.resolver import ResolvedTile, TileResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sentinel-2"])

MAX_ZOOM = 30


@lru_cache(maxsize=1)
def get_resolver() -> TileResolver:
    """Process-wide resolver; its token cache lives as long as the process."""
    return TileResolver()


def _imagery_kind(raw: str) -> ImageryKind:
    try:
        return ImageryKind(raw.lower())
    except ValueError:
        raise not_found("Imagery kind", raw) from None


def _tile_coordinate(z: int, x: int, y: int) -> TileCoordinate:
    coord = TileCoordinate(z=z, x=x, y=y)
    if z > MAX_ZOOM or not coord.is_valid():
        raise invalid_parameter(f"Tile {z}/{x}/{y} is outside the XYZ grid (0 <= x, y < 2^z, z <= {MAX_ZOOM})")
    return coord


def _tile_response(tile: ResolvedTile) -> Response:
    return Response(content=tile.content, media_type=tile.media_type, headers=tile.headers())


@router.get("/{kind}-tiles/{z}/{x}/{y}.{ext}")
async def get_tile(
    kind: str,
    z: int,
    x: int,
    y: int,
    ext: str,
    resolver: TileResolver = Depends(get_resolver),
) -> Response:
    """Resolve one map tile through the kind's provider chain."""
    imagery = _imagery_kind(kind)
    if ext.lower() != imagery.extension:
        raise not_found("Tile format", f"{kind}-tiles/*.{ext}")
    coord = _tile_coordinate(z, x, y)
    tile = await resolver.resolve_tile(imagery, coord.z, coord.x, coord.y)
    return _tile_response(tile)


@router.get("/{kind}-visual/{z}/{x}/{y}.png")
async def get_visual_tile(
    kind: str,
    z: int,
    x: int,
    y: int,
    resolver: TileResolver = Depends(get_resolver),
) -> Response:
    """Index tile from Copernicus, or a generated color tile when it is unavailable."""
    imagery = _imagery_kind(kind)
    if not imagery.is_index:
        raise not_found("Visual layer", kind)
    coord = _tile_coordinate(z, x, y)
    tile = await resolver.resolve_visual_tile(imagery, coord.z, coord.x, coord.y)
    return _tile_response(tile)


@router.post("/stac-search")
async def stac_search(body: STACSearchRequest, resolver: TileResolver = Depends(get_resolver)) -> dict:
    """Relay a STAC item search to the Copernicus catalogue."""
    async with resolver.client() as client:
        try:
            return await copernicus.stac_search(
                client,
                bbox=body.bbox,
                datetime=body.datetime,
                collections=body.collections,
                limit=body.limit,
            )
        except copernicus.UpstreamError as exc:
            logger.warning("STAC search failed: %s", exc)
            raise upstream_error(exc.status_code, str(exc)) from exc
        except copernicus.UpstreamUnavailable as exc:
            logger.warning("STAC search failed: %s", exc)
            raise upstream_unavailable(str(exc)) from exc


@router.get("/wms")
async def wms(
    layers: str = Query(..., min_length=1),
    bbox: str = Query(..., description="minx,miny,maxx,maxy"),
    width: int = Query(512, ge=1, le=2048),
    height: int = Query(512, ge=1, le=2048),
    srs: str = Query("EPSG:3857"),
    colormap: str | None = Query(None),
    time_range: str | None = Query(None, alias="time"),
    resolver: TileResolver = Depends(get_resolver),
) -> Response:
    """WMS GetMap passthrough with an Esri fallback tile."""
    try:
        parsed_bbox = parse_bbox(bbox)
    except ValueError as exc:
        raise invalid_parameter(f"Invalid bbox '{bbox}': {exc}") from exc

    params = copernicus.wms_get_map_params(
        layers=layers,
        bbox=parsed_bbox,
        width=width,
        height=height,
        srs=srs,
        colormap=colormap,
        time=time_range,
    )
    async with resolver.client() as client:
        token = await resolver.auth.get_token(client)
        try:
            image = await copernicus.wms_get_map(client, params=params, bbox=parsed_bbox, token=token)
        except copernicus.UpstreamError as exc:
            raise upstream_error(exc.status_code, f"{exc}. Copernicus may be offline; try again in a few minutes") from exc

    return Response(
        content=image.content,
        media_type=image.media_type,
        headers={
            "Cache-Control": image.cache_control,
            "Access-Control-Allow-Origin": "*",
            "X-Tile-Source": image.source,
        },
    )


@router.get("/authenticate")
async def authenticate(resolver: TileResolver = Depends(get_resolver)) -> AuthStatus:
    """Check that a Copernicus token can be obtained with the configured credentials."""
    if not resolver.auth.configured():
        raise invalid_parameter("Copernicus credentials are not configured")

    async with resolver.client() as client:
        token = await resolver.auth.get_token(client)
    remaining = resolver.auth.seconds_remaining()
    if token is None or remaining is None:
        raise upstream_unavailable("Could not obtain a Copernicus access token")
    return AuthStatus(authenticated=True, expires_in=int(remaining))


@router.get("/status")
async def status(resolver: TileResolver = Depends(get_resolver)) -> ServiceStatus:
    """Probe Copernicus and the Esri fallback."""
    async with resolver.client() as client:
        probes = await copernicus.service_status(client)
    return ServiceStatus(timestamp=datetime.now(UTC).isoformat(), **probes)
