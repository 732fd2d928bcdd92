"""Relay calls to the Copernicus Data Space services used by the dashboard."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from talhao_api import config
from talhao_api.tiles.grid import bbox_to_tile, bbox_to_wms_param
from talhao_api.tiles.providers import (
    DAY_CACHE_CONTROL,
    ESRI_WORLD_IMAGERY_URL,
    USER_AGENT,
    WEEK_CACHE_CONTROL,
)

logger = logging.getLogger(__name__)

WMS_FALLBACK_ZOOM = 15
ESRI_PROBE_URL = ESRI_WORLD_IMAGERY_URL.format(z=1, y=1, x=1)


class UpstreamError(Exception):
    """Raised when an upstream service answers with a non-2xx status."""

    def __init__(self, service: str, status_code: int, reason: str = ""):
        super().__init__(f"{service} returned HTTP {status_code} {reason}".strip())
        self.service = service
        self.status_code = status_code


class UpstreamUnavailable(Exception):
    """Raised when an upstream service cannot be reached at all."""


@dataclass(frozen=True)
class RelayedImage:
    content: bytes
    media_type: str
    cache_control: str
    source: str


async def stac_search(
    client: httpx.AsyncClient,
    *,
    bbox: list[float],
    datetime: str,
    collections: list[str],
    limit: int,
) -> dict[str, Any]:
    """POST a search to the STAC API and return the FeatureCollection."""
    payload = {"collections": collections, "bbox": bbox, "datetime": datetime, "limit": limit}
    url = f"{config.stac_api_url()}/search"
    logger.info("STAC search collections=%s datetime=%s limit=%s", collections, datetime, limit)
    try:
        response = await client.post(
            url,
            json=payload,
            headers={"Accept": "application/json"},
            timeout=config.relay_timeout_seconds(),
        )
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(f"STAC API unreachable: {exc}") from exc

    if not response.is_success:
        raise UpstreamError("STAC API", response.status_code, response.reason_phrase)

    try:
        result = response.json()
    except ValueError as exc:
        raise UpstreamUnavailable("STAC API returned invalid JSON") from exc

    features = result.get("features", []) if isinstance(result, dict) else []
    logger.info("STAC search returned %s features", len(features) if isinstance(features, list) else 0)
    return result


def wms_get_map_params(
    *,
    layers: str,
    bbox: tuple[float, float, float, float],
    width: int,
    height: int,
    srs: str,
    colormap: str | None = None,
    time: str | None = None,
) -> dict[str, str]:
    params = {
        "service": "WMS",
        "version": "1.3.0",
        "request": "GetMap",
        "layers": layers,
        "format": "image/png",
        "srs": srs,
        "width": str(width),
        "height": str(height),
        "bbox": bbox_to_wms_param(bbox),
    }
    if colormap:
        params["colormap"] = colormap
    if time:
        params["time"] = time
    return params


async def wms_get_map(
    client: httpx.AsyncClient,
    *,
    params: dict[str, str],
    bbox: tuple[float, float, float, float],
    token: str | None = None,
) -> RelayedImage:
    """Fetch a WMS GetMap image, falling back to an Esri tile over the bbox centre.

    Raises ``UpstreamError`` with the Copernicus status when both sources fail.
    """
    headers = {"Accept": "image/png", "User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    status_code = 502
    reason = "unreachable"
    try:
        response = await client.get(
            config.copernicus_wms_url(),
            params=params,
            headers=headers,
            timeout=config.relay_timeout_seconds(),
        )
        content_type = response.headers.get("content-type", "")
        is_image = not content_type or content_type.startswith("image/")
        if response.is_success and response.content and is_image:
            return RelayedImage(
                content=response.content,
                media_type=content_type or "image/png",
                cache_control=DAY_CACHE_CONTROL,
                source="copernicus",
            )
        if not response.is_success:
            status_code = response.status_code
            reason = response.reason_phrase
        else:
            # WMS reports layer and time errors as 200 with an XML body.
            reason = "empty body" if not response.content else f"non-image content ({content_type})"
        logger.warning("Copernicus WMS returned HTTP %s for %s", response.status_code, params.get("layers"))
    except httpx.HTTPError as exc:
        logger.warning("Copernicus WMS request failed: %s", exc)

    tile = bbox_to_tile(bbox, WMS_FALLBACK_ZOOM)
    esri_url = ESRI_WORLD_IMAGERY_URL.format(z=tile.z, y=tile.y, x=tile.x)
    try:
        fallback = await client.get(esri_url, headers={"User-Agent": USER_AGENT}, timeout=config.relay_timeout_seconds())
        if fallback.is_success and fallback.content:
            logger.info("WMS served by Esri fallback tile %s/%s/%s", tile.z, tile.y, tile.x)
            return RelayedImage(
                content=fallback.content,
                media_type=fallback.headers.get("content-type", "image/png"),
                cache_control=WEEK_CACHE_CONTROL,
                source="fallback-esri",
            )
        logger.warning("Esri fallback returned HTTP %s", fallback.status_code)
    except httpx.HTTPError as exc:
        logger.warning("Esri fallback failed: %s", exc)

    raise UpstreamError("Copernicus WMS", status_code, reason)


async def probe(client: httpx.AsyncClient, url: str, *, timeout_seconds: float = 10.0) -> str:
    """Return ``ok``, ``error-<status>`` or ``offline`` for one upstream URL."""
    try:
        response = await client.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout_seconds)
    except httpx.HTTPError:
        return "offline"
    return "ok" if response.is_success else f"error-{response.status_code}"


async def service_status(client: httpx.AsyncClient) -> dict[str, str]:
    capabilities = str(
        httpx.URL(config.copernicus_wms_url(), params={"service": "WMS", "request": "GetCapabilities"})
    )
    return {
        "copernicus": await probe(client, capabilities),
        "fallback": await probe(client, ESRI_PROBE_URL),
    }
