"""Sequential multi-provider tile resolution with placeholder fallback.

Every imagery kind shares the same flow: compute the tile bbox and the recent
date range, try each provider of the kind's chain once (bounded by the
provider's timeout), and return the first non-empty 2xx image. When the chain
is exhausted a local placeholder is returned, so resolution never fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import StrEnum

import httpx

from talhao_api.tiles import placeholders
from talhao_api.tiles.auth import CopernicusAuth
from talhao_api.tiles.grid import TileCoordinate, recent_date_range, tile_to_bbox
from talhao_api.tiles.providers import (
    DAY_CACHE_CONTROL,
    ImageryKind,
    TileContext,
    TileProvider,
    tile_chain,
    visual_chain,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_SOURCE = "placeholder"


class AttemptOutcome(StrEnum):
    SUCCESS = "success"
    HTTP_ERROR = "http-error"
    EMPTY = "empty"
    NETWORK_ERROR = "network-error"
    TIMEOUT = "timeout"


@dataclass
class ProviderAttempt:
    """Outcome of one provider call within a single resolution."""

    provider: str
    url: str
    timeout_seconds: float
    outcome: AttemptOutcome
    status_code: int | None = None
    size: int = 0
    error: str | None = None


@dataclass(frozen=True)
class ResolvedTile:
    content: bytes
    media_type: str
    cache_control: str
    source: str
    placeholder: bool = False
    fallback: bool = False
    date_range: str | None = None
    attempts: tuple[ProviderAttempt, ...] = ()

    def headers(self) -> dict[str, str]:
        headers = {
            "Cache-Control": self.cache_control,
            "Access-Control-Allow-Origin": "*",
            "X-Tile-Source": self.source,
        }
        if self.placeholder:
            headers["X-Placeholder"] = "true"
        if self.fallback:
            headers["X-Fallback"] = "true"
        if self.date_range:
            headers["X-Tile-Date"] = self.date_range
        return headers


@dataclass(frozen=True)
class ImageryProfile:
    """Provider chain plus the placeholder used when the chain is exhausted."""

    kind: ImageryKind
    providers: list[TileProvider]
    placeholder: Callable[[TileCoordinate], bytes]
    placeholder_media_type: str
    placeholder_cache_control: str = DAY_CACHE_CONTROL


def tile_profile(kind: ImageryKind, timeout_seconds: float | None = None) -> ImageryProfile:
    """Profile for ``/{kind}-tiles``: full chain, static placeholder."""
    return ImageryProfile(
        kind=kind,
        providers=tile_chain(kind, timeout_seconds),
        placeholder=lambda coord: placeholders.static_placeholder(kind),
        placeholder_media_type=kind.media_type,
    )


def visual_profile(kind: ImageryKind, timeout_seconds: float | None = None) -> ImageryProfile:
    """Profile for ``/{kind}-visual``: Copernicus, then a generated index tile."""
    return ImageryProfile(
        kind=kind,
        providers=visual_chain(kind, timeout_seconds),
        placeholder=lambda coord: placeholders.index_placeholder(kind, coord.z, coord.x, coord.y),
        placeholder_media_type="image/png",
    )


class TileResolver:
    """Resolve tile requests against the upstream provider chains.

    ``transport`` is handed to each ``httpx.AsyncClient`` the resolver opens;
    tests pass an ``httpx.MockTransport`` here.
    """

    def __init__(
        self,
        auth: CopernicusAuth | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        today: Callable[[], date] | None = None,
        timeout_seconds: float | None = None,
    ):
        self.auth = auth or CopernicusAuth()
        self._transport = transport
        self._today = today
        self._timeout_seconds = timeout_seconds

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, follow_redirects=True)

    async def resolve_tile(self, kind: ImageryKind, z: int, x: int, y: int) -> ResolvedTile:
        return await self.resolve(tile_profile(kind, self._timeout_seconds), TileCoordinate(z, x, y))

    async def resolve_visual_tile(self, kind: ImageryKind, z: int, x: int, y: int) -> ResolvedTile:
        return await self.resolve(visual_profile(kind, self._timeout_seconds), TileCoordinate(z, x, y))

    async def resolve(self, profile: ImageryProfile, coord: TileCoordinate) -> ResolvedTile:
        date_range = recent_date_range(self._today() if self._today else None)
        attempts: list[ProviderAttempt] = []
        try:
            ctx = TileContext(
                kind=profile.kind,
                coord=coord,
                bbox=tile_to_bbox(coord.z, coord.x, coord.y),
                date_range=date_range,
            )
            async with self.client() as client:
                token = None
                if any(provider.authenticated for provider in profile.providers):
                    token = await self.auth.get_token(client)

                for provider in profile.providers:
                    attempt, response = await self._attempt(client, provider, ctx, token)
                    attempts.append(attempt)
                    if response is None:
                        continue
                    logger.info(
                        "%s tile %s/%s/%s served by %s (%s bytes)",
                        profile.kind,
                        coord.z,
                        coord.x,
                        coord.y,
                        provider.name,
                        attempt.size,
                    )
                    return ResolvedTile(
                        content=response.content,
                        media_type=_media_type(response, provider.default_media_type),
                        cache_control=provider.cache_control,
                        source=provider.name,
                        fallback=not provider.primary,
                        date_range=date_range if provider.primary else None,
                        attempts=tuple(attempts),
                    )
        except Exception:
            logger.exception("Unexpected failure resolving %s tile %s/%s/%s", profile.kind, coord.z, coord.x, coord.y)

        logger.warning(
            "All providers failed for %s tile %s/%s/%s; serving placeholder",
            profile.kind,
            coord.z,
            coord.x,
            coord.y,
        )
        return ResolvedTile(
            content=profile.placeholder(coord),
            media_type=profile.placeholder_media_type,
            cache_control=profile.placeholder_cache_control,
            source=PLACEHOLDER_SOURCE,
            placeholder=True,
            date_range=date_range,
            attempts=tuple(attempts),
        )

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        provider: TileProvider,
        ctx: TileContext,
        token: str | None,
    ) -> tuple[ProviderAttempt, httpx.Response | None]:
        attempt = ProviderAttempt(
            provider=provider.name,
            url="",
            timeout_seconds=provider.timeout_seconds,
            outcome=AttemptOutcome.NETWORK_ERROR,
        )

        try:
            request = provider.build_request(ctx, token)
            request.extensions["timeout"] = httpx.Timeout(provider.timeout_seconds).as_dict()
            attempt.url = str(request.url)
            response = await asyncio.wait_for(client.send(request), timeout=provider.timeout_seconds)
        except (TimeoutError, httpx.TimeoutException):
            attempt.outcome = AttemptOutcome.TIMEOUT
            attempt.error = f"no response within {provider.timeout_seconds}s"
            logger.warning("%s timed out after %ss", provider.name, provider.timeout_seconds)
            return attempt, None
        except httpx.HTTPError as exc:
            attempt.error = str(exc) or type(exc).__name__
            logger.warning("%s request failed: %s", provider.name, attempt.error)
            return attempt, None
        except Exception as exc:
            attempt.error = str(exc) or type(exc).__name__
            logger.exception("%s failed unexpectedly", provider.name)
            return attempt, None

        attempt.status_code = response.status_code
        attempt.size = len(response.content)

        if not response.is_success:
            attempt.outcome = AttemptOutcome.HTTP_ERROR
            if response.status_code == 401 and provider.authenticated:
                logger.warning("%s returned HTTP 401; check Copernicus credentials", provider.name)
            else:
                logger.warning("%s returned HTTP %s", provider.name, response.status_code)
            return attempt, None

        content_type = response.headers.get("content-type", "")
        if content_type and not content_type.startswith("image/"):
            # WMS reports layer/time errors as 200 with an XML body.
            attempt.outcome = AttemptOutcome.HTTP_ERROR
            attempt.error = f"unexpected content-type {content_type}"
            logger.warning("%s returned non-image content (%s)", provider.name, content_type)
            return attempt, None

        if not response.content:
            attempt.outcome = AttemptOutcome.EMPTY
            logger.warning("%s returned an empty body", provider.name)
            return attempt, None

        attempt.outcome = AttemptOutcome.SUCCESS
        return attempt, response


def _media_type(response: httpx.Response, default: str) -> str:
    content_type = response.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip()
    return media_type or default
