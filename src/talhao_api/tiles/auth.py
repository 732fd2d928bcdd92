"""Copernicus OAuth2 client-credentials token handling."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from talhao_api import config

logger = logging.getLogger(__name__)

RENEWAL_MARGIN_SECONDS = 60.0
DEFAULT_EXPIRES_IN_SECONDS = 3600.0


@dataclass(frozen=True)
class AuthToken:
    """Bearer token; ``expires_at`` already includes the renewal margin."""

    access_token: str
    expires_at: float


class TokenCache:
    """In-memory holder for a single token, scoped to the process."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._token: AuthToken | None = None

    def get(self) -> AuthToken | None:
        token = self._token
        if token is None or self._clock() >= token.expires_at:
            return None
        return token

    def set(self, token: AuthToken) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class CopernicusAuth:
    """Obtain tokens lazily, sharing one refresh between concurrent callers.

    Failures never raise: callers get ``None`` and proceed unauthenticated.
    """

    def __init__(
        self,
        cache: TokenCache | None = None,
        *,
        credentials: Callable[[], tuple[str, str] | None] = config.copernicus_credentials,
        token_url: Callable[[], str] = config.copernicus_token_url,
        clock: Callable[[], float] = time.time,
        timeout_seconds: float = 10.0,
    ):
        self.cache = cache or TokenCache(clock=clock)
        self._credentials = credentials
        self._token_url = token_url
        self._clock = clock
        self._timeout = timeout_seconds
        self._lock = asyncio.Lock()

    def configured(self) -> bool:
        return self._credentials() is not None

    def seconds_remaining(self) -> float | None:
        cached = self.cache.get()
        if cached is None:
            return None
        return max(0.0, cached.expires_at - self._clock())

    async def get_token(self, client: httpx.AsyncClient) -> str | None:
        cached = self.cache.get()
        if cached is not None:
            return cached.access_token

        async with self._lock:
            # Another caller may have refreshed while we waited.
            cached = self.cache.get()
            if cached is not None:
                return cached.access_token

            token = await self._request_token(client)
            if token is None:
                return None
            self.cache.set(token)
            return token.access_token

    async def _request_token(self, client: httpx.AsyncClient) -> AuthToken | None:
        credentials = self._credentials()
        if credentials is None:
            logger.debug("Copernicus credentials not configured; requests go unauthenticated")
            return None

        client_id, client_secret = credentials
        try:
            response = await client.post(
                self._token_url(),
                data={
                    "grant_type": "client_credentials",
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Copernicus token request failed: %s", exc)
            return None

        if not response.is_success:
            logger.warning("Copernicus token request returned HTTP %s", response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Copernicus token response is not JSON")
            return None

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.warning("Copernicus token response has no access_token")
            return None

        try:
            expires_in = float(payload.get("expires_in") or DEFAULT_EXPIRES_IN_SECONDS)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN_SECONDS

        logger.info("Obtained Copernicus token valid for %ss", int(expires_in))
        return AuthToken(
            access_token=str(access_token),
            expires_at=self._clock() + expires_in - RENEWAL_MARGIN_SECONDS,
        )
