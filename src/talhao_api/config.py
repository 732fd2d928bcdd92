"""Environment-driven settings.

Values are read on each call so tests can override them with ``monkeypatch``.
"""

import os
from urllib.parse import urlparse

DEFAULT_TOKEN_URL = "https://identity.dataspace.copernicus.eu/auth/realms/CDSE/protocol/openid-connect/token"
DEFAULT_WMS_URL = "https://sh.dataspace.copernicus.eu/api/v1/wms"
DEFAULT_STAC_URL = "https://stac.dataspace.copernicus.eu/api/v1"
DEFAULT_TILE_TIMEOUT_SECONDS = 8.0
DEFAULT_RELAY_TIMEOUT_SECONDS = 20.0


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


def _positive_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def copernicus_credentials() -> tuple[str, str] | None:
    """Return (client_id, client_secret) or None when either is missing."""
    client_id = _first_env("COPERNICUS_CLIENT_ID", "VITE_COPERNICUS_CLIENT_ID")
    client_secret = _first_env("COPERNICUS_CLIENT_SECRET", "VITE_COPERNICUS_CLIENT_SECRET")
    if not client_id or not client_secret:
        return None
    return (client_id, client_secret)


def copernicus_token_url() -> str:
    return _first_env("COPERNICUS_TOKEN_URL") or DEFAULT_TOKEN_URL


def copernicus_wms_url() -> str:
    return (_first_env("COPERNICUS_WMS_URL") or DEFAULT_WMS_URL).rstrip("/")


def stac_api_url() -> str:
    return (_first_env("VITE_STAC_API_URL", "STAC_API_URL") or DEFAULT_STAC_URL).rstrip("/")


def public_base_url() -> str | None:
    value = _first_env("VITE_API_URL")
    return value.rstrip("/") if value else None


def tile_timeout_seconds() -> float:
    return _positive_float("TALHAO_TILE_TIMEOUT_SECONDS", DEFAULT_TILE_TIMEOUT_SECONDS)


def relay_timeout_seconds() -> float:
    return _positive_float("TALHAO_RELAY_TIMEOUT_SECONDS", DEFAULT_RELAY_TIMEOUT_SECONDS)


def cors_origins() -> list[str]:
    raw = os.getenv("TALHAO_CORS_ORIGINS", "*").strip()
    if not raw:
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def stac_host() -> str:
    parsed = urlparse(stac_api_url())
    return parsed.netloc or parsed.path or "configured"
