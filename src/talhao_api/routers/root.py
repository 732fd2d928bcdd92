"""Root API endpoints."""

import sys
from importlib.metadata import version

from fastapi import APIRouter, Request

from talhao_api import __version__, config
from talhao_api.schemas import AppInfo, HealthStatus, Link, RootResponse, Status

router = APIRouter(tags=["System"])


@router.get("/")
def read_index(request: Request) -> RootResponse:
    """Return a welcome message with navigation links."""
    base = config.public_base_url() or str(request.base_url).rstrip("/")
    return RootResponse(
        message="Welcome to the Talhão imagery API",
        links=[
            Link(href=f"{base}/sentinel2/status", rel="status", title="Imagery provider status"),
            Link(href=f"{base}/sentinel2/satellite-tiles/{{z}}/{{x}}/{{y}}.jpg", rel="tiles", title="Satellite tiles"),
            Link(href=f"{base}/docs", rel="docs", title="API Docs"),
        ],
    )


@router.get("/health")
def health() -> HealthStatus:
    """Return health status for container health checks."""
    return HealthStatus(status=Status.HEALTHY)


@router.get("/info")
def info() -> AppInfo:
    """Return application version and environment info."""
    return AppInfo(
        app_version=__version__,
        python_version=sys.version,
        fastapi_version=version("fastapi"),
        httpx_version=version("httpx"),
        uvicorn_version=version("uvicorn"),
    )
