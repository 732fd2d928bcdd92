"""Pydantic request and response models."""

from enum import StrEnum

from geojson_pydantic import Polygon
from pydantic import BaseModel, Field


class Status(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthStatus(BaseModel):
    """Health check response."""

    status: Status


class Link(BaseModel):
    """Hypermedia link."""

    href: str
    rel: str
    title: str


class RootResponse(BaseModel):
    """Root endpoint response with navigation links."""

    message: str
    links: list[Link]


class AppInfo(BaseModel):
    """Application version and environment info."""

    app_version: str
    python_version: str
    fastapi_version: str
    httpx_version: str
    uvicorn_version: str


class ServiceStatus(BaseModel):
    """Reachability of the upstream imagery services."""

    backend: str = "ok"
    timestamp: str
    copernicus: str
    fallback: str


class AuthStatus(BaseModel):
    """Whether a Copernicus token could be obtained.

    The token itself stays on the server.
    """

    authenticated: bool
    token_type: str = "Bearer"
    expires_in: int | None = None


class STACSearchRequest(BaseModel):
    """Body of a STAC item search relayed to Copernicus."""

    bbox: list[float] = Field(..., min_length=4, max_length=4, description="Bounding box [west, south, east, north]")
    datetime: str = Field(..., min_length=1, description="RFC 3339 instant or interval")
    collections: list[str] = Field(default=["sentinel-2"], min_length=1)
    limit: int = Field(default=1, ge=1, le=100)


class PlotSummaryRequest(BaseModel):
    """A drawn plot boundary."""

    geometry: Polygon
    name: str | None = None


class Centroid(BaseModel):
    lon: float
    lat: float


class PlotSummary(BaseModel):
    """Area and centroid of a plot's outer ring."""

    name: str | None = None
    area_m2: float
    area_ha: float
    centroid: Centroid
