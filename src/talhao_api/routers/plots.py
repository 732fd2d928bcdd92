"""Plot geometry endpoints."""

from fastapi import APIRouter

from talhao_api.errors import invalid_parameter
from talhao_api.geometry import polygon_area_meters, polygon_centroid
from talhao_api.schemas import Centroid, PlotSummary, PlotSummaryRequest

router = APIRouter(tags=["Plots"])


@router.post("/summary")
def summarize_plot(body: PlotSummaryRequest) -> PlotSummary:
    """Return area and centroid of the plot's outer ring."""
    outer = [list(position) for position in body.geometry.coordinates[0]]
    try:
        lon, lat = polygon_centroid(outer)
        area = polygon_area_meters(outer)
    except ValueError as exc:
        raise invalid_parameter(str(exc)) from exc
    return PlotSummary(
        name=body.name,
        area_m2=area,
        area_ha=area / 10_000,
        centroid=Centroid(lon=lon, lat=lat),
    )
