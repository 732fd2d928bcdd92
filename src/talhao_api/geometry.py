"""Plot polygon measurements."""

import math
from collections.abc import Sequence

EARTH_RADIUS_M = 6378137.0


def _ring(coords: Sequence[Sequence[float]]) -> list[tuple[float, float]]:
    """Return [lon, lat] vertices without the closing duplicate."""
    ring = [(float(c[0]), float(c[1])) for c in coords]
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return ring


def project_web_mercator(lon: float, lat: float) -> tuple[float, float]:
    x = math.radians(lon) * EARTH_RADIUS_M
    y = EARTH_RADIUS_M * math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))
    return x, y


def polygon_area_meters(coords: Sequence[Sequence[float]]) -> float:
    """Area in square meters via Web Mercator projection and the shoelace formula.

    Web Mercator inflates areas away from the equator; this matches what the map
    shows the user, not the geodesic area.
    """
    ring = _ring(coords)
    if len(ring) < 3:
        return 0.0

    projected = [project_web_mercator(lon, lat) for lon, lat in ring]
    area = 0.0
    for i, (x1, y1) in enumerate(projected):
        x2, y2 = projected[(i + 1) % len(projected)]
        area += x1 * y2 - x2 * y1
    return abs(area) / 2.0


def polygon_centroid(coords: Sequence[Sequence[float]]) -> tuple[float, float]:
    """Vertex average as (lon, lat)."""
    ring = _ring(coords)
    if not ring:
        raise ValueError("polygon has no vertices")
    lon = sum(p[0] for p in ring) / len(ring)
    lat = sum(p[1] for p in ring) / len(ring)
    return lon, lat
