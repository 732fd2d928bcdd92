"""XYZ tile grid helpers in Web Mercator (EPSG:3857)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

ORIGIN_SHIFT = 20037508.34
WORLD_SIZE = 2 * ORIGIN_SHIFT
EARTH_RADIUS_M = 6378137.0
LOOKBACK_DAYS = 3


@dataclass(frozen=True)
class TileCoordinate:
    """Slippy-map tile address."""

    z: int
    x: int
    y: int

    def is_valid(self) -> bool:
        if self.z < 0:
            return False
        n = 2**self.z
        return 0 <= self.x < n and 0 <= self.y < n


def tile_to_bbox(z: int, x: int, y: int) -> tuple[float, float, float, float]:
    """Return (minX, minY, maxX, maxY) in EPSG:3857 meters for one tile."""
    tile_size = WORLD_SIZE / 2**z
    min_x = x * tile_size - ORIGIN_SHIFT
    max_x = min_x + tile_size
    max_y = ORIGIN_SHIFT - y * tile_size
    min_y = max_y - tile_size
    return (min_x, min_y, max_x, max_y)


def bbox_to_wms_param(bbox: tuple[float, float, float, float]) -> str:
    return ",".join(repr(value) for value in bbox)


def parse_bbox(raw: str) -> tuple[float, float, float, float]:
    """Parse a WMS-style ``minx,miny,maxx,maxy`` string."""
    parts = [part.strip() for part in raw.split(",")]
    if len(parts) != 4:
        raise ValueError("bbox must have exactly four comma-separated values")
    values = [float(part) for part in parts]
    if any(math.isnan(value) or math.isinf(value) for value in values):
        raise ValueError("bbox values must be finite")
    return (values[0], values[1], values[2], values[3])


def mercator_to_lonlat(mx: float, my: float) -> tuple[float, float]:
    lon = mx / ORIGIN_SHIFT * 180.0
    lat = math.degrees(2.0 * math.atan(math.exp(my / EARTH_RADIUS_M)) - math.pi / 2.0)
    return lon, lat


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> TileCoordinate:
    """Return the tile containing (lon, lat), clamped to the grid."""
    n = 2**zoom
    lat_rad = math.radians(lat)
    x = math.floor((lon + 180.0) / 360.0 * n)
    y = math.floor((1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n)
    return TileCoordinate(z=zoom, x=max(0, min(x, n - 1)), y=max(0, min(y, n - 1)))


def bbox_to_tile(bbox: tuple[float, float, float, float], zoom: int = 15) -> TileCoordinate:
    """Pick the tile holding the centre of a EPSG:3857 bbox."""
    min_x, min_y, max_x, max_y = bbox
    lon, lat = mercator_to_lonlat((min_x + max_x) / 2.0, (min_y + max_y) / 2.0)
    return lonlat_to_tile(lon, lat, zoom)


def quad_key(x: int, y: int, z: int) -> str:
    """Bing Maps quadkey for a tile."""
    digits: list[str] = []
    for i in range(z, 0, -1):
        mask = 1 << (i - 1)
        digit = 0
        if x & mask:
            digit += 1
        if y & mask:
            digit += 2
        digits.append(str(digit))
    return "".join(digits)


def recent_date_range(today: date | None = None, lookback_days: int = LOOKBACK_DAYS) -> str:
    """Return ``YYYY-MM-DD/YYYY-MM-DD`` covering the last ``lookback_days`` days."""
    end = today or datetime.now(UTC).date()
    start = end - timedelta(days=lookback_days)
    return f"{start.isoformat()}/{end.isoformat()}"
