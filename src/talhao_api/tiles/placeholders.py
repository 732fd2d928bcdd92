"""Placeholder imagery returned when every upstream provider fails."""

from __future__ import annotations

import io
from functools import lru_cache
from importlib.resources import files

import numpy as np
from PIL import Image

from talhao_api.tiles.providers import ImageryKind

TILE_SIZE = 256
OVERLAY_ALPHA = 200

_STATIC_ASSETS: dict[ImageryKind, str] = {
    ImageryKind.SATELLITE: "placeholder_satellite.jpg",
    ImageryKind.NDVI: "placeholder_ndvi.png",
    ImageryKind.NDMI: "placeholder_ndmi.png",
    ImageryKind.NDBI: "placeholder_ndbi.png",
}


@lru_cache(maxsize=None)
def static_placeholder(kind: ImageryKind) -> bytes:
    """Embedded placeholder for a kind: gray JPEG for satellite, tinted PNG for indices."""
    resource = files("talhao_api.tiles") / "assets" / _STATIC_ASSETS[kind]
    return resource.read_bytes()


def tile_seed(z: int, x: int, y: int) -> float:
    """Spatial hash of a tile reduced to [0, 1)."""
    seed = ((z * 73856093) ^ (x * 19349663) ^ (y * 83492791)) & 0xFFFFFFFF
    return (seed % 256) / 256


def index_base_color(kind: ImageryKind, p: float) -> tuple[int, int, int]:
    """Pick the base color for an index tile from its seed ``p``."""
    if kind is ImageryKind.NDVI:
        # bare soil -> transition -> vegetation
        if p < 0.3:
            return (int(200 + p * 55), int(100 + p * 30), int(50 + p * 20))
        if p < 0.6:
            return (int(200 + p * 55), int(180 + p * 75), int(50 + p * 20))
        return (int(50 + p * 50), int(150 + p * 100), int(50 + p * 50))
    if kind is ImageryKind.NDMI:
        # dry -> moderate -> wet
        if p < 0.33:
            return (int(160 + p * 60), int(120 + p * 40), int(80 + p * 40))
        if p < 0.66:
            return (int(100 + p * 80), int(150 + p * 100), int(180 + p * 75))
        return (int(50 + p * 80), int(150 + p * 100), int(180 + p * 75))
    if kind is ImageryKind.NDBI:
        # rural -> built-up
        if p < 0.5:
            level = int(150 + p * 60)
        else:
            level = int(50 + p * 100)
        return (level, level, level)
    raise ValueError(f"no index palette for '{kind}'")


def index_bitmap(kind: ImageryKind, z: int, x: int, y: int, size: int = TILE_SIZE) -> np.ndarray:
    """Render a ``(size, size, 4)`` RGBA bitmap for an index tile.

    The base color comes from the tile seed and is rippled by ``(row + col) % 256``
    so the overlay does not look flat.
    """
    base = np.array(index_base_color(kind, tile_seed(z, x, y)), dtype=np.float64)
    rows, cols = np.indices((size, size))
    variation = ((rows + cols) % 256) / 256.0
    offset = variation * 30.0 - 15.0
    rgb = np.floor(base[None, None, :] + offset[:, :, None])
    rgb = np.clip(rgb, 0, 255).astype(np.uint8)
    alpha = np.full((size, size, 1), OVERLAY_ALPHA, dtype=np.uint8)
    return np.concatenate([rgb, alpha], axis=2)


def encode_png(bitmap: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(bitmap).save(buffer, format="PNG")
    return buffer.getvalue()


def index_placeholder(kind: ImageryKind, z: int, x: int, y: int) -> bytes:
    """PNG bytes for a procedurally colored index tile."""
    return encode_png(index_bitmap(kind, z, x, y))
