"""Talhão imagery API - Sentinel-2 tile proxy for the plot dashboard.

``talhao_api.startup`` is imported first so that ``.env`` is loaded and
logging is configured before any settings are read.
"""

import talhao_api.startup  # noqa: F401

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from talhao_api import config
from talhao_api.lifecycle import lifespan
from talhao_api.routers import plots, root, sentinel2

app = FastAPI(title="Talhão imagery API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Tile-Source", "X-Placeholder", "X-Fallback", "X-Tile-Date"],
)

app.include_router(root.router)
app.include_router(sentinel2.router, prefix="/sentinel2")
# Older dashboard builds call the /api prefix.
app.include_router(sentinel2.router, prefix="/api/sentinel2", include_in_schema=False)
app.include_router(plots.router, prefix="/plots")
