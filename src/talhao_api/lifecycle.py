"""Application lifespan: report the effective imagery configuration."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from talhao_api import config

logger = logging.getLogger(__name__)


def _log_startup_configuration() -> None:
    credentials = "configured" if config.copernicus_credentials() else "missing, Copernicus requests go unauthenticated"
    logger.info("Copernicus credentials: %s", credentials)
    logger.info("STAC API host: %s", config.stac_host())
    logger.info("Tile provider timeout: %ss", config.tile_timeout_seconds())
    logger.info("CORS origins: %s", ", ".join(config.cors_origins()))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log configuration on startup and shutdown cleanly."""
    _log_startup_configuration()
    yield
    logger.info("Talhão imagery API shutting down")
