"""FastAPI app entry for the session relay."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from oramacore_client.adapters.http.client import OramaClient
from oramacore_client.adapters.relay.router import (
    close_relay_client,
    configure_client,
    reset_sessions,
    router as relay_router,
)
from oramacore_client.config.settings import settings
from oramacore_client.util.logger import logger


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    logger.info("relay starting app=%s env=%s", settings.app_name, settings.env)
    yield
    reset_sessions()
    await close_relay_client()
    logger.info("relay stopped")


def create_app(client: Optional[OramaClient] = None) -> FastAPI:
    """Build the relay app. Without a client one is created from settings on first use."""
    if client is not None:
        configure_client(client)
    app = FastAPI(title=settings.app_name, lifespan=_lifespan)
    app.include_router(relay_router, prefix="/v1")
    return app


app = create_app()
