from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .endpoints import health_router
from .runtime import start_runtime, stop_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not start_runtime():
        logger.warning("[APP] MQTT broker not reachable yet; retrying in background")
    try:
        yield
    finally:
        stop_runtime()


def create_app(with_runtime: bool = True) -> FastAPI:
    application = FastAPI(
        title="Telemetry Ingest Service",
        version="0.1.0",
        lifespan=lifespan if with_runtime else None,
    )
    application.include_router(health_router)
    return application


app = create_app()
