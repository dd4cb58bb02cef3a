from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.record_store import build_default_store
from logging_config import configure_logging
from services.dispatcher import build_default_dispatcher
from services.normalizer import build_default_normalizer
from services.registry import build_default_registry


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # Registry and store are built before the first request.
    build_default_dispatcher()
    try:
        yield
    finally:
        for factory in (
            build_default_dispatcher,
            build_default_registry,
            build_default_store,
            build_default_normalizer,
        ):
            factory.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Magnet Sensor Gateway",
        description="Ingestion gateway for dustbin and manhole sensor telemetry.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
