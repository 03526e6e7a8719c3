from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from providers.watttime import build_default_client
from services.aggregator import build_default_aggregator


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        if build_default_aggregator.cache_info().currsize:
            await build_default_aggregator().source.aclose()
        build_default_aggregator.cache_clear()
        build_default_client.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Grid Carbon Intensity",
        description="Annotates usage intervals with average grid carbon intensity.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
