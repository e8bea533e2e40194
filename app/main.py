from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.admin_api import router as admin_router
from app.api import router
from app.middleware import RequestGateMiddleware
from app.web import router as web_router
from datastore.mock_backend import build_default_backend
from logging_config import configure_logging
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    build_default_backend()
    logger.info(
        "BiteBox starting",
        extra={"status": settings.app_env, "table": settings.backend_persistence_path or "memory"},
    )
    try:
        yield
    finally:
        logger.info("BiteBox stopped")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="BiteBox",
        description="Mobile-first restaurant and dish ratings with one-voter-one-voice averages.",
        version="0.1.0",
        lifespan=lifespan,
    )
    static_dir = Path(__file__).resolve().parent.parent / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(router)
    app.include_router(admin_router)
    app.include_router(web_router)
    app.add_middleware(RequestGateMiddleware)
    return app


app = create_app()
