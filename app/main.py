from __future__ import annotations
from contextlib import ExitStack, asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.monitor import build_default_monitor
from settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    monitor = build_default_monitor()
    with ExitStack() as stack:
        if get_settings().drift_enabled:
            stack.enter_context(monitor.start_simulation())
        try:
            yield
        finally:
            build_default_monitor.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="ChillCRM Temperature Monitor",
        description="Temperature zone monitoring and alert ledger for frozen-food storage.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(web_router)
    return app


app = create_app()
