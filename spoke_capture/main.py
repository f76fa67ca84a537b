from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from spoke_capture.api.routes import router
from spoke_capture.core.config import Settings, settings as default_settings
from spoke_capture.core.logging import configure_logging
from spoke_capture.pipeline.context import open_context
from spoke_capture.pipeline.notifier import CompositeNotifier, LoggingNotifier, RecentRunsNotifier
from spoke_capture.pipeline.pipeline import CapturePipeline
from spoke_capture.pipeline.scheduler import PeriodicTrigger


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger(__name__)
        logger.info("startup")
        async with open_context(settings) as context:
            recent_runs = RecentRunsNotifier(limit=settings.recent_runs_limit)
            pipeline = CapturePipeline(context, CompositeNotifier(LoggingNotifier(), recent_runs))
            app.state.context = context
            app.state.recent_runs = recent_runs
            app.state.pipeline = pipeline

            trigger = None
            if settings.capture_interval_s:
                trigger = PeriodicTrigger(pipeline, settings.capture_interval_s)
                trigger.start()
            try:
                yield
            finally:
                if trigger is not None:
                    await trigger.stop()
        logger.info("shutdown")

    app = FastAPI(title="Spoke Address Capture", version="0.1.0", lifespan=lifespan)
    app.include_router(router)

    @app.get("/")
    async def root():
        return {
            "message": "Spoke address capture service",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
