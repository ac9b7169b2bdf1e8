"""
MODULE OVERVIEW:
The FastAPI application factory.

WHAT IS HAPPENING HERE:
`create_app()` builds the feed state (registry, broadcaster, throughput window, timers)
and hands it to the app. We use a `lifespan` context manager: when Uvicorn starts the
server we enter the lifespan and start the three timers as background tasks. When the
server shuts down the lifespan's teardown cancels the timers and closes any connection
still open.
"""

import random
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from loguru import logger

from alert_feed.server.routes import broadcast, websocket
from alert_feed.server.state import FeedState
from alert_feed.shared.config import Settings, settings as default_settings
from alert_feed.shared.models import ConnectionStats


def create_app(settings: Settings | None = None, rng: random.Random | None = None) -> FastAPI:
    settings = settings or default_settings
    feed = FeedState(settings, rng)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # STARTUP
        logger.info(f"Mock alert feed starting on ws://{settings.HOST}:{settings.PORT}")
        feed.start()
        logger.info(
            f"Feed will send: alerts every {settings.ALERT_MIN_INTERVAL_S:g}-{settings.ALERT_MAX_INTERVAL_S:g}s, "
            f"metrics every {settings.METRICS_INTERVAL_S:g}s, "
            f"resolutions every {settings.RESOLUTION_INTERVAL_S:g}s (p={settings.RESOLUTION_PROBABILITY:g})"
        )

        yield

        # SHUTDOWN
        logger.info("Feed shutting down. Cancelling timers...")
        await feed.stop()
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="Mock Alert Feed",
        description="Synthetic alert and metrics broadcaster for consumer testing",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.feed = feed

    app.include_router(websocket.router, tags=["Feed"])
    app.include_router(broadcast.router, tags=["Feed"])

    @app.get("/healthz", tags=["Ops"])
    async def health_check():
        return {"status": "ok"}

    @app.get("/stats", tags=["Ops"], response_model=ConnectionStats)
    async def get_stats(request: Request):
        return request.app.state.feed.get_stats()

    return app


app = create_app()
