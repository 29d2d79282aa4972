"""
FastAPI application entry point and composition root.
Challenge: Build the Database once, open/close its pool with the app, expose probes and metrics.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from reader_api.api.v1.router import api_router
from reader_api.config import Settings, get_settings
from reader_api.db.database import Database

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: probe the pool (a down database degrades readiness, not startup). Shutdown: drain it."""
    db: Database = app.state.db
    if not await db.connect():
        logger.warning("Starting without a reachable database; /health/ready will report 503")
    yield
    await db.disconnect()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(
        title=settings.app_name,
        description="Reading platform backend: pooled async data access for articles, categories, tags and users.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.db = Database(settings)

    # CORS for frontend/API consumers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics at /metrics (query, retry and transaction counters)
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
