"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from workload_tracker.api.deps import EXPIRES_AT_HEADER, EXPIRING_SOON_HEADER
from workload_tracker.api.errors import register_exception_handlers
from workload_tracker.api.v1 import router as v1_router
from workload_tracker.core.config import Settings, get_settings
from workload_tracker.core.database import STATE_READY, Database
from workload_tracker.core.logging_config import configure_logging
from workload_tracker.core.security import warn_if_default_secret
from workload_tracker.schemas.health import LivenessResponse

logger = logging.getLogger(__name__)

APP_TITLE = "Workload Tracker API"
APP_VERSION = "1.0.0"


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """
    Build the application. Tests pass their own settings and an already
    initialized Database; otherwise both come from the environment and the
    database is initialized at startup.
    """
    settings = settings or get_settings()
    database = database or Database(settings)
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.LOG_LEVEL)
        warn_if_default_secret(settings)
        if database.state != STATE_READY:
            await run_in_threadpool(database.initialize)
        logger.info(
            "%s started",
            APP_TITLE,
            extra={"environment": settings.APP_ENV, "database": database.backend},
        )
        try:
            yield
        finally:
            await run_in_threadpool(database.close)
            logger.info("%s stopped", APP_TITLE)

    app = FastAPI(
        title=APP_TITLE,
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else settings.cors_origin_list,
        allow_credentials=settings.APP_ENV != "dev",
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[EXPIRING_SOON_HEADER, EXPIRES_AT_HEADER],
    )
    register_exception_handlers(app, settings)

    app.include_router(v1_router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": APP_TITLE, "version": APP_VERSION, "docs": "/docs"}

    @app.get("/health", response_model=LivenessResponse)
    def liveness() -> LivenessResponse:
        """Process liveness for load balancers; does not touch the database."""
        return LivenessResponse(
            timestamp=datetime.now(UTC).isoformat(),
            uptime=round(time.monotonic() - started_at, 3),
            environment=settings.APP_ENV,
        )

    return app


app = create_app()
