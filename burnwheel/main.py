"""Burnwheel API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map BurnwheelError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Startup order: logging → database → schema → engine state → scheduler;
      shutdown reverses it

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Settlement runs in-process on an AsyncIOScheduler interval job
      (ADR: single instance owns the round state)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from burnwheel.api.error_handlers import register_error_handlers
from burnwheel.api.routes import admin, feeds, health, rounds
from burnwheel.config import get_settings
from burnwheel.infrastructure.database import init_db
from burnwheel.infrastructure.observability import setup_logging
from burnwheel.services.runtime import init_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    await db.create_schema()
    runtime = await init_runtime(settings, db)
    runtime.start_scheduler()
    logger.info("Burnwheel API started")
    yield
    logger.info("Burnwheel API shutting down")
    await runtime.shutdown()
    await db.dispose()


app = FastAPI(title="Burnwheel API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(rounds.router)
app.include_router(feeds.router)
app.include_router(admin.router)

register_error_handlers(app)
