"""Online Subscriptions API - FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map SubsError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager
    - Tables are created from ORM metadata only when environment == LOCAL

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py; this module only wires
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from online_subs.api.error_handlers import register_error_handlers
from online_subs.api.routes import health, subscriptions
from online_subs.config import get_settings
from online_subs.infrastructure.database import init_db
from online_subs.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    if settings.environment == "LOCAL":
        await manager.create_tables()
    logger.info(f"Online subscriptions API started ({settings.environment})")
    yield
    await manager.dispose()
    logger.info("Online subscriptions API shutting down")


app = FastAPI(
    title="Subscriptions Service API",
    description="API for managing user subscriptions.",
    version="1.0.0",
    lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(subscriptions.router)

register_error_handlers(app)
