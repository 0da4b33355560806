"""AssignFlow API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map AssignFlowError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - The portal client (backend_mode "portal") is closed on shutdown
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assignflow.api.deps import close_portal_client
from assignflow.api.error_handlers import register_error_handlers
from assignflow.api.routes import health, instructors, requests
from assignflow.config import get_settings
from assignflow.infrastructure import database
from assignflow.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info(f"AssignFlow API started (backend: {settings.backend_mode})")
    yield
    await close_portal_client()
    if database.db_manager:
        await database.db_manager.dispose()
    logger.info("AssignFlow API shutting down")


app = FastAPI(
    title="AssignFlow API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(requests.router)
app.include_router(instructors.router)

register_error_handlers(app)
