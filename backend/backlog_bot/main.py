"""Backlog Bot API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map BacklogBotError → structured JSON responses
    - Runtime (clients, session backend, poller) built on startup via lifespan
      and closed on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Polling runs as a background task inside the API process: one deployable
      serves both the Telegram loop and the OAuth redirect
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backlog_bot.api.error_handlers import register_error_handlers
from backlog_bot.api.routes import health, oauth
from backlog_bot.config import get_settings
from backlog_bot.infrastructure.observability import setup_logging
from backlog_bot.services.runtime import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    runtime = build_runtime(settings)
    if settings.session_backend == "sql" and settings.database_create_schema:
        await runtime.backend.create_schema()
    app.state.runtime = runtime
    runtime.start_polling()
    logger.info("Backlog bot started")
    yield
    logger.info("Backlog bot shutting down")
    await runtime.close()


app = FastAPI(
    title="Backlog Bot", version="0.1.0", lifespan=lifespan,
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(oauth.router)

register_error_handlers(app)
