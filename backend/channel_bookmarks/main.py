"""Channel Bookmarks API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map BookmarkError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager
    - Channel locks, notifier and clock are process-wide and live on app.state

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - app.state populated at import time: ASGI test transports skip lifespan, and the
      collaborators need no IO to construct
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from channel_bookmarks.api.error_handlers import register_error_handlers
from channel_bookmarks.api.routes import channel_bookmarks, health
from channel_bookmarks.config import get_settings
from channel_bookmarks.infrastructure import database
from channel_bookmarks.infrastructure.clock import MillisClock
from channel_bookmarks.infrastructure.observability import setup_logging
from channel_bookmarks.services.bookmark_events import LoggingNotifier
from channel_bookmarks.services.channel_locks import ChannelLockRegistry

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
    logger.info("Channel bookmarks API started")
    yield
    if database.db_manager:
        await database.db_manager.dispose()
    logger.info("Channel bookmarks API shutting down")


app = FastAPI(
    title="Channel Bookmarks API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.state.channel_locks = ChannelLockRegistry(settings.channel_lock_timeout_seconds)
app.state.bookmark_notifier = LoggingNotifier()
app.state.clock = MillisClock()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(channel_bookmarks.router)

register_error_handlers(app)
