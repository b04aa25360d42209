"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from codenotify.admin.router import router as admin_router
from codenotify.config import Settings, get_settings
from codenotify.contests.platforms import create_http_client
from codenotify.contests.router import router as contests_router
from codenotify.database import close_db, get_session_factory, init_db
from codenotify.health.router import router as health_router
from codenotify.middleware import setup_middleware
from codenotify.redis_client import close_redis, init_redis
from codenotify.scheduler import build_scheduler

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    await init_db(settings.database_url)
    redis = await init_redis(settings.redis_url) if settings.push_enabled else None
    http_client = create_http_client(settings)

    session_factory = get_session_factory()
    scheduler = build_scheduler(settings, session_factory, http_client, redis)

    app.state.session_factory = session_factory
    app.state.redis = redis
    app.state.http_client = http_client
    app.state.scheduler = scheduler
    app.state.sync_service = scheduler.sync_service
    app.state.notification_service = scheduler.notification_service

    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.info("scheduler_disabled")

    yield

    await scheduler.stop()
    await http_client.aclose()
    await close_redis()
    await close_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="CodeNotify API",
        description="Competitive programming contest schedules and reminders",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(contests_router)
    app.include_router(admin_router)

    return app
