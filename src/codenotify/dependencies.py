"""Shared FastAPI dependencies.

Services are built once in the application lifespan and kept on
``app.state``; routes reach them through these functions.
"""

import secrets
from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from codenotify.config import Settings
from codenotify.contests.sync_service import ContestSyncService
from codenotify.notifications.service import NotificationService
from codenotify.scheduler import ContestScheduler


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with request.app.state.session_factory() as session:
        yield session


def get_sync_service(request: Request) -> ContestSyncService:
    return request.app.state.sync_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_scheduler(request: Request) -> ContestScheduler:
    return request.app.state.scheduler


async def require_admin_token(
    request: Request,
    x_admin_token: str | None = Header(None, alias="X-Admin-Token"),
) -> None:
    """Guard for admin routes. An empty configured token disables the admin surface."""
    expected = get_app_settings(request).admin_api_token
    if not expected:
        raise HTTPException(status_code=403, detail="Admin API is disabled")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=401, detail="Invalid admin token")
