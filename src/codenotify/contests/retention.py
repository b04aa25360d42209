"""Retention sweep: hard-delete contests that ended long ago."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from codenotify.database import STORAGE_ERRORS
from codenotify.db.models import Contest, NotificationRecord
from codenotify.errors import StorageUnavailable

logger = logging.getLogger(__name__)


async def cleanup_contests(
    session: AsyncSession,
    cutoff_days: int,
    now: datetime | None = None,
) -> int:
    """Delete contests whose end_time is older than ``now - cutoff_days``.

    Their notification records go first so the sweep does not depend on
    the backend enforcing ON DELETE CASCADE. Running it twice deletes
    nothing the second time.

    Returns:
        Number of contests deleted.
    """
    if cutoff_days < 0:
        raise ValueError("cutoff_days must be >= 0")
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=cutoff_days)
    expired = select(Contest.id).where(Contest.end_time < cutoff)

    try:
        await session.execute(
            delete(NotificationRecord)
            .where(NotificationRecord.contest_id.in_(expired))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            delete(Contest).where(Contest.end_time < cutoff).execution_options(synchronize_session=False)
        )
        await session.commit()
    except STORAGE_ERRORS as exc:
        await session.rollback()
        raise StorageUnavailable(f"contest store unavailable during cleanup: {exc}") from exc

    deleted = result.rowcount or 0
    logger.info("Deleted %d contests that ended before %s", deleted, cutoff.isoformat())
    return deleted
