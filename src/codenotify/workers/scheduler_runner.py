"""Standalone runner for the contest scheduler.

Runs the sync, notification and cleanup jobs without the HTTP API, for
deployments that keep the scheduler in its own process (set
CODENOTIFY_SCHEDULER_ENABLED=false on the API in that case).

Usage: python -m codenotify.workers.scheduler_runner
"""

from __future__ import annotations

import asyncio
import logging
import signal

from codenotify.config import get_settings
from codenotify.contests.platforms import create_http_client
from codenotify.database import close_db, get_session_factory, init_db
from codenotify.middleware.logging import setup_logging
from codenotify.redis_client import close_redis, init_redis
from codenotify.scheduler import build_scheduler

logger = logging.getLogger(__name__)


async def main(run_sync_on_start: bool = True) -> None:
    """Run the scheduler until SIGINT/SIGTERM."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    redis = await init_redis(settings.redis_url) if settings.push_enabled else None
    http_client = create_http_client(settings)

    scheduler = build_scheduler(settings, get_session_factory(), http_client, redis)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("Starting scheduler worker (platforms=%s)", ", ".join(settings.enabled_platforms))
    scheduler.start()
    try:
        if run_sync_on_start:
            await scheduler.run_sync_tick()
        await stop_event.wait()
    finally:
        await scheduler.stop()
        await http_client.aclose()
        await close_redis()
        await close_db()
        logger.info("Scheduler worker stopped")


if __name__ == "__main__":
    asyncio.run(main())
