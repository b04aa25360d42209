"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from codenotify.dependencies import get_app_settings, get_db

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: checks DB (and Redis when the push channel uses it)."""
    checks: dict[str, object] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    redis = getattr(request.app.state, "redis", None)
    if redis is not None:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    scheduler = getattr(request.app.state, "scheduler", None)
    checks["scheduler"] = "running" if scheduler is not None and scheduler.running else "stopped"

    all_ok = all(v == "ok" for k, v in checks.items() if k != "scheduler")
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version(request: Request) -> dict[str, str]:
    """Return API version and environment."""
    settings = get_app_settings(request)
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
