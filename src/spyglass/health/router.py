"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from spyglass.config import get_settings
from spyglass.database import get_session
from spyglass.services import Services, get_services

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    services: Services = Depends(get_services),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: local database, upstream store and poller state."""
    checks: dict[str, object] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    try:
        await services.store.ping()
        checks["upstream"] = "ok"
    except Exception as exc:
        checks["upstream"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    checks["poller"] = "running" if services.poller.running else "stopped"
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
