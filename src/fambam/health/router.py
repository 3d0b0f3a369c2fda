"""Liveness, readiness and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.config import get_settings
from fambam.database import get_session
from fambam.db.models import Badge
from fambam.gamification.seed import BADGE_SEED_DATA
from fambam.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Check the store, the seeded badge catalog and Redis.

    Always 200; ``status`` is "ready" only when every check is "ok".
    """
    checks: dict[str, object] = {}

    try:
        badge_count = (await db.execute(select(func.count()).select_from(Badge))).scalar_one()
        checks["database"] = "ok"
        expected = len(BADGE_SEED_DATA)
        checks["badge_catalog"] = "ok" if badge_count >= expected else f"seeded {badge_count}/{expected}"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    ready = all(v == "ok" for v in checks.values())
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
