"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fambam.config import get_settings
from fambam.database import close_db, get_session, init_db
from fambam.gamification.router import router as gamification_router
from fambam.gamification.seed import seed_badges, seed_challenges
from fambam.health.router import router as health_router
from fambam.middleware import setup_middleware
from fambam.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


async def _seed_catalog() -> None:
    """Upsert badge definitions and insert missing default challenges (idempotent)."""
    try:
        async for db in get_session():
            await seed_badges(db)
            await seed_challenges(db)
            break
    except Exception:
        logger.warning("Catalog seeding failed (tables may not exist yet)", exc_info=True)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    if settings.seed_on_startup:
        await _seed_catalog()

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="FamBam API",
        description="Family challenges, streaks, badges and leaderboards",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)

    return app


app = create_app()
