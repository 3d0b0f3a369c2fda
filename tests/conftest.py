"""Shared test fixtures.

Store-backed tests run against a throwaway SQLite file per test; the schema is
built from model metadata and the badge catalog is seeded.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.database import close_db, get_engine, init_db
from fambam.db.base import Base
from fambam.db.models import Challenge, CompletedChallenge, Family, Post, User
from fambam.dependencies import get_redis_dep
from fambam.gamification.seed import seed_badges
from fambam.gamification.week_index import get_week_number
from fambam.main import create_app

# Wednesday noon, mid-week so +/- a day stays in the same week
NOW = datetime(2026, 3, 4, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Direct session on a fresh database with badges seeded."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'fambam.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        await seed_badges(session)
        yield session

    await close_db()


class Seeder:
    """Committed test rows. Completion numbers are assigned per (user, challenge, week)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._completion_counts: Counter[tuple[int, int, int]] = Counter()

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        return obj

    async def family(self, name: str = "The Smiths") -> Family:
        return await self._save(Family(name=name))

    async def user(self, name: str, family: Family | None = None, **fields) -> User:
        return await self._save(User(name=name, family_id=family.id if family else None, **fields))

    async def challenge(
        self,
        title: str,
        points_value: int = 10,
        max_completions_per_week: int = 1,
        is_active: bool = True,
    ) -> Challenge:
        return await self._save(Challenge(
            title=title,
            points_value=points_value,
            max_completions_per_week=max_completions_per_week,
            is_active=is_active,
        ))

    async def completion(
        self,
        user: User,
        challenge: Challenge,
        at: datetime,
        target: User | None = None,
    ) -> CompletedChallenge:
        week = get_week_number(at)
        key = (user.id, challenge.id, week)
        self._completion_counts[key] += 1
        return await self._save(CompletedChallenge(
            user_id=user.id,
            challenge_id=challenge.id,
            week_number=week,
            completion_number=self._completion_counts[key],
            completed_at=at,
            target_user_id=target.id if target else None,
        ))

    async def post(self, user: User, at: datetime, message: str = "hello") -> Post:
        return await self._save(Post(
            user_id=user.id,
            family_id=user.family_id,
            content_type="text",
            message=message,
            created_at=at,
        ))


@pytest_asyncio.fixture
async def seeder(db_session: AsyncSession) -> Seeder:
    return Seeder(db_session)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing db_session's database. Redis is absent."""
    app = create_app()

    async def _no_redis() -> AsyncGenerator[None, None]:
        yield None

    app.dependency_overrides[get_redis_dep] = _no_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
