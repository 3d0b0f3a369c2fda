"""Daily activity streaks: full recomputation from history and the incremental path."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import CompletedChallenge, User
from fambam.gamification.week_index import get_local_timezone, local_date, utc_now

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def count_consecutive_days(active_days: Iterable[date], today: date) -> int:
    """Length of the run of consecutive active days ending today or yesterday.

    A run whose latest day is older than yesterday is broken; the next activity
    starts a new streak at 1, so the result is never below 1.
    """
    days = set(active_days)
    if not days:
        return 1

    most_recent = max(days)
    if (today - most_recent).days > 1:
        return 1

    streak = 0
    day = most_recent
    while day in days:
        streak += 1
        day -= _ONE_DAY
    return max(streak, 1)


async def get_active_days(db: AsyncSession, user_id: int, tz: tzinfo | None = None) -> set[date]:
    """Distinct local calendar dates on which the user completed anything."""
    tz = tz or get_local_timezone()
    result = await db.execute(
        select(CompletedChallenge.completed_at).where(CompletedChallenge.user_id == user_id)
    )
    return {local_date(completed_at, tz) for completed_at in result.scalars()}


async def calculate_streak_from_history(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> int:
    """Authoritative streak recomputed from the completion log."""
    if now is None:
        now = utc_now()
    tz = tz or get_local_timezone()
    active_days = await get_active_days(db, user_id, tz)
    return count_consecutive_days(active_days, local_date(now, tz))


async def advance_streak(
    db: AsyncSession,
    user: User,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> int:
    """New streak value for a completion at ``now``.

    Same day keeps the cached value, the next day extends it by one. Anything
    else (no last_active, or a gap of more than a day) defers to the history scan
    instead of resetting the cached value.
    """
    if now is None:
        now = utc_now()
    tz = tz or get_local_timezone()

    if user.last_active is None:
        return await calculate_streak_from_history(db, user.id, now, tz)

    days_diff = (local_date(now, tz) - local_date(user.last_active, tz)).days
    if days_diff <= 0:
        return user.streak_days
    if days_diff == 1:
        return user.streak_days + 1

    logger.debug("Cached streak stale for user %s (%d days); recomputing", user.id, days_diff)
    return await calculate_streak_from_history(db, user.id, now, tz)
