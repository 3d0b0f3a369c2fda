"""Badge award service with duplicate prevention and notification."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import Badge, User, UserBadge
from fambam.gamification.week_index import ensure_utc, utc_now
from fambam.redis_client import BADGE_EARNED_CHANNEL, publish_event

logger = logging.getLogger(__name__)


class BadgeState(str, Enum):
    """Per (user, badge[, week]) award state. AWARDED is terminal."""

    UNAWARDED = "unawarded"
    AWARDED = "awarded"


async def get_badge_by_name(db: AsyncSession, name: str) -> Badge | None:
    """Fetch a badge definition by name."""
    result = await db.execute(select(Badge).where(Badge.name == name).limit(1))
    return result.scalar_one_or_none()


async def get_badge_state(
    db: AsyncSession,
    user_id: int,
    badge_id: int,
    week_number: int | None = None,
) -> BadgeState:
    """Resolve the award state for a user/badge key (week_number None = all-time)."""
    week_filter = (
        UserBadge.week_number.is_(None) if week_number is None else UserBadge.week_number == week_number
    )
    result = await db.execute(
        select(UserBadge.id).where(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id,
            week_filter,
        ).limit(1)
    )
    return BadgeState.AWARDED if result.scalar_one_or_none() is not None else BadgeState.UNAWARDED


async def has_badge(
    db: AsyncSession,
    user_id: int,
    badge_id: int,
    week_number: int | None = None,
) -> bool:
    """Check if user already holds a specific badge award."""
    return await get_badge_state(db, user_id, badge_id, week_number) is BadgeState.AWARDED


async def award_badge(
    db: AsyncSession,
    redis: object,
    user_id: int,
    badge_name: str,
    week_number: int | None = None,
    now: datetime | None = None,
) -> bool:
    """Award a badge to a user.

    Returns True if newly awarded, False if already held or badge not found.
    The insert is committed on its own so a later failed award cannot undo it;
    a unique-constraint race is treated the same as "already held".
    """
    badge = await get_badge_by_name(db, badge_name)
    if badge is None:
        logger.warning("Badge not found: %s", badge_name)
        return False

    if await has_badge(db, user_id, badge.id, week_number):
        return False

    earned_at = ensure_utc(now) if now else utc_now()
    db.add(UserBadge(
        user_id=user_id,
        badge_id=badge.id,
        week_number=week_number,
        earned_at=earned_at,
    ))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False  # a concurrent award holds the unique key

    logger.info("Awarded badge %s to user %s (week %s)", badge_name, user_id, week_number)
    await publish_event(redis, BADGE_EARNED_CHANNEL, {
        "user_id": user_id,
        "badge_name": badge.name,
        "badge_icon": badge.icon,
        "badge_type": badge.badge_type,
        "week_number": week_number,
    })
    return True


async def get_user_badges(db: AsyncSession, user_id: int) -> list[UserBadge]:
    """Earned badges, newest first, de-duplicated by badge name (weekly badges repeat)."""
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    seen: set[str] = set()
    badges: list[UserBadge] = []
    for user_badge in result.scalars():
        if user_badge.badge.name in seen:
            continue
        seen.add(user_badge.badge.name)
        badges.append(user_badge)
    return badges


async def get_weekly_badges_for_family(
    db: AsyncSession,
    family_id: int,
    week_number: int,
) -> dict[int, list[Badge]]:
    """Badges earned for a given week, grouped by family member id."""
    result = await db.execute(
        select(UserBadge)
        .join(User, UserBadge.user_id == User.id)
        .where(User.family_id == family_id, UserBadge.week_number == week_number)
        .order_by(UserBadge.user_id, UserBadge.id)
    )
    by_user: dict[int, list[Badge]] = {}
    for user_badge in result.scalars():
        by_user.setdefault(user_badge.user_id, []).append(user_badge.badge)
    return by_user

