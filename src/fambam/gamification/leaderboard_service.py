"""Family leaderboards: weekly points from the completion log, all-time from users."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import Badge, Challenge, CompletedChallenge, User
from fambam.gamification.badge_service import get_weekly_badges_for_family
from fambam.gamification.ranking import FamilyTally


@dataclass
class LeaderboardEntry:
    user_id: int
    name: str
    avatar_url: str | None
    points: int
    rank: int
    badges: list[Badge] = field(default_factory=list)


async def get_family_members(
    db: AsyncSession,
    family_id: int,
    exclude_user_id: int | None = None,
) -> list[User]:
    """Family members ordered by id (the stable enumeration order for rankings)."""
    query = select(User).where(User.family_id == family_id)
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await db.execute(query.order_by(User.id))
    return list(result.scalars())


async def get_weekly_points(db: AsyncSession, family_id: int, week_number: int) -> FamilyTally:
    """Sum challenge points per family member for one week."""
    members = await get_family_members(db, family_id)
    tally = FamilyTally(m.id for m in members)
    if not members:
        return tally

    result = await db.execute(
        select(CompletedChallenge.user_id, Challenge.points_value)
        .join(Challenge, CompletedChallenge.challenge_id == Challenge.id)
        .where(
            CompletedChallenge.week_number == week_number,
            CompletedChallenge.user_id.in_([m.id for m in members]),
        )
    )
    for user_id, points_value in result.all():
        tally.add(user_id, points_value or 0)
    return tally


async def get_weekly_leaderboard(
    db: AsyncSession,
    family_id: int,
    week_number: int,
) -> list[LeaderboardEntry]:
    """This week's standings with the weekly badges each member holds."""
    members = {m.id: m for m in await get_family_members(db, family_id)}
    tally = await get_weekly_points(db, family_id, week_number)
    badges = await get_weekly_badges_for_family(db, family_id, week_number)

    entries = []
    for idx, item in enumerate(tally.ranked()):
        member = members.get(item.user_id)
        if member is None:
            continue
        entries.append(LeaderboardEntry(
            user_id=member.id,
            name=member.name,
            avatar_url=member.avatar_url,
            points=item.points,
            rank=idx + 1,
            badges=badges.get(member.id, []),
        ))
    return entries


async def get_all_time_leaderboard(db: AsyncSession, family_id: int) -> list[LeaderboardEntry]:
    """Standings by lifetime points_total."""
    result = await db.execute(
        select(User)
        .where(User.family_id == family_id)
        .order_by(User.points_total.desc(), User.id)
    )
    return [
        LeaderboardEntry(
            user_id=user.id,
            name=user.name,
            avatar_url=user.avatar_url,
            points=user.points_total,
            rank=idx + 1,
        )
        for idx, user in enumerate(result.scalars())
    ]
