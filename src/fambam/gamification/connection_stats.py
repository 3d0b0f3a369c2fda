"""Per-member visit/call statistics, nudge ordering, and weekly connection progress."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import Challenge, CompletedChallenge
from fambam.gamification.connection_classifier import filter_connection_titles
from fambam.gamification.leaderboard_service import get_family_members
from fambam.gamification.ranking import rank_of
from fambam.gamification.week_index import ensure_utc, get_week_number, utc_now

RECONNECT_AFTER_DAYS = 14


@dataclass
class ConnectionRecord:
    user_id: int
    target_user_id: int
    week_number: int
    completed_at: datetime
    title: str


@dataclass
class MemberConnectionStats:
    user_id: int
    name: str
    avatar_url: str | None
    total_connections: int
    this_week_connections: int
    last_connection: datetime | None
    days_since_last_connection: int | None
    streak: int
    needs_reconnect: bool


@dataclass
class MemberProgress:
    user_id: int
    name: str
    connected: bool


@dataclass
class WeeklyConnectionProgress:
    connected: int
    total: int
    is_complete: bool
    members: list[MemberProgress] = field(default_factory=list)


@dataclass
class ConnectionRank:
    rank: int
    total: int
    user_connections: int
    top_connections: int
    is_top: bool


async def get_connection_records(db: AsyncSession, *criteria: Any) -> list[ConnectionRecord]:
    """Completions with a target whose challenge classifies as visit/call, newest first."""
    result = await db.execute(
        select(
            CompletedChallenge.user_id,
            CompletedChallenge.target_user_id,
            CompletedChallenge.week_number,
            CompletedChallenge.completed_at,
            Challenge.title,
        )
        .join(Challenge, CompletedChallenge.challenge_id == Challenge.id)
        .where(CompletedChallenge.target_user_id.is_not(None), *criteria)
        .order_by(CompletedChallenge.completed_at.desc(), CompletedChallenge.id.desc())
    )
    records = [
        ConnectionRecord(
            user_id=row.user_id,
            target_user_id=row.target_user_id,
            week_number=row.week_number,
            completed_at=ensure_utc(row.completed_at),
            title=row.title,
        )
        for row in result.all()
    ]
    return filter_connection_titles(records, lambda r: r.title)


def consecutive_week_streak(weeks: set[int], current_week: int) -> int:
    """Weeks in a row with a connection, counting back from current_week."""
    streak = 0
    week = current_week
    while week > 0 and week in weeks:
        streak += 1
        week -= 1
    return streak


def nudge_order(stats: list[MemberConnectionStats]) -> list[MemberConnectionStats]:
    """Never-connected members first, then most days since last connection."""
    return sorted(
        stats,
        key=lambda s: (
            s.days_since_last_connection is not None,
            -(s.days_since_last_connection or 0),
        ),
    )


async def get_connection_stats(
    db: AsyncSession,
    user_id: int,
    family_id: int,
    now: datetime | None = None,
) -> list[MemberConnectionStats]:
    """Connection stats between user_id and each other member, in nudge order."""
    if now is None:
        now = utc_now()
    now = ensure_utc(now)
    current_week = get_week_number(now)

    members = await get_family_members(db, family_id, exclude_user_id=user_id)
    if not members:
        return []

    records = await get_connection_records(db, CompletedChallenge.user_id == user_id)

    stats = []
    for member in members:
        member_records = [r for r in records if r.target_user_id == member.id]
        last_connection = member_records[0].completed_at if member_records else None
        days_since = (now - last_connection) // timedelta(days=1) if last_connection else None
        stats.append(MemberConnectionStats(
            user_id=member.id,
            name=member.name,
            avatar_url=member.avatar_url,
            total_connections=len(member_records),
            this_week_connections=sum(1 for r in member_records if r.week_number == current_week),
            last_connection=last_connection,
            days_since_last_connection=days_since,
            streak=consecutive_week_streak({r.week_number for r in member_records}, current_week),
            needs_reconnect=days_since is None or days_since > RECONNECT_AFTER_DAYS,
        ))

    return nudge_order(stats)


async def get_least_connected_members(
    db: AsyncSession,
    user_id: int,
    family_id: int,
    limit: int = 3,
    now: datetime | None = None,
) -> list[MemberConnectionStats]:
    """Suggested members to reconnect with (head of the nudge order)."""
    stats = await get_connection_stats(db, user_id, family_id, now)
    return stats[:limit]


async def get_weekly_connection_progress(
    db: AsyncSession,
    user_id: int,
    family_id: int,
    now: datetime | None = None,
    week_number: int | None = None,
) -> WeeklyConnectionProgress:
    """How many of the other family members user_id connected with this week."""
    if week_number is None:
        week_number = get_week_number(now)

    members = await get_family_members(db, family_id, exclude_user_id=user_id)
    records = await get_connection_records(
        db,
        CompletedChallenge.user_id == user_id,
        CompletedChallenge.week_number == week_number,
    )
    connected_ids = {r.target_user_id for r in records}

    progress = [MemberProgress(user_id=m.id, name=m.name, connected=m.id in connected_ids) for m in members]
    connected = sum(1 for p in progress if p.connected)
    total = len(progress)
    return WeeklyConnectionProgress(
        connected=connected,
        total=total,
        is_complete=total > 0 and connected >= total,
        members=progress,
    )


async def count_weekly_connections(db: AsyncSession, family_id: int, week_number: int) -> dict[int, int]:
    """Connection-type completions per family member for one week (0 for none)."""
    members = await get_family_members(db, family_id)
    counts = {m.id: 0 for m in members}
    if not counts:
        return counts

    records = await get_connection_records(
        db,
        CompletedChallenge.week_number == week_number,
        CompletedChallenge.user_id.in_(list(counts)),
    )
    for record in records:
        counts[record.user_id] += 1
    return counts


async def get_connection_rank(
    db: AsyncSession,
    user_id: int,
    family_id: int,
    now: datetime | None = None,
) -> ConnectionRank | None:
    """user_id's position in the family by this week's connections (None if not a member)."""
    counts = await count_weekly_connections(db, family_id, get_week_number(now))
    if user_id not in counts:
        return None

    rank = rank_of(counts, user_id)
    user_connections = counts[user_id]
    return ConnectionRank(
        rank=rank,
        total=len(counts),
        user_connections=user_connections,
        top_connections=max(counts.values()),
        is_top=rank == 1 and user_connections > 0,
    )


async def get_total_connections(db: AsyncSession, user_id: int) -> int:
    """All-time visit/call completions by user_id."""
    return len(await get_connection_records(db, CompletedChallenge.user_id == user_id))
