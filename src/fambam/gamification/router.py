"""Gamification API endpoints: weeks, badges, challenges, connections, leaderboards."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.database import get_session
from fambam.db.models import Badge, Family, User
from fambam.dependencies import get_redis_dep
from fambam.gamification.badge_evaluator import BadgeEvaluator
from fambam.gamification.badge_service import get_user_badges
from fambam.gamification.connection_stats import (
    MemberConnectionStats,
    get_connection_rank,
    get_connection_stats,
    get_least_connected_members,
    get_weekly_connection_progress,
)
from fambam.gamification.leaderboard_service import get_all_time_leaderboard, get_weekly_leaderboard
from fambam.gamification.ledger import (
    Rejected,
    RejectionReason,
    complete_challenge,
    get_weekly_challenge_progress,
    get_weekly_completion_count,
)
from fambam.gamification.schemas import (
    AllBadgesResponse,
    BadgeResponse,
    ChallengeProgressResponse,
    CompleteChallengeRequest,
    CompleteChallengeResponse,
    ConnectionProgressResponse,
    ConnectionRankResponse,
    ConnectionStatsResponse,
    EarnedBadgeResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    MemberConnectionResponse,
    MemberProgressResponse,
    UserBadgesResponse,
    UserSummaryResponse,
    WeeklyChallengesResponse,
    WeekResponse,
)
from fambam.gamification.week_index import (
    ensure_utc,
    get_week_date_range,
    get_week_end,
    get_week_number,
    get_week_start,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _require_family(user: User) -> int:
    if user.family_id is None:
        raise HTTPException(status_code=404, detail="User has no family")
    return user.family_id


def _badge_response(badge: Badge) -> BadgeResponse:
    return BadgeResponse(
        name=badge.name,
        description=badge.description,
        icon=badge.icon,
        badge_type=badge.badge_type,
    )


# ── Weeks and badges ──


@router.get("/weeks/current", response_model=WeekResponse)
async def current_week():
    week = get_week_number()
    return WeekResponse(
        week_number=week,
        start=get_week_start(week),
        end=get_week_end(week),
        label=get_week_date_range(week),
    )


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges(db: AsyncSession = Depends(get_session)):
    """Full badge catalog in display order."""
    result = await db.execute(select(Badge).order_by(Badge.sort_order, Badge.id))
    return AllBadgesResponse(badges=[_badge_response(b) for b in result.scalars()])


# ── Users ──


@router.get("/users/{user_id}/badges", response_model=UserBadgesResponse)
async def user_badges(user_id: int, db: AsyncSession = Depends(get_session)):
    """Badges the user has earned, one entry per badge name, newest first."""
    await _get_user_or_404(db, user_id)
    earned = await get_user_badges(db, user_id)
    total_available = (await db.execute(select(func.count()).select_from(Badge))).scalar_one()

    return UserBadgesResponse(
        earned=[
            EarnedBadgeResponse(
                name=ub.badge.name,
                icon=ub.badge.icon,
                badge_type=ub.badge.badge_type,
                week_number=ub.week_number,
                earned_at=ensure_utc(ub.earned_at),
            )
            for ub in earned
        ],
        total_available=total_available,
        total_earned=len(earned),
    )


@router.get("/users/{user_id}/summary", response_model=UserSummaryResponse)
async def user_summary(user_id: int, db: AsyncSession = Depends(get_session)):
    user = await _get_user_or_404(db, user_id)
    week = get_week_number()
    return UserSummaryResponse(
        user_id=user.id,
        name=user.name,
        family_id=user.family_id,
        points_total=user.points_total,
        streak_days=user.streak_days,
        last_active=ensure_utc(user.last_active) if user.last_active else None,
        last_challenge_week=user.last_challenge_week,
        week_number=week,
        weekly_completed=await get_weekly_completion_count(db, user_id, week),
    )


@router.get("/users/{user_id}/challenges", response_model=WeeklyChallengesResponse)
async def user_challenges(user_id: int, db: AsyncSession = Depends(get_session)):
    """Active challenges with this week's completion counts for the user."""
    await _get_user_or_404(db, user_id)
    week = get_week_number()
    progress = await get_weekly_challenge_progress(db, user_id, week)
    return WeeklyChallengesResponse(
        week_number=week,
        challenges=[
            ChallengeProgressResponse(
                challenge_id=p.challenge_id,
                title=p.title,
                description=p.description,
                points_value=p.points_value,
                max_completions_per_week=p.max_completions_per_week,
                completed=p.completed,
                remaining=p.remaining,
                needs_target=p.needs_target,
                connection_type=p.connection_type.value if p.connection_type else None,
            )
            for p in progress
        ],
    )


@router.post("/users/{user_id}/challenges/{challenge_id}/complete", response_model=CompleteChallengeResponse)
async def complete(
    user_id: int,
    challenge_id: int,
    body: CompleteChallengeRequest | None = None,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Record a completion.

    Unknown user/challenge is 404; other rejections (limit reached, inactive,
    bad target) are 200 with completed=false and a reason.
    """
    body = body or CompleteChallengeRequest()
    outcome = await complete_challenge(
        db,
        redis,
        user_id,
        challenge_id,
        target_user_id=body.target_user_id,
        target_name=body.target_name,
    )
    if isinstance(outcome, Rejected):
        if outcome.reason is RejectionReason.USER_NOT_FOUND:
            raise HTTPException(status_code=404, detail="User not found")
        if outcome.reason is RejectionReason.CHALLENGE_NOT_FOUND:
            raise HTTPException(status_code=404, detail="Challenge not found")
        return CompleteChallengeResponse(completed=False, reason=outcome.reason.value)

    return CompleteChallengeResponse(
        completed=True,
        points_earned=outcome.points_earned,
        challenge_title=outcome.challenge_title,
        completion_number=outcome.completion_number,
        week_number=outcome.week_number,
        target_rewarded=outcome.target_rewarded,
        badges_awarded=outcome.badges_awarded,
    )


# ── Connections ──


def _member_connection_response(s: MemberConnectionStats) -> MemberConnectionResponse:
    return MemberConnectionResponse(
        user_id=s.user_id,
        name=s.name,
        avatar_url=s.avatar_url,
        total_connections=s.total_connections,
        this_week_connections=s.this_week_connections,
        last_connection=s.last_connection,
        days_since_last_connection=s.days_since_last_connection,
        streak=s.streak,
        needs_reconnect=s.needs_reconnect,
    )


@router.get("/users/{user_id}/connections", response_model=ConnectionStatsResponse)
async def user_connections(user_id: int, db: AsyncSession = Depends(get_session)):
    """Visit/call stats with every other family member, least recently connected first."""
    family_id = _require_family(await _get_user_or_404(db, user_id))
    stats = await get_connection_stats(db, user_id, family_id)
    return ConnectionStatsResponse(
        members=[_member_connection_response(s) for s in stats],
        total_connections=sum(s.total_connections for s in stats),
    )


@router.get("/users/{user_id}/connections/nudges", response_model=list[MemberConnectionResponse])
async def connection_nudges(
    user_id: int,
    limit: int = Query(3, ge=1, le=20),
    db: AsyncSession = Depends(get_session),
):
    family_id = _require_family(await _get_user_or_404(db, user_id))
    stats = await get_least_connected_members(db, user_id, family_id, limit=limit)
    return [_member_connection_response(s) for s in stats]


@router.get("/users/{user_id}/connections/progress", response_model=ConnectionProgressResponse)
async def connection_progress(user_id: int, db: AsyncSession = Depends(get_session)):
    family_id = _require_family(await _get_user_or_404(db, user_id))
    progress = await get_weekly_connection_progress(db, user_id, family_id)
    return ConnectionProgressResponse(
        connected=progress.connected,
        total=progress.total,
        is_complete=progress.is_complete,
        members=[
            MemberProgressResponse(user_id=m.user_id, name=m.name, connected=m.connected)
            for m in progress.members
        ],
    )


@router.get("/users/{user_id}/connections/rank", response_model=ConnectionRankResponse)
async def connection_rank(user_id: int, db: AsyncSession = Depends(get_session)):
    family_id = _require_family(await _get_user_or_404(db, user_id))
    rank = await get_connection_rank(db, user_id, family_id)
    if rank is None:
        raise HTTPException(status_code=404, detail="User is not a family member")
    return ConnectionRankResponse(
        rank=rank.rank,
        total=rank.total,
        user_connections=rank.user_connections,
        top_connections=rank.top_connections,
        is_top=rank.is_top,
    )


# ── Families ──


@router.get("/families/{family_id}/leaderboard", response_model=LeaderboardResponse)
async def family_leaderboard(
    family_id: int,
    view: Literal["all", "week"] = Query("week"),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Family standings. The weekly view settles this week's podium badges before ranking."""
    if await db.get(Family, family_id) is None:
        raise HTTPException(status_code=404, detail="Family not found")

    week = get_week_number()
    if view == "week":
        await BadgeEvaluator(db, redis).award_weekly_leaderboard_badges(family_id)
        entries = await get_weekly_leaderboard(db, family_id, week)
    else:
        entries = await get_all_time_leaderboard(db, family_id)

    return LeaderboardResponse(
        view=view,
        week_number=week,
        entries=[
            LeaderboardEntryResponse(
                user_id=e.user_id,
                name=e.name,
                avatar_url=e.avatar_url,
                points=e.points,
                rank=e.rank,
                badges=[_badge_response(b) for b in e.badges],
            )
            for e in entries
        ],
    )
