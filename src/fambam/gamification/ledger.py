"""Challenge completion ledger.

A completion is recorded and the acting user's points/streak updated as one
committed unit. Everything after that (mirroring a visit/call onto the target,
the feed post, the event publish, badge rules) is best-effort and can never
undo the primary completion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import Challenge, CompletedChallenge, User
from fambam.gamification.badge_evaluator import BadgeEvaluator, CompletionContext
from fambam.gamification.connection_classifier import ConnectionType, get_connection_type
from fambam.gamification.streak_service import advance_streak
from fambam.gamification.week_index import ensure_utc, get_week_number, utc_now
from fambam.redis_client import CHALLENGE_COMPLETED_CHANNEL, publish_event
from fambam.social.post_service import connection_message, create_post

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    USER_NOT_FOUND = "user_not_found"
    CHALLENGE_NOT_FOUND = "challenge_not_found"
    CHALLENGE_INACTIVE = "challenge_inactive"
    WEEKLY_LIMIT_REACHED = "weekly_limit_reached"
    DUPLICATE_COMPLETION = "duplicate_completion"
    INVALID_TARGET = "invalid_target"


@dataclass(frozen=True)
class Rejected:
    """A completion that was not recorded. Normal operation, not an error."""

    reason: RejectionReason


@dataclass
class CompletionResult:
    points_earned: int
    challenge_title: str
    completion_number: int
    week_number: int
    target_rewarded: bool = False
    badges_awarded: list[str] = field(default_factory=list)


@dataclass
class ChallengeProgress:
    challenge_id: int
    title: str
    description: str | None
    points_value: int
    max_completions_per_week: int
    completed: int
    connection_type: ConnectionType | None

    @property
    def remaining(self) -> int:
        return max(self.max_completions_per_week - self.completed, 0)

    @property
    def needs_target(self) -> bool:
        return self.connection_type is not None


async def count_week_completions(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    week_number: int,
) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(CompletedChallenge)
        .where(
            CompletedChallenge.user_id == user_id,
            CompletedChallenge.challenge_id == challenge_id,
            CompletedChallenge.week_number == week_number,
        )
    )
    return result.scalar_one()


async def get_weekly_completion_count(db: AsyncSession, user_id: int, week_number: int) -> int:
    """All completions by user_id in a week, across challenges."""
    result = await db.execute(
        select(func.count())
        .select_from(CompletedChallenge)
        .where(CompletedChallenge.user_id == user_id, CompletedChallenge.week_number == week_number)
    )
    return result.scalar_one()


async def get_weekly_challenge_progress(
    db: AsyncSession,
    user_id: int,
    week_number: int,
) -> list[ChallengeProgress]:
    """Active challenges (highest points first) with this week's completion counts."""
    challenges = (
        await db.execute(
            select(Challenge)
            .where(Challenge.is_active.is_(True))
            .order_by(Challenge.points_value.desc(), Challenge.id)
        )
    ).scalars().all()

    counts_result = await db.execute(
        select(CompletedChallenge.challenge_id, func.count())
        .where(CompletedChallenge.user_id == user_id, CompletedChallenge.week_number == week_number)
        .group_by(CompletedChallenge.challenge_id)
    )
    counts = dict(counts_result.all())

    return [
        ChallengeProgress(
            challenge_id=c.id,
            title=c.title,
            description=c.description,
            points_value=c.points_value,
            max_completions_per_week=c.max_completions_per_week,
            completed=counts.get(c.id, 0),
            connection_type=get_connection_type(c.title),
        )
        for c in challenges
    ]


async def _record_completion(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    max_per_week: int,
    week_number: int,
    now: datetime,
    target_user_id: int | None,
) -> CompletedChallenge | RejectionReason:
    """Insert the next completion_number for (user, challenge, week), within the weekly cap."""
    count = await count_week_completions(db, user_id, challenge_id, week_number)
    if count >= max_per_week:
        return RejectionReason.WEEKLY_LIMIT_REACHED

    completion = CompletedChallenge(
        user_id=user_id,
        challenge_id=challenge_id,
        week_number=week_number,
        completion_number=count + 1,
        completed_at=now,
        target_user_id=target_user_id,
    )
    db.add(completion)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        return RejectionReason.DUPLICATE_COMPLETION
    return completion


async def _apply_progress(
    db: AsyncSession,
    user: User,
    points: int,
    week_number: int,
    now: datetime,
) -> None:
    """Add points and advance streak/last-active for a recorded completion."""
    new_streak = await advance_streak(db, user, now)
    user.points_total = (user.points_total or 0) + points
    user.streak_days = new_streak
    user.last_active = now
    user.last_challenge_week = week_number
    await db.flush()


async def complete_challenge(
    db: AsyncSession,
    redis: object,
    user_id: int,
    challenge_id: int,
    target_user_id: int | None = None,
    target_name: str | None = None,
    now: datetime | None = None,
) -> CompletionResult | Rejected:
    """Record one completion of a challenge by user_id.

    Visit/call challenges need a target: either another family member
    (target_user_id, who is credited with a mirrored completion) or a free-text
    name (target_name, feed post only). Without one the completion is rejected
    as INVALID_TARGET. Targets on other challenges are ignored.
    Store errors on the primary insert propagate.
    """
    now = ensure_utc(now) if now else utc_now()
    week_number = get_week_number(now)

    user = await db.get(User, user_id)
    if user is None:
        logger.warning("User not found: %s", user_id)
        return Rejected(RejectionReason.USER_NOT_FOUND)

    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        logger.warning("Challenge not found: %s", challenge_id)
        return Rejected(RejectionReason.CHALLENGE_NOT_FOUND)
    if not challenge.is_active:
        return Rejected(RejectionReason.CHALLENGE_INACTIVE)

    title = challenge.title
    points = challenge.points_value
    max_per_week = challenge.max_completions_per_week
    is_connection = get_connection_type(title) is not None

    target: User | None = None
    if not is_connection:
        target_user_id, target_name = None, None
    elif target_user_id is None and not target_name:
        return Rejected(RejectionReason.INVALID_TARGET)
    elif target_user_id is not None:
        target = await db.get(User, target_user_id)
        if (
            target is None
            or target.id == user.id
            or user.family_id is None
            or target.family_id != user.family_id
        ):
            return Rejected(RejectionReason.INVALID_TARGET)
        target_name = target.name

    actor_name = user.name
    family_id = user.family_id
    previous_challenge_week = user.last_challenge_week

    outcome = await _record_completion(db, user.id, challenge_id, max_per_week, week_number, now, target_user_id)
    if isinstance(outcome, RejectionReason):
        return Rejected(outcome)
    completion_number = outcome.completion_number

    await _apply_progress(db, user, points, week_number, now)
    points_total, streak_days = user.points_total, user.streak_days
    await db.commit()

    result = CompletionResult(
        points_earned=points,
        challenge_title=title,
        completion_number=completion_number,
        week_number=week_number,
    )
    ctx = CompletionContext(
        user_id=user_id,
        family_id=family_id,
        points_total=points_total,
        streak_days=streak_days,
        previous_challenge_week=previous_challenge_week,
        challenge_title=title,
        target_user_id=target_user_id,
    )

    if is_connection:
        if target is not None:
            result.target_rewarded = await _mirror_completion(
                db, user_id, target, challenge_id, points, max_per_week, week_number, now
            )
        await _post_connection(db, user_id, actor_name, family_id, title, target_name, now)

    await publish_event(redis, CHALLENGE_COMPLETED_CHANNEL, {
        "user_id": user_id,
        "family_id": family_id,
        "challenge_title": title,
        "points": points,
        "week_number": week_number,
        "target_user_id": target_user_id,
    })

    # Only the acting user's badges are evaluated; the target's refresh on their next completion
    awarded = await BadgeEvaluator(db, redis, now).evaluate(ctx)
    result.badges_awarded = [a.badge_name for a in awarded if a.user_id == user_id]
    return result


async def _mirror_completion(
    db: AsyncSession,
    actor_id: int,
    target: User,
    challenge_id: int,
    points: int,
    max_per_week: int,
    week_number: int,
    now: datetime,
) -> bool:
    """Credit a member target with their own completion of the challenge.

    The mirrored row has no target_user_id: the target earns points and streak
    but is not counted as having made the visit or call. Returns True if the
    target was credited. Failures are logged and dropped.
    """
    target_id = target.id
    try:
        outcome = await _record_completion(db, target_id, challenge_id, max_per_week, week_number, now, None)
        if not isinstance(outcome, CompletedChallenge):
            return False
        await _apply_progress(db, target, points, week_number, now)
        await db.commit()
    except Exception:
        logger.warning("Mirrored completion failed for user %s (actor %s)", target_id, actor_id, exc_info=True)
        await db.rollback()
        return False
    return True


async def _post_connection(
    db: AsyncSession,
    actor_id: int,
    actor_name: str,
    family_id: int | None,
    title: str,
    target_name: str,
    now: datetime,
) -> None:
    try:
        await create_post(db, actor_id, family_id, connection_message(actor_name, title, target_name), now=now)
        await db.commit()
    except Exception:
        logger.warning("Connection post failed for user %s", actor_id, exc_info=True)
        await db.rollback()
