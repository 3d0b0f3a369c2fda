"""Badge evaluator: runs badge rules against the ledger after a completion.

Each rule is an independent step: a failing rule is logged, its unit rolled
back, and the remaining rules still run. Rules read plain values from a
CompletionContext snapshot rather than live ORM objects.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import Challenge, CompletedChallenge
from fambam.gamification.badge_service import award_badge
from fambam.gamification.connection_classifier import (
    ConnectionType,
    get_connection_type,
    is_connection_challenge,
)
from fambam.gamification.connection_stats import (
    count_weekly_connections,
    get_connection_records,
    get_weekly_connection_progress,
)
from fambam.gamification.leaderboard_service import get_weekly_points
from fambam.gamification.ranking import pick_most_improved, pick_strict_leader, rank_podium
from fambam.gamification.week_index import ensure_utc, get_week_bounds, get_week_number, utc_now
from fambam.social.post_service import count_posts_between

logger = logging.getLogger(__name__)

MILESTONE_BADGES = (
    ("Century Club", 100),
    ("High Roller", 500),
    ("Legend", 1000),
)
STREAK_MASTER_DAYS = 4
STORYTELLER_POSTS = 3
VISITOR_TARGETS = 3
CONNECTOR_TARGETS = 5
INNER_CIRCLE_WEEKS = 4


@dataclass(frozen=True)
class CompletionContext:
    """Snapshot of the acting user taken when the completion was recorded.

    points_total/streak_days are post-update values; previous_challenge_week is
    the value before this completion overwrote it.
    """

    user_id: int
    family_id: int | None
    points_total: int
    streak_days: int
    previous_challenge_week: int | None
    challenge_title: str | None = None
    target_user_id: int | None = None


@dataclass(frozen=True)
class AwardedBadge:
    user_id: int
    badge_name: str
    week_number: int | None = None


Rule = Callable[[CompletionContext], Awaitable[list[AwardedBadge]]]


class BadgeEvaluator:
    """Evaluates badge rules for challenge completions."""

    def __init__(self, db: AsyncSession, redis: object, now: datetime | None = None) -> None:
        self.db = db
        self.redis = redis
        self.now = ensure_utc(now) if now else utc_now()
        self.week_number = get_week_number(self.now)

    async def evaluate(self, ctx: CompletionContext) -> list[AwardedBadge]:
        """Run every applicable rule in order. Returns badges newly awarded (any user)."""
        rules: list[tuple[str, Rule]] = [
            ("milestones", self._check_milestones),
            ("streak", self._check_streak),
            ("comeback", self._check_comeback),
            ("storyteller", self._check_storyteller),
        ]
        if is_connection_challenge(ctx.challenge_title):
            rules += [
                ("visitor_connector", self._check_visitor_connector),
                ("round_robin", self._check_round_robin),
                ("inner_circle", self._check_inner_circle),
                ("bridge_builder", self._check_bridge_builder),
            ]
        rules += [
            ("perfect_week", self._check_perfect_week),
            ("weekly_leaderboard", self._check_weekly_leaderboard),
        ]

        awarded: list[AwardedBadge] = []
        for name, rule in rules:
            try:
                awarded += await rule(ctx)
            except Exception:
                logger.warning("Badge rule %s failed for user %s", name, ctx.user_id, exc_info=True)
                await self.db.rollback()
        return awarded

    async def award_weekly_leaderboard_badges(self, family_id: int) -> list[AwardedBadge]:
        """Gold/Silver/Bronze and Most Improved for a family's current week."""
        current = await get_weekly_points(self.db, family_id, self.week_number)
        previous = await get_weekly_points(self.db, family_id, self.week_number - 1)

        awarded = []
        for badge_name, user_id in rank_podium(current):
            awarded += await self._award(user_id, badge_name, self.week_number)

        improved = pick_most_improved(current, previous)
        if improved is not None:
            awarded += await self._award(improved, "Most Improved", self.week_number)
        return awarded

    async def _award(self, user_id: int, badge_name: str, week_number: int | None = None) -> list[AwardedBadge]:
        if await award_badge(self.db, self.redis, user_id, badge_name, week_number, self.now):
            return [AwardedBadge(user_id, badge_name, week_number)]
        return []

    # --- Per-user rules ---

    async def _check_milestones(self, ctx: CompletionContext) -> list[AwardedBadge]:
        awarded = []
        for badge_name, threshold in MILESTONE_BADGES:
            if ctx.points_total >= threshold:
                awarded += await self._award(ctx.user_id, badge_name)
        return awarded

    async def _check_streak(self, ctx: CompletionContext) -> list[AwardedBadge]:
        if ctx.streak_days >= STREAK_MASTER_DAYS:
            return await self._award(ctx.user_id, "Streak Master")
        return []

    async def _check_comeback(self, ctx: CompletionContext) -> list[AwardedBadge]:
        # Week granularity, unlike the day-based streak staleness check
        previous = ctx.previous_challenge_week
        if previous is not None and self.week_number - previous > 1:
            return await self._award(ctx.user_id, "Comeback Kid")
        return []

    async def _check_storyteller(self, ctx: CompletionContext) -> list[AwardedBadge]:
        start, end = get_week_bounds(self.week_number)
        if await count_posts_between(self.db, ctx.user_id, start, end) >= STORYTELLER_POSTS:
            return await self._award(ctx.user_id, "Storyteller")
        return []

    async def _check_perfect_week(self, ctx: CompletionContext) -> list[AwardedBadge]:
        challenges = (
            await self.db.execute(
                select(Challenge.id, Challenge.max_completions_per_week).where(Challenge.is_active.is_(True))
            )
        ).all()
        if not challenges:
            return []

        counts_result = await self.db.execute(
            select(CompletedChallenge.challenge_id, func.count())
            .where(
                CompletedChallenge.user_id == ctx.user_id,
                CompletedChallenge.week_number == self.week_number,
            )
            .group_by(CompletedChallenge.challenge_id)
        )
        counts = dict(counts_result.all())
        if all(counts.get(cid, 0) >= max_per_week for cid, max_per_week in challenges):
            return await self._award(ctx.user_id, "Perfect Week", self.week_number)
        return []

    # --- Connection rules ---

    async def _check_visitor_connector(self, ctx: CompletionContext) -> list[AwardedBadge]:
        records = await get_connection_records(self.db, CompletedChallenge.user_id == ctx.user_id)
        visited = {r.target_user_id for r in records if get_connection_type(r.title) is ConnectionType.VISIT}
        called = {r.target_user_id for r in records if get_connection_type(r.title) is ConnectionType.CALL}

        awarded = []
        if len(visited) >= VISITOR_TARGETS:
            awarded += await self._award(ctx.user_id, "Visitor")
        if len(called) >= CONNECTOR_TARGETS:
            awarded += await self._award(ctx.user_id, "Connector")
        return awarded

    async def _check_round_robin(self, ctx: CompletionContext) -> list[AwardedBadge]:
        if ctx.family_id is None:
            return []
        progress = await get_weekly_connection_progress(
            self.db, ctx.user_id, ctx.family_id, week_number=self.week_number
        )
        if progress.is_complete:
            return await self._award(ctx.user_id, "Round Robin", self.week_number)
        return []

    async def _check_inner_circle(self, ctx: CompletionContext) -> list[AwardedBadge]:
        if ctx.target_user_id is None:
            return []
        weeks = [self.week_number - offset for offset in range(INNER_CIRCLE_WEEKS)]
        records = await get_connection_records(
            self.db,
            CompletedChallenge.user_id == ctx.user_id,
            CompletedChallenge.target_user_id == ctx.target_user_id,
            CompletedChallenge.week_number.in_(weeks),
        )
        connected_weeks = {r.week_number for r in records}
        if all(week in connected_weeks for week in weeks):
            return await self._award(ctx.user_id, "Inner Circle")
        return []

    async def _check_bridge_builder(self, ctx: CompletionContext) -> list[AwardedBadge]:
        if ctx.family_id is None:
            return []
        counts = await count_weekly_connections(self.db, ctx.family_id, self.week_number)
        leader = pick_strict_leader(counts)
        if leader is not None:
            return await self._award(leader, "Bridge Builder", self.week_number)
        return []

    # --- Family-wide rules ---

    async def _check_weekly_leaderboard(self, ctx: CompletionContext) -> list[AwardedBadge]:
        if ctx.family_id is None:
            return []
        return await self.award_weekly_leaderboard_badges(ctx.family_id)
