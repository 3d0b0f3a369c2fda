"""Badge rules evaluated after completions."""

from __future__ import annotations

from datetime import timedelta

import pytest

from fambam.gamification.badge_evaluator import AwardedBadge, BadgeEvaluator
from fambam.gamification.connection_stats import get_connection_stats
from fambam.gamification.ledger import CompletionResult, complete_challenge
from fambam.gamification.week_index import get_week_number


class TestPersonalBadges:
    @pytest.mark.asyncio
    async def test_century_club_awarded_once(self, db_session, seeder, now):
        alice = await seeder.user("Alice", await seeder.family(), points_total=95)
        recipe = await seeder.challenge("Cook a family recipe", points_value=15)
        await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)

        first = await complete_challenge(db_session, None, alice.id, recipe.id, now=now)
        second = await complete_challenge(db_session, None, alice.id, recipe.id, now=now + timedelta(days=7))

        assert "Century Club" in first.badges_awarded
        assert isinstance(second, CompletionResult)
        assert "Century Club" not in second.badges_awarded

    @pytest.mark.asyncio
    async def test_streak_master_on_fourth_day(self, db_session, seeder, now):
        alice = await seeder.user(
            "Alice", await seeder.family(), streak_days=3, last_active=now - timedelta(days=1)
        )
        photo = await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)

        result = await complete_challenge(db_session, None, alice.id, photo.id, now=now)

        assert "Streak Master" in result.badges_awarded

    @pytest.mark.asyncio
    async def test_comeback_after_missed_week(self, db_session, seeder, now):
        alice = await seeder.user("Alice", await seeder.family(), last_challenge_week=get_week_number(now) - 3)
        photo = await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)

        result = await complete_challenge(db_session, None, alice.id, photo.id, now=now)

        assert "Comeback Kid" in result.badges_awarded

    @pytest.mark.asyncio
    async def test_no_comeback_after_consecutive_week(self, db_session, seeder, now):
        alice = await seeder.user("Alice", await seeder.family(), last_challenge_week=get_week_number(now) - 1)
        photo = await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)

        result = await complete_challenge(db_session, None, alice.id, photo.id, now=now)

        assert "Comeback Kid" not in result.badges_awarded

    @pytest.mark.asyncio
    async def test_storyteller_after_three_posts(self, db_session, seeder, now):
        alice = await seeder.user("Alice", await seeder.family())
        photo = await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)
        for hours in (1, 2, 3):
            await seeder.post(alice, now - timedelta(hours=hours))

        result = await complete_challenge(db_session, None, alice.id, photo.id, now=now)

        assert "Storyteller" in result.badges_awarded

    @pytest.mark.asyncio
    async def test_posts_from_last_week_do_not_count(self, db_session, seeder, now):
        alice = await seeder.user("Alice", await seeder.family())
        photo = await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)
        for days in (7, 8, 9):
            await seeder.post(alice, now - timedelta(days=days))

        result = await complete_challenge(db_session, None, alice.id, photo.id, now=now)

        assert "Storyteller" not in result.badges_awarded


class TestPerfectWeek:
    @pytest.mark.asyncio
    async def test_every_active_challenge_maxed(self, db_session, seeder, now):
        alice = await seeder.user("Alice", await seeder.family())
        recipe = await seeder.challenge("Cook a family recipe", points_value=15)
        await seeder.challenge("Retired", is_active=False)

        result = await complete_challenge(db_session, None, alice.id, recipe.id, now=now)

        assert "Perfect Week" in result.badges_awarded

    @pytest.mark.asyncio
    async def test_unfinished_challenge_blocks_it(self, db_session, seeder, now):
        alice = await seeder.user("Alice", await seeder.family())
        recipe = await seeder.challenge("Cook a family recipe", points_value=15)
        await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)

        result = await complete_challenge(db_session, None, alice.id, recipe.id, now=now)

        assert "Perfect Week" not in result.badges_awarded


class TestConnectionBadges:
    @pytest.mark.asyncio
    async def test_round_robin_and_bridge_builder(self, db_session, seeder, now):
        family = await seeder.family()
        alice, bob, carol = [await seeder.user(n, family) for n in ("Alice", "Bob", "Carol")]
        visit = await seeder.challenge("Visit a family member", points_value=25, max_completions_per_week=2)
        call = await seeder.challenge("Call a family member", points_value=10, max_completions_per_week=3)

        first = await complete_challenge(db_session, None, alice.id, visit.id, target_user_id=bob.id, now=now)
        second = await complete_challenge(
            db_session, None, alice.id, call.id, target_user_id=carol.id, now=now + timedelta(minutes=5)
        )

        # Bob's mirrored credit is not a connection of his own, so Alice leads alone
        assert "Round Robin" not in first.badges_awarded
        assert "Bridge Builder" in first.badges_awarded
        assert "Round Robin" in second.badges_awarded

    @pytest.mark.asyncio
    async def test_being_visited_earns_no_connection_badges(self, db_session, seeder, now):
        family = await seeder.family()
        amy, ben, cat, dan, eve = [await seeder.user(n, family) for n in ("Amy", "Ben", "Cat", "Dan", "Eve")]
        visit = await seeder.challenge("Visit a family member", points_value=25, max_completions_per_week=2)
        call = await seeder.challenge("Call a family member", points_value=10, max_completions_per_week=3)
        for hour, visitor in enumerate((amy, ben, cat)):
            await complete_challenge(
                db_session, None, visitor.id, visit.id, target_user_id=dan.id, now=now + timedelta(hours=hour)
            )

        result = await complete_challenge(
            db_session, None, dan.id, call.id, target_user_id=eve.id, now=now + timedelta(hours=4)
        )

        assert "Visitor" not in result.badges_awarded
        assert "Round Robin" not in result.badges_awarded
        stats = await get_connection_stats(db_session, dan.id, family.id)
        assert {s.name: s.total_connections for s in stats} == {"Amy": 0, "Ben": 0, "Cat": 0, "Eve": 1}

    @pytest.mark.asyncio
    async def test_visitor_counts_distinct_targets(self, db_session, seeder, now):
        family = await seeder.family()
        alice, bob, carol, dan = [await seeder.user(n, family) for n in ("Alice", "Bob", "Carol", "Dan")]
        visit = await seeder.challenge("Visit a family member", points_value=25, max_completions_per_week=2)
        await seeder.completion(alice, visit, now - timedelta(days=7), target=bob)
        await seeder.completion(alice, visit, now - timedelta(days=7), target=carol)

        result = await complete_challenge(db_session, None, alice.id, visit.id, target_user_id=dan.id, now=now)

        assert "Visitor" in result.badges_awarded
        assert "Connector" not in result.badges_awarded

    @pytest.mark.asyncio
    async def test_inner_circle_after_four_weeks(self, db_session, seeder, now):
        family = await seeder.family()
        alice, bob = [await seeder.user(n, family) for n in ("Alice", "Bob")]
        call = await seeder.challenge("Call a family member", points_value=10, max_completions_per_week=3)
        for weeks_ago in (1, 2, 3):
            await seeder.completion(alice, call, now - timedelta(days=7 * weeks_ago), target=bob)

        result = await complete_challenge(db_session, None, alice.id, call.id, target_user_id=bob.id, now=now)

        assert "Inner Circle" in result.badges_awarded

    @pytest.mark.asyncio
    async def test_inner_circle_needs_unbroken_weeks(self, db_session, seeder, now):
        family = await seeder.family()
        alice, bob = [await seeder.user(n, family) for n in ("Alice", "Bob")]
        call = await seeder.challenge("Call a family member", points_value=10, max_completions_per_week=3)
        for weeks_ago in (1, 3):
            await seeder.completion(alice, call, now - timedelta(days=7 * weeks_ago), target=bob)

        result = await complete_challenge(db_session, None, alice.id, call.id, target_user_id=bob.id, now=now)

        assert "Inner Circle" not in result.badges_awarded


class TestWeeklyLeaderboardBadges:
    @pytest.mark.asyncio
    async def test_podium_and_most_improved(self, db_session, seeder, now):
        family = await seeder.family()
        alice, bob, carol = [await seeder.user(n, family) for n in ("Alice", "Bob", "Carol")]
        visit = await seeder.challenge("Visit a family member", points_value=25, max_completions_per_week=2)
        recipe = await seeder.challenge("Cook a family recipe", points_value=15)
        await seeder.completion(alice, visit, now)
        await seeder.completion(bob, recipe, now)
        await seeder.completion(bob, visit, now - timedelta(days=7))
        await seeder.completion(bob, recipe, now - timedelta(days=7))

        week = get_week_number(now)
        awarded = await BadgeEvaluator(db_session, None, now).award_weekly_leaderboard_badges(family.id)

        assert awarded == [
            AwardedBadge(alice.id, "Gold", week),
            AwardedBadge(bob.id, "Silver", week),
            AwardedBadge(alice.id, "Most Improved", week),
        ]
        assert carol.id not in {a.user_id for a in awarded}

    @pytest.mark.asyncio
    async def test_awards_are_idempotent(self, db_session, seeder, now):
        family = await seeder.family()
        alice = await seeder.user("Alice", family)
        recipe = await seeder.challenge("Cook a family recipe", points_value=15)
        await seeder.completion(alice, recipe, now)

        evaluator = BadgeEvaluator(db_session, None, now)
        assert len(await evaluator.award_weekly_leaderboard_badges(family.id)) == 2
        assert await evaluator.award_weekly_leaderboard_badges(family.id) == []

    @pytest.mark.asyncio
    async def test_only_actor_badges_are_reported(self, db_session, seeder, now):
        family = await seeder.family()
        alice, bob = [await seeder.user(n, family) for n in ("Alice", "Bob")]
        recipe = await seeder.challenge("Cook a family recipe", points_value=15)
        photo = await seeder.challenge("Share a photo", points_value=5, max_completions_per_week=3)
        await seeder.completion(alice, recipe, now - timedelta(hours=1))

        result = await complete_challenge(db_session, None, bob.id, photo.id, now=now)

        # Alice takes Gold in the same evaluation, but only Bob's awards are returned
        assert "Silver" in result.badges_awarded
        assert "Gold" not in result.badges_awarded


class TestRuleIsolation:
    @pytest.mark.asyncio
    async def test_failing_rule_does_not_stop_others(self, db_session, seeder, now, monkeypatch):
        alice = await seeder.user("Alice", await seeder.family(), points_total=95)
        recipe = await seeder.challenge("Cook a family recipe", points_value=15)

        async def broken(self, ctx):
            raise RuntimeError("boom")

        monkeypatch.setattr(BadgeEvaluator, "_check_streak", broken)

        result = await complete_challenge(db_session, None, alice.id, recipe.id, now=now)

        assert isinstance(result, CompletionResult)
        assert "Century Club" in result.badges_awarded
        assert "Perfect Week" in result.badges_awarded
