"""Unit tests for nudge ordering, week streaks and feed messages."""

from fambam.gamification.connection_stats import (
    MemberConnectionStats,
    consecutive_week_streak,
    nudge_order,
)
from fambam.social.post_service import connection_message


def _stats(user_id: int, days_since: int | None) -> MemberConnectionStats:
    return MemberConnectionStats(
        user_id=user_id,
        name=f"member-{user_id}",
        avatar_url=None,
        total_connections=0 if days_since is None else 1,
        this_week_connections=0,
        last_connection=None,
        days_since_last_connection=days_since,
        streak=0,
        needs_reconnect=days_since is None or days_since > 14,
    )


class TestNudgeOrder:
    def test_never_connected_first_then_longest_gap(self):
        ordered = nudge_order([_stats(3, 2), _stats(1, None), _stats(2, 20)])
        assert [s.user_id for s in ordered] == [1, 2, 3]

    def test_stable_among_never_connected(self):
        ordered = nudge_order([_stats(5, None), _stats(4, None)])
        assert [s.user_id for s in ordered] == [5, 4]


class TestConsecutiveWeekStreak:
    def test_counts_back_from_current_week(self):
        assert consecutive_week_streak({10, 9, 8, 6}, 10) == 3

    def test_no_connection_this_week(self):
        assert consecutive_week_streak({9, 8}, 10) == 0


class TestConnectionMessage:
    def test_visit(self):
        assert connection_message("Alice", "Visit a family member", "Bob") == "\U0001f3e0 Alice visited Bob!"

    def test_call(self):
        assert connection_message("Alice", "Call a family member", "Grandma") == "\U0001f4de Alice called Grandma!"
