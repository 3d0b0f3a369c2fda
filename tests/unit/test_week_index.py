"""Unit tests for epoch-based week numbering."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from fambam.gamification.week_index import (
    EPOCH,
    ensure_utc,
    get_week_bounds,
    get_week_date_range,
    get_week_end,
    get_week_number,
    get_week_start,
    local_date,
)


class TestWeekNumber:
    """Week 1 begins at the epoch and every week is exactly seven days."""

    def test_epoch_is_week_one(self):
        assert get_week_number(EPOCH) == 1

    def test_last_millisecond_of_week_one(self):
        assert get_week_number(EPOCH + timedelta(days=7) - timedelta(milliseconds=1)) == 1

    def test_second_week_starts_after_seven_days(self):
        assert get_week_number(EPOCH + timedelta(days=7)) == 2

    def test_naive_datetime_is_treated_as_utc(self):
        naive = datetime(2024, 1, 8, 0, 0, 0)
        assert get_week_number(naive) == 2

    def test_other_timezones_are_normalised(self):
        # 2024-01-08 01:00 in +02:00 is 2024-01-07 23:00 UTC, still week 1
        dt = datetime(2024, 1, 8, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert get_week_number(dt) == 1

    def test_before_epoch_is_not_positive(self):
        assert get_week_number(EPOCH - timedelta(days=1)) == 0


class TestWeekBoundaries:
    """Start/end of a week round-trip through get_week_number."""

    def test_week_one_starts_at_epoch(self):
        assert get_week_start(1) == EPOCH

    @pytest.mark.parametrize("week", [1, 2, 53, 114, 500])
    def test_start_and_end_belong_to_their_week(self, week):
        assert get_week_number(get_week_start(week)) == week
        assert get_week_number(get_week_end(week)) == week

    def test_end_is_one_millisecond_before_next_start(self):
        assert get_week_end(10) + timedelta(milliseconds=1) == get_week_start(11)

    def test_bounds_are_half_open(self):
        start, end = get_week_bounds(3)
        assert start == get_week_start(3)
        assert end == get_week_start(4)

    def test_week_one_label(self):
        assert get_week_date_range(1) == "Jan 1 - Jan 7"

    def test_label_spanning_months(self):
        # Week 5 runs Jan 29 to Feb 4, 2024
        assert get_week_date_range(5) == "Jan 29 - Feb 4"


class TestLocalDate:
    def test_ensure_utc_converts_offsets(self):
        dt = datetime(2026, 3, 4, 12, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert ensure_utc(dt) == datetime(2026, 3, 4, 17, 0, tzinfo=timezone.utc)

    def test_local_date_uses_given_zone(self):
        dt = datetime(2026, 3, 4, 2, 0, tzinfo=timezone.utc)
        assert local_date(dt, ZoneInfo("America/New_York")).isoformat() == "2026-03-03"
        assert local_date(dt, timezone.utc).isoformat() == "2026-03-04"
