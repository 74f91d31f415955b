"""
Unit tests for RecurrenceExpander.

Tests rule parsing, count and end-date bounds, determinism, and the
upcoming-occurrence filter.
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from eventplan.services.exceptions import InvalidRecurrenceRule
from eventplan.services.recurrence import RecurrenceExpander, end_bound, to_naive_utc


@pytest.fixture
def expander():
    """Expander with explicit caps, independent of the environment."""
    return RecurrenceExpander(default_max_occurrences=52, hard_limit=1000)


START = datetime(2024, 1, 1, 9, 0)


# ============================================================================
# Test: Bounds
# ============================================================================

class TestExpandBounds:
    """Tests for count and end-date bounds."""

    def test_weekly_count_three(self, expander):
        """Weekly from 2024-01-01 with count 3 yields exactly three Mondays."""
        occurrences = expander.expand(
            START,
            "FREQ=WEEKLY",
            end_date=date(2024, 12, 31),
            max_occurrences=3,
        )

        assert occurrences == [
            datetime(2024, 1, 1, 9, 0),
            datetime(2024, 1, 8, 9, 0),
            datetime(2024, 1, 15, 9, 0),
        ]

    def test_default_cap_without_bounds(self, expander):
        """Neither bound given: the default cap of 52 applies."""
        occurrences = expander.expand(START, "FREQ=WEEKLY")
        assert len(occurrences) == 52
        assert occurrences[-1] == START + timedelta(weeks=51)

    def test_end_date_stops_first(self, expander):
        """Both bounds: the end date wins when it triggers first."""
        occurrences = expander.expand(
            START, "FREQ=DAILY", end_date=date(2024, 1, 5), max_occurrences=10
        )
        assert len(occurrences) == 5
        assert occurrences[-1] == datetime(2024, 1, 5, 9, 0)

    def test_count_stops_first(self, expander):
        """Both bounds: the count wins when it triggers first."""
        occurrences = expander.expand(
            START, "FREQ=DAILY", end_date=date(2024, 3, 1), max_occurrences=4
        )
        assert len(occurrences) == 4

    def test_date_end_bound_is_inclusive_through_the_day(self, expander):
        """A bare date end bound includes occurrences late on that day."""
        occurrences = expander.expand(
            datetime(2024, 1, 1, 23, 30), "FREQ=DAILY", end_date=date(2024, 1, 3)
        )
        assert occurrences[-1] == datetime(2024, 1, 3, 23, 30)

    def test_datetime_end_bound_is_exact(self, expander):
        """A datetime end bound cuts at that instant (inclusive)."""
        occurrences = expander.expand(
            START, "FREQ=DAILY", end_date=datetime(2024, 1, 3, 9, 0)
        )
        assert occurrences[-1] == datetime(2024, 1, 3, 9, 0)

        occurrences = expander.expand(
            START, "FREQ=DAILY", end_date=datetime(2024, 1, 3, 8, 59)
        )
        assert occurrences[-1] == datetime(2024, 1, 2, 9, 0)

    def test_end_date_only_uses_hard_limit(self):
        """Rules bounded only by a far end date stop at the hard limit."""
        expander = RecurrenceExpander(default_max_occurrences=52, hard_limit=100)
        occurrences = expander.expand(START, "FREQ=DAILY", end_date=date(2030, 1, 1))
        assert len(occurrences) == 100

    def test_count_above_hard_limit_is_capped(self):
        """max_occurrences never exceeds the hard limit."""
        expander = RecurrenceExpander(default_max_occurrences=52, hard_limit=10)
        assert len(expander.expand(START, "FREQ=DAILY", max_occurrences=500)) == 10

    def test_rule_count_is_honored(self, expander):
        """A COUNT inside the rule text is respected as well."""
        occurrences = expander.expand(START, "FREQ=DAILY;COUNT=2", max_occurrences=10)
        assert len(occurrences) == 2

    def test_rule_until_is_honored(self, expander):
        """UTC UNTIL in the rule compares against naive UTC start times."""
        occurrences = expander.expand(START, "RRULE:FREQ=DAILY;UNTIL=20240103T235959Z")
        assert occurrences[-1] == datetime(2024, 1, 3, 9, 0)

    def test_zero_max_occurrences(self, expander):
        assert expander.expand(START, "FREQ=DAILY", max_occurrences=0) == []

    def test_negative_max_occurrences(self, expander):
        with pytest.raises(ValueError):
            expander.expand(START, "FREQ=DAILY", max_occurrences=-1)


# ============================================================================
# Test: Ordering and determinism
# ============================================================================

class TestExpandOrdering:
    """Tests for output ordering."""

    def test_deterministic(self, expander):
        """Same inputs always yield the same list."""
        first = expander.expand(START, "FREQ=WEEKLY;BYDAY=MO,WE,FR", max_occurrences=20)
        second = expander.expand(START, "FREQ=WEEKLY;BYDAY=MO,WE,FR", max_occurrences=20)
        assert first == second

    def test_strictly_increasing(self, expander):
        occurrences = expander.expand(
            START, "FREQ=MONTHLY;BYMONTHDAY=1,15", end_date=date(2024, 12, 31)
        )
        assert all(a < b for a, b in zip(occurrences, occurrences[1:]))
        assert len(occurrences) == len(set(occurrences))

    def test_aware_start_is_converted_to_utc(self, expander):
        """Aware start times are expanded as naive UTC."""
        start = datetime(2024, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=2)))
        occurrences = expander.expand(start, "FREQ=DAILY", max_occurrences=2)
        assert occurrences == [datetime(2024, 1, 1, 7, 0), datetime(2024, 1, 2, 7, 0)]
        assert occurrences[0].tzinfo is None


# ============================================================================
# Test: Invalid rules
# ============================================================================

class TestInvalidRules:
    """Tests for parse failures."""

    @pytest.mark.parametrize("rule", [
        "NOT A RULE",
        "FREQ=FORTNIGHTLY",
        "FREQ=WEEKLY;BYDAY=XX",
        "FREQ=DAILY;COUNT=abc",
    ])
    def test_unparsable_rule(self, expander, rule):
        with pytest.raises(InvalidRecurrenceRule) as exc_info:
            expander.expand(START, rule)
        assert exc_info.value.rule == rule

    @pytest.mark.parametrize("rule", ["", "   ", None])
    def test_empty_rule(self, expander, rule):
        with pytest.raises(InvalidRecurrenceRule):
            expander.expand(START, rule)


# ============================================================================
# Test: Upcoming occurrences and durations
# ============================================================================

class TestUpcoming:
    """Tests for upcoming() and occurrence_end()."""

    def test_discards_past_occurrences(self, expander):
        """Past occurrences are dropped, not replaced by later ones."""
        occurrences = expander.upcoming(
            START, "FREQ=WEEKLY", now=datetime(2024, 1, 10), max_occurrences=4
        )
        assert occurrences == [datetime(2024, 1, 15, 9, 0), datetime(2024, 1, 22, 9, 0)]

    def test_occurrence_at_now_is_excluded(self, expander):
        occurrences = expander.upcoming(
            START, "FREQ=DAILY", now=datetime(2024, 1, 2, 9, 0), max_occurrences=3
        )
        assert occurrences == [datetime(2024, 1, 3, 9, 0)]

    def test_occurrence_end_preserves_duration(self):
        end = RecurrenceExpander.occurrence_end(
            datetime(2024, 1, 8, 9, 0), START, datetime(2024, 1, 1, 10, 30)
        )
        assert end == datetime(2024, 1, 8, 10, 30)

    def test_occurrence_end_without_parent_end(self):
        assert RecurrenceExpander.occurrence_end(datetime(2024, 1, 8, 9), START, None) is None


class TestHelpers:

    def test_to_naive_utc_passthrough(self):
        assert to_naive_utc(START) is START

    def test_end_bound_none(self):
        assert end_bound(None) is None

    def test_end_bound_date(self):
        assert end_bound(date(2024, 1, 5)) == datetime(2024, 1, 5, 23, 59, 59, 999999)
