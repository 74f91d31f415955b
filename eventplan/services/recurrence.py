"""
Recurrence expansion for recurring event templates.

Turns a template's start time and RFC 5545 RRULE text into the ordered list
of occurrence start times. Expansion is pure computation: no database access,
no clock reads unless the caller asks for upcoming occurrences.

Bounds:
- max_occurrences caps the number of occurrences
- end_date caps the last occurrence (inclusive)
- When neither is given, the configured default (52) applies (one year of weekly cadence)
- recurrence_hard_limit always applies, whatever the bounds

All datetimes are naive UTC. Aware inputs are converted to naive UTC first.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Union

from dateutil.rrule import rrulestr

from eventplan.config.settings import get_settings
from eventplan.services.exceptions import InvalidRecurrenceRule

EndBound = Union[date, datetime, None]


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def end_bound(end_date: EndBound) -> Optional[datetime]:
    """Normalize an end bound; a bare date includes the whole day."""
    if end_date is None:
        return None
    if isinstance(end_date, datetime):
        return to_naive_utc(end_date)
    return datetime.combine(end_date, time.max)


class RecurrenceExpander:
    """
    Expands recurrence rules into occurrence start times.

    Usage:
        >>> expander = RecurrenceExpander()
        >>> expander.expand(datetime(2024, 1, 1, 9), "FREQ=WEEKLY", max_occurrences=3)
        [datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 15, 9, 0)]
    """

    def __init__(
        self,
        default_max_occurrences: Optional[int] = None,
        hard_limit: Optional[int] = None,
    ):
        """
        Initialize the expander.

        Args:
            default_max_occurrences: Cap used when no bound is given (settings default: 52)
            hard_limit: Absolute cap on any expansion (settings default: 1000)
        """
        settings = get_settings()
        self.default_max_occurrences = (
            default_max_occurrences
            if default_max_occurrences is not None
            else settings.default_max_occurrences
        )
        self.hard_limit = hard_limit if hard_limit is not None else settings.recurrence_hard_limit

    def parse(self, start: datetime, rule: str):
        """
        Parse rule text anchored at start.

        Args:
            start: Template start time (dtstart)
            rule: RRULE text, with or without the "RRULE:" prefix

        Returns:
            dateutil rrule or rruleset

        Raises:
            InvalidRecurrenceRule: If the text cannot be parsed
        """
        if not rule or not rule.strip():
            raise InvalidRecurrenceRule(rule or "", "rule is empty")

        try:
            # ignoretz keeps UNTIL=...Z comparable with the naive UTC dtstart
            return rrulestr(rule.strip(), dtstart=to_naive_utc(start), ignoretz=True)
        except (ValueError, TypeError, KeyError, IndexError, OverflowError) as e:
            raise InvalidRecurrenceRule(rule, str(e) or e.__class__.__name__) from e

    def expand(
        self,
        start: datetime,
        rule: str,
        end_date: EndBound = None,
        max_occurrences: Optional[int] = None,
    ) -> List[datetime]:
        """
        Enumerate occurrence start times.

        Args:
            start: Template start time
            rule: RRULE text
            end_date: Optional inclusive end bound
            max_occurrences: Optional count bound

        Returns:
            Strictly increasing list of naive UTC datetimes

        Raises:
            InvalidRecurrenceRule: If the rule cannot be parsed
            ValueError: If max_occurrences is negative
        """
        if max_occurrences is not None and max_occurrences < 0:
            raise ValueError("max_occurrences cannot be negative")

        parsed = self.parse(start, rule)
        until = end_bound(end_date)

        if max_occurrences is not None:
            cap = min(max_occurrences, self.hard_limit)
        elif until is None:
            cap = min(self.default_max_occurrences, self.hard_limit)
        else:
            cap = self.hard_limit

        occurrences: List[datetime] = []
        if cap == 0:
            return occurrences

        try:
            for occurrence in parsed:
                occurrence = to_naive_utc(occurrence)
                if until is not None and occurrence > until:
                    break
                if occurrences and occurrence <= occurrences[-1]:
                    continue
                occurrences.append(occurrence)
                if len(occurrences) >= cap:
                    break
        except (ValueError, TypeError, OverflowError) as e:
            raise InvalidRecurrenceRule(rule, str(e) or e.__class__.__name__) from e

        return occurrences

    def upcoming(
        self,
        start: datetime,
        rule: str,
        now: datetime,
        end_date: EndBound = None,
        max_occurrences: Optional[int] = None,
    ) -> List[datetime]:
        """
        Enumerate occurrences strictly after now.

        The bounds apply to the full expansion first; past occurrences are then
        discarded, never replaced by later ones.
        """
        now = to_naive_utc(now)
        return [
            occurrence
            for occurrence in self.expand(start, rule, end_date, max_occurrences)
            if occurrence > now
        ]

    @staticmethod
    def occurrence_end(
        occurrence_start: datetime,
        parent_start: datetime,
        parent_end: Optional[datetime],
    ) -> Optional[datetime]:
        """End time of an occurrence, preserving the template's duration."""
        if parent_end is None:
            return None
        duration: timedelta = to_naive_utc(parent_end) - to_naive_utc(parent_start)
        return occurrence_start + duration
