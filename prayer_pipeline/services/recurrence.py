"""
Recurrence expansion for meeting series.

Pure date arithmetic: given an anchor start and a recurrence rule, produce the
start times of every occurrence after the anchor up to and including the
series bound. No I/O and no clock reads, so the same inputs always expand to
the same sequence.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterator, Optional

from dateutil.relativedelta import relativedelta

from prayer_pipeline.exceptions import InvalidRecurrenceRule

DEFAULT_SERIES_SPAN = timedelta(days=90)


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


_FIXED_STEPS = {
    RecurrencePattern.DAILY: timedelta(days=1),
    RecurrencePattern.WEEKLY: timedelta(days=7),
    RecurrencePattern.BIWEEKLY: timedelta(days=14),
}


def default_until(anchor_start: datetime) -> datetime:
    """Series bound used when the caller does not give one."""
    return anchor_start + DEFAULT_SERIES_SPAN


@dataclass(frozen=True)
class Occurrences:
    """
    Validated recurrence rule bound to an anchor.

    Iterating yields occurrence start times lazily; every iteration starts
    over from the anchor, so the object can be walked any number of times.
    """

    anchor_start: datetime
    pattern: RecurrencePattern
    until: datetime
    day: Optional[int] = None

    def __iter__(self) -> Iterator[datetime]:
        if self.pattern is RecurrencePattern.MONTHLY:
            return self._monthly()
        return self._fixed(_FIXED_STEPS[self.pattern])

    def _fixed(self, step: timedelta) -> Iterator[datetime]:
        current = self.anchor_start + step
        while current <= self.until:
            yield current
            current += step

    def _monthly(self) -> Iterator[datetime]:
        # Always offset from the anchor; relativedelta clamps `day` to the
        # month's last day, so a 31st in a 30-day month lands on the 30th
        # without shifting the months after it.
        months = 1
        while True:
            current = self.anchor_start + relativedelta(months=months, day=self.day)
            if current > self.until:
                return
            yield current
            months += 1


def expand_occurrences(
    anchor_start: datetime,
    pattern,
    day: Optional[int] = None,
    until: Optional[datetime] = None,
) -> Occurrences:
    """
    Build the occurrence sequence for a recurring series.

    Args:
        anchor_start: Start time of the anchor meeting
        pattern: daily, weekly, biweekly or monthly
        day: Day of week (0-6) for weekly patterns, informational only;
            day of month (1-31) for monthly, required
        until: Last moment an occurrence may start (inclusive);
            defaults to 90 days after the anchor

    Returns:
        Restartable iterable of occurrence start times, anchor excluded

    Raises:
        InvalidRecurrenceRule: If the rule cannot produce a series
    """
    try:
        pattern = RecurrencePattern(pattern)
    except ValueError:
        raise InvalidRecurrenceRule(f"Unknown recurrence pattern: {pattern!r}")

    if until is None:
        until = default_until(anchor_start)
    if until <= anchor_start:
        raise InvalidRecurrenceRule("Recurrence end must be after the first meeting")

    if pattern is RecurrencePattern.MONTHLY:
        if day is None:
            raise InvalidRecurrenceRule("Monthly recurrence requires a day of the month")
        if not 1 <= day <= 31:
            raise InvalidRecurrenceRule("Day of the month must be between 1 and 31")
    elif day is not None and not 0 <= day <= 6:
        raise InvalidRecurrenceRule("Day of the week must be between 0 and 6")

    return Occurrences(anchor_start=anchor_start, pattern=pattern, until=until, day=day)
