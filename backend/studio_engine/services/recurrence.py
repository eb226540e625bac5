# backend/studio_engine/services/recurrence.py
"""
Weekly recurrence expansion.

Pure date arithmetic, no database access. The scheduling service feeds the
resulting windows through the conflict detector one by one.
"""

from datetime import date, time, timedelta
import logging
from typing import Iterable, List

from ..core.constants import DAYS_PER_WEEK, MAX_RECURRENCE_WEEKS
from ..core.enums import Weekday
from ..core.exceptions import ValidationException
from ..core.time_window import TimeWindow

logger = logging.getLogger(__name__)


class RecurrenceExpander:
    """Expands a weekly rule into concrete dates and time windows."""

    def __init__(self, max_weeks: int = MAX_RECURRENCE_WEEKS):
        self.max_weeks = max_weeks

    @staticmethod
    def first_on_or_after(start: date, weekday: Weekday) -> date:
        """First date on or after ``start`` falling on ``weekday``."""
        days_ahead = (int(weekday) - start.weekday() + DAYS_PER_WEEK) % DAYS_PER_WEEK
        return start + timedelta(days=days_ahead)

    def expand(
        self,
        anchor_time: time,
        weekday: Weekday,
        date_from: date,
        date_until: date,
        skip_dates: Iterable[date] = (),
    ) -> List[date]:
        """
        Every ``weekday`` between ``date_from`` and ``date_until`` inclusive.

        Skipped dates are left out without shifting the weekly cadence.
        ``anchor_time`` does not affect the dates; it is accepted so callers
        can pass the same rule to ``expand`` and ``build_windows``.

        Returns:
            Ascending dates; empty when ``date_from`` is after ``date_until``

        Raises:
            ValidationException: If the range spans more weeks than allowed
        """
        if date_from > date_until:
            return []

        span_weeks = (date_until - date_from).days // DAYS_PER_WEEK
        if span_weeks > self.max_weeks:
            raise ValidationException(
                f"Recurring range cannot exceed {self.max_weeks} weeks",
                code="RECURRENCE_TOO_LONG",
                details={"weeks": span_weeks, "max_weeks": self.max_weeks},
            )

        skipped = set(skip_dates)
        dates: List[date] = []
        current = self.first_on_or_after(date_from, Weekday(weekday))
        step = timedelta(days=DAYS_PER_WEEK)
        while current <= date_until:
            if current not in skipped:
                dates.append(current)
            current += step

        logger.debug(
            f"Expanded {Weekday(weekday).name} at {anchor_time} from {date_from} to {date_until}: "
            f"{len(dates)} dates"
        )
        return dates

    def build_windows(
        self,
        anchor_time: time,
        duration_minutes: int,
        weekday: Weekday,
        date_from: date,
        date_until: date,
        skip_dates: Iterable[date] = (),
    ) -> List[TimeWindow]:
        """
        Expand the rule and attach the anchor time and duration to each date.

        Raises:
            ValidationException: If the duration is not positive
        """
        if duration_minutes <= 0:
            raise ValidationException(
                "Duration must be positive",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )
        return [
            TimeWindow.on_date(day, anchor_time, duration_minutes)
            for day in self.expand(anchor_time, weekday, date_from, date_until, skip_dates)
        ]
