"""
Calendar bounds for rollup levels.

All periods are half-open [start, end) in naive local time. Weeks start on
Sunday. The yearRollup level covers the same calendar year as year.
"""

from datetime import datetime, timedelta
from typing import Iterator

from lifewrap.prompting.schemas import SummaryLevel


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def period_bounds(level: SummaryLevel, anchor: datetime) -> tuple[datetime, datetime]:
    """
    Bounds of the ``level`` period containing ``anchor``.

    Raises:
        ValueError: For chunk and session, which have no calendar period.
    """
    level = SummaryLevel(level)
    day = _midnight(anchor)

    if level is SummaryLevel.DAY:
        return day, day + timedelta(days=1)
    if level is SummaryLevel.WEEK:
        # weekday(): Monday=0 ... Sunday=6
        start = day - timedelta(days=(day.weekday() + 1) % 7)
        return start, start + timedelta(days=7)
    if level is SummaryLevel.MONTH:
        start = day.replace(day=1)
        if start.month == 12:
            return start, start.replace(year=start.year + 1, month=1)
        return start, start.replace(month=start.month + 1)
    if level in (SummaryLevel.YEAR, SummaryLevel.YEAR_ROLLUP):
        start = day.replace(month=1, day=1)
        return start, start.replace(year=start.year + 1)

    raise ValueError(f"{level.value} has no calendar period")


def iter_periods(level: SummaryLevel, start: datetime, end: datetime) -> Iterator[tuple[datetime, datetime]]:
    """Consecutive ``level`` periods overlapping [start, end)."""
    if end <= start:
        return
    period_start, period_end = period_bounds(level, start)
    while period_start < end:
        yield period_start, period_end
        period_start, period_end = period_bounds(level, period_end)
