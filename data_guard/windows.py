"""Calendar window boundaries for daily, weekly and monthly usage.

All boundaries are derived from a single reference instant and use that
instant's own calendar (naive local time, or whatever ``tzinfo`` it carries),
so the three windows of one call never mix time zones.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from .models.alerts import PeriodKey
from .models.usage import TimeWindow, UsageWindows


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime, week_start: int = 0) -> datetime:
    """Midnight of the most recent ``week_start`` weekday at or before ``now``.

    ``week_start`` uses ``datetime.weekday()`` numbering (Monday=0, Sunday=6).
    """
    if not 0 <= week_start <= 6:
        raise ValueError(f"week_start must be 0-6, got {week_start}")
    days_back = (now.weekday() - week_start) % 7
    return start_of_day(now) - timedelta(days=days_back)


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


def compute_windows(now: datetime, week_start: int = 0) -> UsageWindows:
    """Return the daily, weekly and monthly windows ending at ``now``.

    At exact midnight the daily window is empty (``start == end``), which is
    a valid window with zero usage.
    """
    return UsageWindows(
        daily=TimeWindow(start=start_of_day(now), end=now),
        weekly=TimeWindow(start=start_of_week(now, week_start), end=now),
        monthly=TimeWindow(start=start_of_month(now), end=now),
    )


def period_key_for(now: datetime) -> PeriodKey:
    return PeriodKey(year=now.year, month=now.month)
