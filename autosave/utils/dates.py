# utils/dates.py

import calendar
import math
from datetime import datetime, timedelta, timezone

from ..db.enums import AnalyticsPeriod

SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the store's server-side func.now()."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(moment: datetime) -> datetime:
    """Converts an offset-aware moment to naive UTC; naive input is taken as UTC already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Calendar month subtraction; the day is clamped to the target month's length."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(now: datetime, period: AnalyticsPeriod) -> datetime:
    period = AnalyticsPeriod(period)
    if period is AnalyticsPeriod.WEEK:
        return now - timedelta(days=7)
    if period is AnalyticsPeriod.MONTH:
        return subtract_months(now, 1)
    if period is AnalyticsPeriod.QUARTER:
        return subtract_months(now, 3)
    return subtract_months(now, 12)


def days_until(target: datetime, now: datetime) -> int:
    """Whole days left until target, rounded up (negative once overdue)."""
    return math.ceil((target - now).total_seconds() / SECONDS_PER_DAY)
