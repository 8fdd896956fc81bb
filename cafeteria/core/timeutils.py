"""
Facility clock. The one-meal-per-day rule uses the calendar day in the
configured facility timezone, not UTC.
"""

from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import Tuple
from zoneinfo import ZoneInfo

from ..config.settings import settings


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def facility_tz() -> ZoneInfo:
    return _zone(settings.facility_timezone)


def facility_now() -> datetime:
    """Timezone-aware current time in the facility zone."""
    return datetime.now(facility_tz())


def facility_date(moment: datetime) -> date:
    """Calendar day of ``moment`` in the facility zone; naive values are taken as facility time."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(facility_tz()).date()


def period_bounds(period: str, today: date) -> Tuple[date, date]:
    """Inclusive date range for a reporting period ending ``today``."""
    if period == "daily":
        return today, today
    if period == "weekly":
        return today - timedelta(days=today.weekday()), today
    if period == "monthly":
        return today.replace(day=1), today
    if period == "yearly":
        return today.replace(month=1, day=1), today
    raise ValueError(f"unknown period: {period}")
