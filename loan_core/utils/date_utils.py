"""Date manipulation utilities"""

from datetime import date, datetime
from zoneinfo import ZoneInfo
from loan_core.config import settings


def parse_date(value: date | str) -> date:
    """Accept a date or a YYYY-MM-DD string; datetimes keep only their calendar day"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def today_local(timezone: str | None = None) -> date:
    """Calendar day in the business timezone, not the server's"""
    return datetime.now(ZoneInfo(timezone or settings.business_timezone)).date()


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end is earlier)"""
    return (end - start).days
