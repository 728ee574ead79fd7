"""Business clock

Bookings store local wall-clock dates and times. Every "now", "is today"
and time-to-start computation goes through one Clock so they agree on the
configured business timezone.
"""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from .config import BUSINESS_TIMEZONE
from .exceptions import ValidationError


def parse_hhmm(value: str) -> time:
    """Parse a 24h HH:MM string"""
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM") from None


def parse_date(value) -> date:
    """Accept a date or a YYYY-MM-DD string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from None


class Clock:
    def __init__(self, tz_name: str = BUSINESS_TIMEZONE):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def localize(self, day: date, hhmm: str) -> datetime:
        """Aware datetime for a local date + HH:MM"""
        return datetime.combine(day, parse_hhmm(hhmm), tzinfo=self.tz)

    def naive_now(self) -> datetime:
        """Local wall-clock now, comparable with stored naive end_time values"""
        return self.now().replace(tzinfo=None)


def business_now() -> datetime:
    """Naive local now; column default for created/updated timestamps"""
    return Clock().naive_now()
