"""Availability checker - slot conflict detection and slot enumeration

A barber's time is held by every PENDING or APPROVED booking group. Each
group occupies [start, end) where end is start plus the total duration of
all services in the group. Read-only: nothing here writes to the session.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...clock import Clock, parse_date, parse_hhmm
from ...config import (
    BOOKING_LEAD_MINUTES,
    DEFAULT_WORK_END,
    DEFAULT_WORK_START,
    SLOT_STEP_MINUTES,
)
from ...exceptions import NotFoundError, ValidationError
from ...models import Booking
from ..catalog.repository import CatalogRepository
from ..directory.repository import DirectoryRepository
from .repository import BookingRepository
from .state import ACTIVE_STATUSES, group_rows


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Half-open interval intersection; touching intervals do not overlap"""
    return start1 < end2 and start2 < end1


class AvailabilityChecker:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or Clock()
        self.repo = BookingRepository()
        self.catalog = CatalogRepository()
        self.directory = DirectoryRepository()

    def busy_intervals(self, barber_id: int, day: date) -> list[tuple[datetime, datetime]]:
        """Naive local [start, end) intervals of the barber's active booking groups on a day.

        Includes groups from the previous day that run past midnight into it.
        """
        day_start = datetime.combine(day, datetime.min.time())
        rows = self.repo.find_by_barber_and_date_with_status(
            self.db, barber_id, day - timedelta(days=1), ACTIVE_STATUSES
        ) + self.repo.find_by_barber_and_date_with_status(
            self.db, barber_id, day, ACTIVE_STATUSES
        )
        intervals = []
        for key, siblings in group_rows(rows).items():
            start = datetime.combine(key.date, parse_hhmm(key.time))
            end = self._group_end(start, siblings)
            if end > day_start:
                intervals.append((start, end))
        return intervals

    def _group_end(self, start: datetime, siblings: list[Booking]) -> datetime:
        end_times = [b.end_time for b in siblings if b.end_time is not None]
        if end_times:
            return max(end_times)
        # Rows without a stored end_time: rebuild it from the catalog
        minutes = self.catalog.total_duration(self.db, [b.service_id for b in siblings])
        return start + timedelta(minutes=minutes)

    def is_available(self, barber_id: int, day, start_time: str, duration_minutes: int) -> bool:
        day = parse_date(day)
        if duration_minutes is None or duration_minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes")

        start = datetime.combine(day, parse_hhmm(start_time))
        end = start + timedelta(minutes=duration_minutes)

        busy = self.busy_intervals(barber_id, day)
        if end.date() > day:
            # Runs past midnight: the next day's early groups count too
            busy += self.busy_intervals(barber_id, end.date())
        for busy_start, busy_end in busy:
            if overlaps(start, end, busy_start, busy_end):
                return False
        return True

    def working_hours(self, barber_id: int) -> tuple[str, str]:
        barber = self.directory.get_barber(self.db, barber_id)
        if not barber:
            raise NotFoundError(f"Barber {barber_id} not found")
        return (
            barber.work_start_time or DEFAULT_WORK_START,
            barber.work_end_time or DEFAULT_WORK_END,
        )

    def available_slots(self, barber_id: int, day, duration_minutes: int) -> list[str]:
        """HH:MM start times on an hourly grid where a booking of this duration fits.

        Slots must end by closing time. For today, slots starting before
        now + BOOKING_LEAD_MINUTES are dropped.
        """
        day = parse_date(day)
        if duration_minutes is None or duration_minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes")

        work_start, work_end = self.working_hours(barber_id)
        window_start = datetime.combine(day, parse_hhmm(work_start))
        window_end = datetime.combine(day, parse_hhmm(work_end))
        duration = timedelta(minutes=duration_minutes)

        earliest = None
        if day == self.clock.today():
            earliest = self.clock.naive_now() + timedelta(minutes=BOOKING_LEAD_MINUTES)

        busy = self.busy_intervals(barber_id, day)
        slots = []
        slot_start = window_start
        while slot_start + duration <= window_end:
            slot_end = slot_start + duration
            if earliest is None or slot_start >= earliest:
                if not any(overlaps(slot_start, slot_end, b_start, b_end) for b_start, b_end in busy):
                    slots.append(slot_start.strftime("%H:%M"))
            slot_start += timedelta(minutes=SLOT_STEP_MINUTES)
        return slots
