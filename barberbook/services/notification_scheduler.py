"""
Booking notification scheduler
Turns wall-clock progression into reminder and completion notifications,
sent once per booking group per threshold

Runs as a recurring pass (every minute from the arq worker). Operational
constraint: exactly one scheduler may run against a database. The lock
below only prevents overlapping passes inside one process; two worker
processes would both see unset flags and send duplicates.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..clock import Clock
from ..domain.bookings.repository import BookingRepository
from ..domain.bookings.state import GroupKey
from ..domain.directory.repository import DirectoryRepository
from ..models import BookingStatus
from .notification_service import (
    barber_recipient,
    client_recipient,
    dispatch,
    format_completion,
    format_reminder,
    staff_recipients,
)
from .telegram_service import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderThreshold:
    name: str
    flag: str
    window_min: timedelta  # inclusive bounds on (start - now)
    window_max: timedelta
    lead_label: str
    notify_barber: bool = False

    def is_due(self, delta: timedelta) -> bool:
        return self.window_min <= delta <= self.window_max


REMINDER_THRESHOLDS = (
    ReminderThreshold(
        "1_day", "reminder_1_day_sent", timedelta(hours=23), timedelta(hours=25), "1 day"
    ),
    ReminderThreshold(
        "3_hours",
        "reminder_3_hours_sent",
        timedelta(minutes=179),
        timedelta(minutes=181),
        "3 hours",
    ),
    ReminderThreshold(
        "1_hour", "reminder_1_hour_sent", timedelta(minutes=59), timedelta(minutes=61), "1 hour"
    ),
    ReminderThreshold(
        "30_minutes",
        "notification_sent",
        timedelta(minutes=29),
        timedelta(minutes=31),
        "30 minutes",
        notify_barber=True,
    ),
)

COMPLETION_FLAG = "completion_notification_sent"


class NotificationScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        notifier: Notifier,
        clock: Optional[Clock] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock or Clock()
        self.repo = BookingRepository()
        self.directory = DirectoryRepository()
        self._lock = asyncio.Lock()

    async def run_pass(self) -> dict:
        """One full scan. A pass requested while another is running is skipped."""
        if self._lock.locked():
            logger.warning("⏭️ Notification pass still running; skipping this tick")
            return {"skipped": True}

        async with self._lock:
            summary = {threshold.name: 0 for threshold in REMINDER_THRESHOLDS}
            summary.update({"completion": 0, "failed": 0, "deferred": 0, "skipped": False})

            db = self.session_factory()
            try:
                now = self.clock.now()
                for threshold in REMINDER_THRESHOLDS:
                    await self._process_threshold(db, threshold, now, summary)
                await self._process_completions(db, now, summary)
            except Exception as e:
                logger.error(f"❌ Notification pass aborted: {type(e).__name__}: {e}")
                db.rollback()
                summary["failed"] += 1
            finally:
                db.close()

            notified = sum(summary[t.name] for t in REMINDER_THRESHOLDS) + summary["completion"]
            if notified or summary["failed"] or summary["deferred"]:
                logger.info(f"📊 Notification pass summary: {summary}")
            else:
                logger.debug("ℹ️ No booking notifications due")
            return summary

    def _due_groups(self, candidates, threshold: ReminderThreshold, now, summary) -> list[GroupKey]:
        """Distinct group keys whose start falls inside the threshold window.

        Keys are captured before any commit so later expiry of the loaded
        rows cannot break the scan.
        """
        due: dict[GroupKey, None] = {}
        for booking in candidates:
            key = GroupKey.of(booking)
            if key in due:
                continue
            try:
                start = self.clock.localize(key.date, key.time)
            except Exception as e:
                logger.error(f"❌ Booking {booking.id} has an unreadable start time: {e}")
                summary["failed"] += 1
                continue
            if threshold.is_due(start - now):
                due[key] = None
        return list(due)

    async def _process_threshold(self, db: Session, threshold: ReminderThreshold, now, summary):
        candidates = self.repo.find_due_for_threshold(
            db, threshold.flag, now + threshold.window_min, now + threshold.window_max
        )
        for key in self._due_groups(candidates, threshold, now, summary):
            try:
                group = self.repo.find_siblings(db, key)
                if not group:
                    continue
                recipients = client_recipient(group[0])
                if threshold.notify_barber:
                    recipients += barber_recipient(group[0])

                report = await dispatch(
                    self.notifier, recipients, format_reminder(group, threshold.lead_label)
                )
                if report.should_mark_sent():
                    self.repo.update_flag_for_group(db, key, threshold.flag)
                    db.commit()
                    summary[threshold.name] += 1
                    logger.info(f"⏰ {threshold.name} reminder handled for booking group {key}")
                else:
                    summary["deferred"] += 1
                    logger.warning(
                        f"⚠️ {threshold.name} reminder for {key} not delivered; will retry next pass"
                    )
            except Exception as e:
                db.rollback()
                summary["failed"] += 1
                logger.error(
                    f"❌ {threshold.name} reminder failed for booking group {key}: {type(e).__name__}: {e}"
                )

    async def _process_completions(self, db: Session, now, summary):
        candidates = self.repo.find_completed_unnotified(db, now.replace(tzinfo=None))
        keys = list(dict.fromkeys(GroupKey.of(b) for b in candidates))
        if not keys:
            return
        staff = self.directory.get_staff_recipients(db)
        staff_targets = staff_recipients(staff)

        for key in keys:
            try:
                group = self.repo.find_siblings(db, key)
                if not group or group[0].status != BookingStatus.APPROVED:
                    continue

                report = await dispatch(
                    self.notifier,
                    barber_recipient(group[0]) + staff_targets,
                    format_completion(group),
                )
                if report.should_mark_sent():
                    self.repo.update_flag_for_group(db, key, COMPLETION_FLAG)
                    db.commit()
                    summary["completion"] += 1
                    logger.info(f"✅ Completion notification handled for booking group {key}")
                else:
                    summary["deferred"] += 1
                    logger.warning(
                        f"⚠️ Completion notification for {key} not delivered; will retry next pass"
                    )
            except Exception as e:
                db.rollback()
                summary["failed"] += 1
                logger.error(
                    f"❌ Completion notification failed for booking group {key}: {type(e).__name__}: {e}"
                )
