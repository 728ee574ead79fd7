"""Booking service - Business logic for the booking lifecycle"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...clock import Clock, parse_date, parse_hhmm
from ...exceptions import (
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from ...models import Booking, BookingStatus
from ...services.notification_service import (
    barber_recipient,
    client_recipient,
    dispatch,
    format_new_booking,
    format_status_change,
    staff_recipients,
)
from ...services.telegram_service import Notifier
from ..catalog.repository import CatalogRepository
from ..directory.repository import ClientRef, DirectoryRepository
from .availability import AvailabilityChecker
from .repository import BookingRepository
from .state import GroupKey, validate_transition

logger = logging.getLogger(__name__)

# Dead groups that a new request for the same key may replace
DISCARDABLE_STATUSES = frozenset({BookingStatus.REJECTED, BookingStatus.CANCELLED})


class BookingService:
    """Service layer for booking groups and their status lifecycle"""

    def __init__(
        self, db: Session, notifier: Optional[Notifier] = None, clock: Optional[Clock] = None
    ):
        self.db = db
        self.notifier = notifier
        self.clock = clock or Clock()
        self.repo = BookingRepository()
        self.catalog = CatalogRepository()
        self.directory = DirectoryRepository()
        self.availability = AvailabilityChecker(db, self.clock)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_group(
        self, client_ref: ClientRef, barber_id: int, service_ids: list[int], day, time_str: str
    ) -> list[Booking]:
        """Book several services back-to-back as one appointment.

        Barber lock, availability check and inserts share one transaction;
        any failure rolls the whole group back.
        """
        if not service_ids:
            raise ValidationError("At least one service must be selected")
        if len(set(service_ids)) != len(service_ids):
            raise ValidationError("Each service can only be booked once per appointment")
        day = parse_date(day)
        start = parse_hhmm(time_str)
        time_norm = start.strftime("%H:%M")

        logger.info(f"📥 Booking request: barber={barber_id} {day} {time_norm} services={service_ids}")

        try:
            barber = self.directory.lock_barber(self.db, barber_id)
            if not barber:
                raise NotFoundError(f"Barber {barber_id} not found")
            if not barber.working:
                raise ValidationError(f"Barber {barber_id} is not accepting bookings")

            services = self.catalog.get_services(self.db, service_ids)
            missing = [sid for sid in service_ids if sid not in services]
            if missing:
                raise NotFoundError(f"Services not found: {missing}")

            total_minutes = sum(services[sid].duration_minutes or 0 for sid in service_ids)
            if total_minutes <= 0:
                raise ValidationError("Total service duration must be positive")

            if not self.availability.is_available(barber_id, day, time_norm, total_minutes):
                logger.warning(f"⚠️ Slot conflict: barber={barber_id} {day} {time_norm} ({total_minutes} min)")
                raise ConflictError(
                    f"Barber {barber_id} is not available on {day} at {time_norm} for {total_minutes} minutes"
                )

            client = self.directory.resolve_client(self.db, client_ref)
            if not client:
                raise NotFoundError(f"Client {client_ref.client_id} not found")

            key = GroupKey(client.id, barber_id, day, time_norm)
            existing = {b.status for b in self.repo.find_siblings(self.db, key)}
            if existing - DISCARDABLE_STATUSES:
                raise ConflictError(f"An appointment already exists for {key}")
            if existing:
                # A rejected/cancelled request for the same slot is replaced by the new one
                self.repo.delete_group_with_status(self.db, key, DISCARDABLE_STATUSES)
                logger.info(f"♻️ Replacing {'/'.join(sorted(s.value for s in existing))} group {key}")

            end_time = datetime.combine(day, start) + timedelta(minutes=total_minutes)
            rows = [
                Booking(
                    client_id=client.id,
                    barber_id=barber_id,
                    service_id=sid,
                    date=day,
                    time=time_norm,
                    end_time=end_time,
                    status=BookingStatus.PENDING,
                )
                for sid in service_ids
            ]
            self.repo.create_bookings(self.db, rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        group = self.repo.find_siblings(self.db, key)
        logger.info(f"✅ Created booking group {key} with {len(group)} service(s), ends {end_time:%H:%M}")

        if group:
            staff = self.directory.get_staff_recipients(self.db)
            await self._notify(
                barber_recipient(group[0]) + staff_recipients(staff),
                format_new_booking(group),
                "new booking",
            )
        return group

    # ------------------------------------------------------------------
    # Status lifecycle
    # ------------------------------------------------------------------

    async def transition_status(self, key: GroupKey, new_status) -> list[Booking]:
        """Move every row of a group to new_status in one guarded UPDATE"""
        try:
            new_status = BookingStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown booking status: {new_status}") from None

        siblings = self.repo.find_siblings(self.db, key)
        if not siblings:
            raise NotFoundError(f"Booking group not found: {key}")

        statuses = {b.status for b in siblings}
        if len(statuses) != 1:
            logger.error(f"❌ Booking group {key} has mixed statuses: {sorted(s.value for s in statuses)}")
            raise InvalidStateTransition(
                "mixed", new_status.value, f"Booking group {key} is inconsistent"
            )
        current = statuses.pop()
        validate_transition(current, new_status)

        try:
            affected = self.repo.update_status_for_group(self.db, key, current, new_status)
            if affected != len(siblings):
                self.db.rollback()
                raise InvalidStateTransition(
                    current.value,
                    new_status.value,
                    f"Booking group {key} changed while updating; try again",
                )
            self.db.commit()
        except InvalidStateTransition:
            raise
        except Exception:
            self.db.rollback()
            raise

        group = self.repo.find_siblings(self.db, key)
        logger.info(f"✅ Booking group {key} transitioned: {current.value} → {new_status.value}")

        await self._notify_status_change(group, new_status)
        return group

    async def transition_booking(self, booking_id: int, new_status) -> list[Booking]:
        """Transition the group that a single booking row belongs to"""
        return await self.transition_status(self.get_group_key(booking_id), new_status)

    async def approve(self, booking_id: int) -> list[Booking]:
        return await self.transition_booking(booking_id, BookingStatus.APPROVED)

    async def reject(self, booking_id: int) -> list[Booking]:
        return await self.transition_booking(booking_id, BookingStatus.REJECTED)

    async def complete(self, booking_id: int) -> list[Booking]:
        return await self.transition_booking(booking_id, BookingStatus.COMPLETED)

    async def cancel(self, booking_id: int) -> list[Booking]:
        return await self.transition_booking(booking_id, BookingStatus.CANCELLED)

    async def _notify_status_change(self, group: list[Booking], new_status: BookingStatus) -> None:
        first = group[0]
        message = format_status_change(group, new_status)
        photo = None
        if new_status == BookingStatus.APPROVED and first.barber and first.barber.image_url:
            photo = first.barber.image_url

        await self._notify(client_recipient(first), message, "status change", photo_url=photo)
        staff = self.directory.get_staff_recipients(self.db)
        await self._notify(
            barber_recipient(first) + staff_recipients(staff), message, "status change"
        )

    async def _notify(self, recipients, message: str, label: str, photo_url: Optional[str] = None):
        """Best-effort send; failures are logged and never undo the committed change"""
        if self.notifier is None or not recipients:
            return
        try:
            report = await dispatch(self.notifier, recipients, message, photo_url=photo_url)
            logger.info(f"📨 {label} notification: {report.succeeded}/{len(recipients)} delivered")
        except Exception as e:
            logger.error(f"❌ Failed to send {label} notification: {type(e).__name__}: {e}")

    # ------------------------------------------------------------------
    # Comments, lookups, deletion
    # ------------------------------------------------------------------

    def set_comment(self, booking_id: int, text: str) -> Booking:
        """Attach client feedback to a booking of a completed group"""
        booking = self.get_booking(booking_id)
        if booking.status != BookingStatus.COMPLETED:
            raise ValidationError("Comments can only be added to completed bookings")
        try:
            self.repo.update_comment(self.db, booking, text)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)
        return booking

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def get_group_key(self, booking_id: int) -> GroupKey:
        return GroupKey.of(self.get_booking(booking_id))

    def get_group(self, booking_id: int) -> list[Booking]:
        return self.repo.find_siblings(self.db, self.get_group_key(booking_id))

    def delete_group(self, booking_id: int) -> int:
        """Administrative removal of a whole appointment; single grouped rows are never deleted"""
        key = self.get_group_key(booking_id)
        try:
            deleted = self.repo.delete_group(self.db, key)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"🗑️ Deleted booking group {key} ({deleted} row(s))")
        return deleted

    def available_slots(self, barber_id: int, day, service_ids: list[int]) -> list[str]:
        if not service_ids:
            raise ValidationError("At least one service must be selected")
        services = self.catalog.get_services(self.db, service_ids)
        missing = [sid for sid in service_ids if sid not in services]
        if missing:
            raise NotFoundError(f"Services not found: {missing}")
        total = sum(services[sid].duration_minutes or 0 for sid in service_ids)
        return self.availability.available_slots(barber_id, day, total)

    def list_for_client(self, client_id: int) -> list[Booking]:
        return self.repo.find_by_client(self.db, client_id)

    def list_for_barber(self, barber_id: int) -> list[Booking]:
        return self.repo.find_by_barber(self.db, barber_id)

    def list_pending(self) -> list[Booking]:
        return self.repo.find_pending(self.db)

    def list_with_comments(self) -> list[Booking]:
        return self.repo.find_with_comments(self.db)
