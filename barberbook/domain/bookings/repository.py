"""Booking repository - Database operations for bookings and booking groups

Write methods flush but do not commit; the service layer owns the
transaction so a group change is committed (or rolled back) as one unit.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Booking, BookingStatus
from .state import GroupKey

NOTIFICATION_FLAGS = (
    "notification_sent",
    "reminder_1_day_sent",
    "reminder_3_hours_sent",
    "reminder_1_hour_sent",
    "completion_notification_sent",
)


def _group_filter(key: GroupKey):
    return (
        Booking.client_id == key.client_id,
        Booking.barber_id == key.barber_id,
        Booking.date == key.date,
        Booking.time == key.time,
    )


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def create_bookings(db: Session, rows: list[Booking]) -> list[Booking]:
        db.add_all(rows)
        db.flush()
        return rows

    @staticmethod
    def find_siblings(db: Session, key: GroupKey) -> list[Booking]:
        """All rows of a booking group, with client/barber/service loaded"""
        return (
            db.query(Booking)
            .options(
                joinedload(Booking.client),
                joinedload(Booking.barber),
                joinedload(Booking.service),
            )
            .filter(*_group_filter(key))
            .order_by(Booking.id)
            .all()
        )

    @staticmethod
    def find_by_barber_and_date_with_status(
        db: Session, barber_id: int, day: date, statuses
    ) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(
                Booking.barber_id == barber_id,
                Booking.date == day,
                Booking.status.in_(list(statuses)),
            )
            .order_by(Booking.time, Booking.id)
            .all()
        )

    @staticmethod
    def find_due_for_threshold(
        db: Session, flag: str, window_start: datetime, window_end: datetime
    ) -> list[Booking]:
        """Approved rows whose flag is unset and whose date falls inside the window's days.

        The window is a coarse date prefilter; callers apply the exact
        time-to-start test.
        """
        if flag not in NOTIFICATION_FLAGS:
            raise ValueError(f"Unknown notification flag: {flag}")
        column = getattr(Booking, flag)
        return (
            db.query(Booking)
            .filter(
                Booking.status == BookingStatus.APPROVED,
                column.is_(False),
                Booking.date >= window_start.date(),
                Booking.date <= window_end.date(),
            )
            .order_by(Booking.date, Booking.time, Booking.id)
            .all()
        )

    @staticmethod
    def find_completed_unnotified(db: Session, now: datetime) -> list[Booking]:
        """Approved rows that ended at or before now and have no completion notice yet"""
        return (
            db.query(Booking)
            .filter(
                Booking.status == BookingStatus.APPROVED,
                Booking.completion_notification_sent.is_(False),
                Booking.end_time.isnot(None),
                Booking.end_time <= now,
            )
            .order_by(Booking.end_time, Booking.id)
            .all()
        )

    @staticmethod
    def update_status_for_group(
        db: Session, key: GroupKey, from_status: BookingStatus, to_status: BookingStatus
    ) -> int:
        """Move every row of the group still in from_status; returns affected row count"""
        return (
            db.query(Booking)
            .filter(*_group_filter(key), Booking.status == from_status)
            .update({Booking.status: to_status}, synchronize_session=False)
        )

    @staticmethod
    def update_flag_for_group(db: Session, key: GroupKey, flag: str) -> int:
        if flag not in NOTIFICATION_FLAGS:
            raise ValueError(f"Unknown notification flag: {flag}")
        return (
            db.query(Booking)
            .filter(*_group_filter(key))
            .update({getattr(Booking, flag): True}, synchronize_session=False)
        )

    @staticmethod
    def update_comment(db: Session, booking: Booking, comment: str) -> Booking:
        booking.comment = comment
        db.flush()
        return booking

    @staticmethod
    def delete_group(db: Session, key: GroupKey) -> int:
        return db.query(Booking).filter(*_group_filter(key)).delete(synchronize_session=False)

    @staticmethod
    def delete_group_with_status(db: Session, key: GroupKey, statuses) -> int:
        """ORM delete of the group's rows in the given statuses, flushed.

        Rows go through the session so their identities are released before
        replacement rows (which may reuse the ids on SQLite) are inserted.
        """
        rows = (
            db.query(Booking)
            .filter(*_group_filter(key), Booking.status.in_(list(statuses)))
            .all()
        )
        for row in rows:
            db.delete(row)
        db.flush()
        return len(rows)

    @staticmethod
    def reject_pending_for_clients(db: Session, client_ids: list[int]) -> int:
        """Reject every PENDING row of the given clients (whole groups, since groups share a client)"""
        if not client_ids:
            return 0
        return (
            db.query(Booking)
            .filter(Booking.client_id.in_(client_ids), Booking.status == BookingStatus.PENDING)
            .update({Booking.status: BookingStatus.REJECTED}, synchronize_session=False)
        )

    @staticmethod
    def delete_dead_bookings_for_clients(db: Session, client_ids: list[int]) -> int:
        """Delete rejected/cancelled rows of clients that hold no live or completed booking"""
        if not client_ids:
            return 0
        keep = {
            cid
            for (cid,) in db.query(Booking.client_id)
            .filter(
                Booking.client_id.in_(client_ids),
                Booking.status.in_(
                    [BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.COMPLETED]
                ),
            )
            .distinct()
            .all()
        }
        purge = [cid for cid in client_ids if cid not in keep]
        if not purge:
            return 0
        return (
            db.query(Booking)
            .filter(Booking.client_id.in_(purge))
            .delete(synchronize_session=False)
        )

    # Listing queries
    @staticmethod
    def find_by_client(db: Session, client_id: int) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.client_id == client_id)
            .order_by(Booking.date, Booking.time, Booking.id)
            .all()
        )

    @staticmethod
    def find_by_barber(db: Session, barber_id: int) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.barber_id == barber_id)
            .order_by(Booking.date, Booking.time, Booking.id)
            .all()
        )

    @staticmethod
    def find_pending(db: Session) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.status == BookingStatus.PENDING)
            .order_by(Booking.created_at, Booking.id)
            .all()
        )

    @staticmethod
    def find_with_comments(db: Session) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.comment.isnot(None))
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )
