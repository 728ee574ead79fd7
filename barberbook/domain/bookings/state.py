"""Booking status state machine and booking-group identity

Booking statuses: pending → approved → completed/cancelled, pending → rejected

- rejected, cancelled and completed are terminal
- there are no same-status no-op transitions; re-approving is an error
"""

from datetime import date
from typing import NamedTuple

from ...exceptions import InvalidStateTransition
from ...models import Booking, BookingStatus

VALID_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.APPROVED, BookingStatus.REJECTED}),
    BookingStatus.APPROVED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

# Statuses that hold a barber's time
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)

TERMINAL_STATUSES = frozenset(s for s, targets in VALID_TRANSITIONS.items() if not targets)


def can_transition(current: BookingStatus, new_status: BookingStatus) -> bool:
    return new_status in VALID_TRANSITIONS.get(current, frozenset())


def validate_transition(current: BookingStatus, new_status: BookingStatus) -> None:
    """Raise InvalidStateTransition unless current → new_status is in the table"""
    if not can_transition(current, new_status):
        raise InvalidStateTransition(current.value, BookingStatus(new_status).value)


class GroupKey(NamedTuple):
    """Identity shared by every row of one client visit"""

    client_id: int
    barber_id: int
    date: date
    time: str

    @classmethod
    def of(cls, booking: Booking) -> "GroupKey":
        return cls(booking.client_id, booking.barber_id, booking.date, booking.time)

    def __str__(self):
        return f"client={self.client_id} barber={self.barber_id} {self.date.isoformat()} {self.time}"


def group_rows(bookings: list[Booking]) -> dict[GroupKey, list[Booking]]:
    """Fold booking rows into their groups, preserving row order within a group"""
    groups: dict[GroupKey, list[Booking]] = {}
    for booking in bookings:
        groups.setdefault(GroupKey.of(booking), []).append(booking)
    return groups
