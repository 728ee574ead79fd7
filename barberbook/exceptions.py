"""Booking domain errors

Lifecycle and availability errors propagate to the caller; the HTTP layer
maps them to 4xx responses. Notification errors never leave the scheduler.
"""

import enum


class BookingError(Exception):
    """Base class for booking domain errors"""


class ValidationError(BookingError):
    """Malformed date/time, empty service list, non-positive duration"""


class ConflictError(BookingError):
    """Requested slot overlaps a committed booking"""


class InvalidStateTransition(BookingError):
    def __init__(self, current, requested, message=None):
        self.current = current
        self.requested = requested
        super().__init__(message or f"Cannot change booking status from {current} to {requested}")


class NotFoundError(BookingError):
    pass


class SendResult(str, enum.Enum):
    """Outcome of a single outbound message"""

    SUCCESS = "success"
    UNREACHABLE = "unreachable"  # recipient never engaged the channel or blocked it
    TRANSIENT = "transient"  # timeout, rate limit, upstream 5xx
    OTHER = "other"


class NotifyDispatchError(BookingError):
    def __init__(self, kind: SendResult, recipient_id=None, detail: str = ""):
        self.kind = kind
        self.recipient_id = recipient_id
        super().__init__(f"Notification to {recipient_id} failed ({kind.value}) {detail}".strip())
