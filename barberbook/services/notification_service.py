"""
Booking notification service
Builds booking messages and fans them out to recipients through a Notifier,
isolating each recipient's failure from the others
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

from ..config import NOTIFY_TIMEOUT_SECONDS
from ..exceptions import SendResult
from ..models import Booking, BookingStatus
from .telegram_service import Notifier

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    BookingStatus.PENDING: "Pending",
    BookingStatus.APPROVED: "Approved",
    BookingStatus.REJECTED: "Rejected",
    BookingStatus.CANCELLED: "Cancelled",
    BookingStatus.COMPLETED: "Completed",
}


class Recipient(NamedTuple):
    role: str  # client, barber, staff
    entity_id: int
    contact: Optional[str]  # messaging chat id, None when never engaged


def client_recipient(booking: Booking) -> list[Recipient]:
    if not booking.client:
        return []
    return [Recipient("client", booking.client.id, booking.client.tg_id)]


def barber_recipient(booking: Booking) -> list[Recipient]:
    if not booking.barber:
        return []
    return [Recipient("barber", booking.barber.id, booking.barber.tg_id)]


def staff_recipients(staff) -> list[Recipient]:
    return [Recipient("staff", user.id, user.tg_id) for user in staff]


@dataclass
class DispatchReport:
    results: dict = field(default_factory=dict)  # Recipient -> SendResult

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results.values() if r == SendResult.SUCCESS)

    @property
    def failed(self) -> list:
        return [
            rcpt
            for rcpt, r in self.results.items()
            if r in (SendResult.TRANSIENT, SendResult.OTHER)
        ]

    def should_mark_sent(self) -> bool:
        """Whether the idempotency flag may be set after this dispatch.

        Set when anyone received the message, or when nobody could fail
        retryably (all unreachable / no recipients). Left unset only when
        every reachable recipient failed, so the next pass retries.
        """
        return self.succeeded > 0 or not self.failed


async def dispatch(
    notifier: Notifier,
    recipients: list[Recipient],
    message: str,
    photo_url: Optional[str] = None,
    timeout: float = NOTIFY_TIMEOUT_SECONDS,
) -> DispatchReport:
    """Send one message to each recipient; per-recipient latency bounded by timeout"""
    report = DispatchReport()
    for recipient in recipients:
        if not recipient.contact:
            report.results[recipient] = SendResult.UNREACHABLE
            logger.debug(f"⚠️ No messaging contact for {recipient.role} {recipient.entity_id}")
            continue
        try:
            if photo_url:
                call = notifier.send_photo(recipient.contact, photo_url, message)
            else:
                call = notifier.send(recipient.contact, message)
            result = await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            result = SendResult.TRANSIENT
            logger.warning(f"⏱️ Notification to {recipient.role} {recipient.entity_id} timed out")
        except Exception as e:
            result = SendResult.OTHER
            logger.error(
                f"❌ Notification to {recipient.role} {recipient.entity_id} raised: {type(e).__name__}: {e}"
            )
        report.results[recipient] = result

    if report.failed and report.succeeded:
        logger.warning(
            f"⚠️ Partial delivery: {report.succeeded} sent, {len(report.failed)} failed "
            f"({', '.join(f'{r.role}:{r.entity_id}' for r in report.failed)})"
        )
    return report


# Message templates
def _service_lines(group: list[Booking]) -> tuple[str, float, int]:
    lines = []
    total_price = 0.0
    total_minutes = 0
    for b in group:
        service = b.service
        name = service.name if service else f"Service #{b.service_id}"
        price = float(service.price or 0) if service else 0.0
        minutes = (service.duration_minutes or 0) if service else 0
        total_price += price
        total_minutes += minutes
        lines.append(f"• {name} – {price:,.0f} ({minutes} min)")
    return "\n".join(lines), total_price, total_minutes


def _client_name(booking: Booking) -> str:
    client = booking.client
    if not client:
        return "Unknown"
    return client.name or client.phone_number or "Unknown"


def _header(booking: Booking) -> str:
    barber = booking.barber.name if booking.barber else "Unknown"
    return (
        f"📅 Date: {booking.date.isoformat()}\n"
        f"🕒 Time: {booking.time}\n"
        f"👨‍🔧 Barber: {barber}"
    )


def format_new_booking(group: list[Booking]) -> str:
    first = group[0]
    services, total_price, total_minutes = _service_lines(group)
    return (
        f"🆕 New booking request\n\n"
        f"👤 Client: {_client_name(first)}\n"
        f"{_header(first)}\n"
        f"💈 Services:\n{services}\n"
        f"💵 Total: {total_price:,.0f}, {total_minutes} min"
    )


def format_status_change(group: list[Booking], new_status: BookingStatus) -> str:
    first = group[0]
    services, _, _ = _service_lines(group)
    return (
        f"📋 Booking status: {STATUS_LABELS[new_status]}\n\n"
        f"👤 Client: {_client_name(first)}\n"
        f"{_header(first)}\n"
        f"💈 Services:\n{services}"
    )


def format_reminder(group: list[Booking], lead_label: str) -> str:
    first = group[0]
    services, _, _ = _service_lines(group)
    return (
        f"⏰ Booking reminder\n\n"
        f"Your appointment starts in {lead_label}!\n\n"
        f"{_header(first)}\n"
        f"💈 Services:\n{services}\n\n"
        f"Please arrive on time."
    )


def format_completion(group: list[Booking]) -> str:
    first = group[0]
    services, total_price, total_minutes = _service_lines(group)
    ended = first.end_time.strftime("%H:%M") if first.end_time else "Unknown"
    return (
        f"✅ Booking finished\n\n"
        f"👤 Client: {_client_name(first)}\n"
        f"{_header(first)}\n"
        f"🕐 Ended: {ended}\n"
        f"💈 Services:\n{services}\n"
        f"💵 Total: {total_price:,.0f}, {total_minutes} min\n\n"
        f"Please update the booking status."
    )
