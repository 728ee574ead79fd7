"""
Stale client cleanup
Clients created without a messaging contact (e.g. walk-in phone bookings) are
removed after a grace period, and their still-pending requests are rejected
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..clock import Clock
from ..config import UNREGISTERED_CLIENT_TTL_HOURS
from ..domain.bookings.repository import BookingRepository
from ..domain.directory.repository import DirectoryRepository

logger = logging.getLogger(__name__)


def remove_unregistered_clients(
    db: Session, clock: Optional[Clock] = None, ttl_hours: int = UNREGISTERED_CLIENT_TTL_HOURS
) -> dict:
    """
    Reject pending bookings of stale unregistered clients, then delete clients
    left with nothing but rejected/cancelled history.

    Pending → rejected is a valid transition, and every row of a group shares
    its client, so whole groups move together.

    Returns:
        dict: Summary of changes made
    """
    clock = clock or Clock()
    summary = {"clients_checked": 0, "bookings_rejected": 0, "bookings_deleted": 0, "clients_deleted": 0}

    try:
        cutoff = clock.naive_now() - timedelta(hours=ttl_hours)
        clients = DirectoryRepository.find_unregistered_clients(db, cutoff)
        if not clients:
            logger.info("ℹ️ No unregistered clients to clean up")
            return summary

        client_ids = [c.id for c in clients]
        summary["clients_checked"] = len(client_ids)
        summary["bookings_rejected"] = BookingRepository.reject_pending_for_clients(db, client_ids)
        summary["bookings_deleted"] = BookingRepository.delete_dead_bookings_for_clients(
            db, client_ids
        )
        summary["clients_deleted"] = DirectoryRepository.delete_clients(db, client_ids)
        db.commit()

        logger.info(f"📊 Client cleanup summary: {summary}")
        return summary

    except Exception as e:
        logger.error(f"❌ Error cleaning up unregistered clients: {str(e)}")
        db.rollback()
        raise
