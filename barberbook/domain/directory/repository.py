"""Directory repository - clients, barbers and staff notification recipients"""

import logging
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from ...models import Barber, Booking, Client, StaffRole, User

logger = logging.getLogger(__name__)


class ClientRef(NamedTuple):
    """Either an existing client id, or contact details to find/create one"""

    client_id: Optional[int] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None
    tg_id: Optional[str] = None
    tg_username: Optional[str] = None


class DirectoryRepository:
    """Repository for client, barber and staff lookups"""

    @staticmethod
    def get_client(db: Session, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_client_by_phone(db: Session, phone_number: str) -> Optional[Client]:
        return db.query(Client).filter(Client.phone_number == phone_number).first()

    @staticmethod
    def resolve_client(db: Session, ref: ClientRef) -> Optional[Client]:
        """Find the client a ref points at, creating it from contact details when new.

        The new client is flushed, not committed, so it joins the caller's transaction.
        """
        if ref.client_id is not None:
            return DirectoryRepository.get_client(db, ref.client_id)

        client = None
        if ref.phone_number:
            client = DirectoryRepository.get_client_by_phone(db, ref.phone_number)
        if client is None and ref.tg_id:
            client = db.query(Client).filter(Client.tg_id == ref.tg_id).first()

        if client is None:
            client = Client(
                name=ref.name,
                phone_number=ref.phone_number,
                tg_id=ref.tg_id,
                tg_username=ref.tg_username,
            )
            db.add(client)
            db.flush()
            logger.info(f"👤 Created client {client.id} ({ref.name or ref.phone_number})")
        return client

    @staticmethod
    def get_barber(db: Session, barber_id: int) -> Optional[Barber]:
        return db.query(Barber).filter(Barber.id == barber_id).first()

    @staticmethod
    def lock_barber(db: Session, barber_id: int) -> Optional[Barber]:
        """SELECT ... FOR UPDATE on the barber row.

        Serializes concurrent availability-check + insert sequences for one
        barber until the surrounding transaction ends.
        """
        return db.query(Barber).filter(Barber.id == barber_id).with_for_update().first()

    @staticmethod
    def get_staff_recipients(db: Session) -> list[User]:
        return (
            db.query(User)
            .filter(User.role.in_([StaffRole.ADMIN, StaffRole.SUPER_ADMIN]))
            .order_by(User.id)
            .all()
        )

    @staticmethod
    def find_unregistered_clients(db: Session, created_before: datetime) -> list[Client]:
        """Clients without a messaging contact created before the cutoff"""
        return (
            db.query(Client)
            .filter(Client.tg_id.is_(None), Client.created_at < created_before)
            .all()
        )

    @staticmethod
    def delete_clients(db: Session, client_ids: list[int]) -> int:
        """Delete clients that no longer own any booking rows; returns count deleted"""
        if not client_ids:
            return 0
        with_bookings = {
            cid
            for (cid,) in db.query(Booking.client_id)
            .filter(Booking.client_id.in_(client_ids))
            .distinct()
            .all()
        }
        removable = [cid for cid in client_ids if cid not in with_bookings]
        if not removable:
            return 0
        return (
            db.query(Client)
            .filter(Client.id.in_(removable))
            .delete(synchronize_session=False)
        )
