"""Booking router - FastAPI endpoints for booking groups"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import Booking
from ...services.telegram_service import Notifier, TelegramNotifier
from ..directory.repository import ClientRef
from .schemas import (
    AvailableSlotsResponse,
    BookingGroupCreate,
    BookingGroupResponse,
    BookingResponse,
    CommentUpdate,
    DeleteResponse,
    StatusUpdate,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_notifier() -> Notifier:
    return TelegramNotifier()


def get_booking_service(
    db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, notifier)


def _group_response(group: list[Booking]) -> BookingGroupResponse:
    first = group[0]
    return BookingGroupResponse(
        client_id=first.client_id,
        barber_id=first.barber_id,
        date=first.date,
        time=first.time,
        status=first.status,
        end_time=first.end_time,
        bookings=[BookingResponse.model_validate(b) for b in group],
    )


# ============================================================================
# BOOKING GROUPS
# ============================================================================


@router.post("", response_model=BookingGroupResponse, status_code=201)
async def create_booking(
    data: BookingGroupCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Book one or more services back-to-back with one barber"""
    client_ref = ClientRef(
        client_id=data.client_id,
        name=data.client_name,
        phone_number=data.phone_number,
        tg_id=data.tg_id,
        tg_username=data.tg_username,
    )
    group = await service.create_group(
        client_ref, data.barber_id, data.service_ids, data.date, data.time
    )
    return _group_response(group)


@router.get("/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    barber_id: int = Query(...),
    day: date = Query(..., alias="date"),
    service_ids: list[int] = Query(...),
    service: BookingService = Depends(get_booking_service),
):
    """Free start times for a barber on a day, sized to the selected services"""
    slots = service.available_slots(barber_id, day, service_ids)
    return AvailableSlotsResponse(barber_id=barber_id, date=day, slots=slots)


@router.get("/pending", response_model=list[BookingResponse])
async def get_pending_bookings(service: BookingService = Depends(get_booking_service)):
    return service.list_pending()


@router.get("/comments", response_model=list[BookingResponse])
async def get_bookings_with_comments(service: BookingService = Depends(get_booking_service)):
    return service.list_with_comments()


@router.get("/barber/{barber_id}", response_model=list[BookingResponse])
async def get_barber_bookings(
    barber_id: int, service: BookingService = Depends(get_booking_service)
):
    return service.list_for_barber(barber_id)


@router.get("/client/{client_id}", response_model=list[BookingResponse])
async def get_client_bookings(
    client_id: int, service: BookingService = Depends(get_booking_service)
):
    return service.list_for_client(client_id)


@router.get("/{booking_id}", response_model=BookingGroupResponse)
async def get_booking_group(
    booking_id: int, service: BookingService = Depends(get_booking_service)
):
    """Get the whole appointment a booking row belongs to"""
    return _group_response(service.get_group(booking_id))


@router.patch("/{booking_id}/status", response_model=BookingGroupResponse)
async def update_booking_status(
    booking_id: int,
    data: StatusUpdate,
    service: BookingService = Depends(get_booking_service),
):
    """Change the status of every row in the booking's group"""
    group = await service.transition_booking(booking_id, data.status)
    return _group_response(group)


@router.patch("/{booking_id}/comment", response_model=BookingResponse)
async def update_booking_comment(
    booking_id: int,
    data: CommentUpdate,
    service: BookingService = Depends(get_booking_service),
):
    return service.set_comment(booking_id, data.comment)


@router.delete("/{booking_id}", response_model=DeleteResponse)
async def delete_booking_group(
    booking_id: int, service: BookingService = Depends(get_booking_service)
):
    """Delete the whole appointment a booking row belongs to"""
    return DeleteResponse(deleted=service.delete_group(booking_id))
