"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...models import BookingStatus


class BookingGroupCreate(BaseModel):
    """Schema for booking one or more services as a single appointment"""

    client_id: Optional[int] = None
    client_name: Optional[str] = None
    phone_number: Optional[str] = None
    tg_id: Optional[str] = None
    tg_username: Optional[str] = None

    barber_id: int
    service_ids: list[int]
    date: date
    time: str

    @field_validator("service_ids")
    @classmethod
    def validate_service_ids(cls, v):
        if not v:
            raise ValueError("At least one service must be selected")
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        try:
            return datetime.strptime(v.strip(), "%H:%M").strftime("%H:%M")
        except ValueError:
            raise ValueError("Time must be in HH:MM format") from None

    @model_validator(mode="after")
    def validate_client(self):
        if self.client_id is None and not (self.phone_number or self.tg_id):
            raise ValueError("Either client_id or a phone_number/tg_id is required")
        return self


class StatusUpdate(BaseModel):
    status: BookingStatus


class CommentUpdate(BaseModel):
    comment: str

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class BookingResponse(BaseModel):
    """Schema for a single booking row"""

    id: int
    client_id: int
    barber_id: int
    service_id: int
    date: date
    time: str
    end_time: Optional[datetime] = None
    status: BookingStatus
    comment: Optional[str] = None
    notification_sent: bool = False
    reminder_1_day_sent: bool = False
    reminder_3_hours_sent: bool = False
    reminder_1_hour_sent: bool = False
    completion_notification_sent: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingGroupResponse(BaseModel):
    """All rows of one appointment"""

    client_id: int
    barber_id: int
    date: date
    time: str
    status: BookingStatus
    end_time: Optional[datetime] = None
    bookings: list[BookingResponse]


class AvailableSlotsResponse(BaseModel):
    barber_id: int
    date: date
    slots: list[str]


class DeleteResponse(BaseModel):
    deleted: int
