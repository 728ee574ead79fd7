import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .clock import business_now
from .database import Base


class BookingStatus(str, enum.Enum):
    """Booking lifecycle status"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    def __str__(self):
        return self.value


class StaffRole(str, enum.Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class User(Base):
    """Shop staff who receive operational notifications"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    role = Column(
        Enum(StaffRole, name="staff_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=StaffRole.ADMIN,
    )
    tg_id = Column(String(64), nullable=True)  # messaging contact, null = unreachable
    created_at = Column(DateTime, default=business_now)  # naive business-local time


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    phone_number = Column(String(50), unique=True, index=True, nullable=True)
    tg_id = Column(String(64), nullable=True, index=True)
    tg_username = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=business_now)

    bookings = relationship("Booking", back_populates="client")


class Barber(Base):
    __tablename__ = "barbers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    tg_id = Column(String(64), nullable=True)
    image_url = Column(String(2000), nullable=True)
    working = Column(Boolean, default=True, nullable=False)  # accepting new bookings
    work_start_time = Column(String(5), nullable=True)  # HH:MM, falls back to DEFAULT_WORK_START
    work_end_time = Column(String(5), nullable=True)  # HH:MM, falls back to DEFAULT_WORK_END
    created_at = Column(DateTime, default=business_now)

    bookings = relationship("Booking", back_populates="barber")
    services = relationship("Service", back_populates="barber")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    barber_id = Column(Integer, ForeignKey("barbers.id"), nullable=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=False, default=30)

    barber = relationship("Barber", back_populates="services")


class Booking(Base):
    """One reserved service inside an appointment.

    Rows sharing (client_id, barber_id, date, time) form one booking group:
    they are created together, share end_time, and always carry the same
    status and notification flags.
    """

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    barber_id = Column(Integer, ForeignKey("barbers.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM local wall clock
    end_time = Column(DateTime, nullable=True)  # naive local, start + total group duration

    status = Column(
        Enum(
            BookingStatus,
            name="booking_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    comment = Column(Text, nullable=True)

    # Idempotency flags, one per notification threshold
    notification_sent = Column(Boolean, nullable=False, default=False)  # 30 minutes before
    reminder_1_day_sent = Column(Boolean, nullable=False, default=False)
    reminder_3_hours_sent = Column(Boolean, nullable=False, default=False)
    reminder_1_hour_sent = Column(Boolean, nullable=False, default=False)
    completion_notification_sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=business_now)
    updated_at = Column(DateTime, default=business_now, onupdate=business_now)

    client = relationship("Client", back_populates="bookings")
    barber = relationship("Barber", back_populates="bookings")
    service = relationship("Service")

    __table_args__ = (
        Index("ix_bookings_barber_date_status", "barber_id", "date", "status"),
        Index("ix_bookings_group", "client_id", "barber_id", "date", "time"),
    )
