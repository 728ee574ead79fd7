import os
from datetime import datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from barberbook.clock import Clock
from barberbook.database import Base
from barberbook.exceptions import SendResult
from barberbook.models import Barber, Booking, BookingStatus, Client, Service, StaffRole, User


class FixedClock(Clock):
    """Clock pinned to a local wall-clock moment; move it with advance()"""

    def __init__(self, current: datetime):
        super().__init__()
        self.current = current.replace(tzinfo=self.tz)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


class FakeNotifier:
    """Records every send; results can be forced per recipient contact"""

    def __init__(self, results=None, default=SendResult.SUCCESS):
        self.results = results or {}
        self.default = default
        self.sent = []
        self.photos = []

    async def send(self, recipient_id, message):
        self.sent.append((recipient_id, message))
        return self._result(recipient_id)

    async def send_photo(self, recipient_id, photo_url, caption=None):
        self.photos.append((recipient_id, photo_url, caption))
        return self._result(recipient_id)

    def _result(self, recipient_id):
        result = self.results.get(recipient_id, self.default)
        if isinstance(result, Exception):
            raise result
        return result

    def messages_to(self, recipient_id):
        return [m for r, m in self.sent if r == recipient_id] + [
            c for r, _, c in self.photos if r == recipient_id
        ]


# Tuesday 10 March 2026, 12:00 business time
NOW = datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def barber(db):
    barber = Barber(
        name="Aziz",
        tg_id="barber-chat",
        image_url="https://cdn.example.com/aziz.jpg",
        work_start_time="09:00",
        work_end_time="18:00",
    )
    db.add(barber)
    db.commit()
    return barber


@pytest.fixture
def services(db, barber):
    rows = [
        Service(barber_id=barber.id, name="Haircut", price=80000, duration_minutes=30),
        Service(barber_id=barber.id, name="Beard trim", price=40000, duration_minutes=20),
        Service(barber_id=barber.id, name="Hair wash", price=20000, duration_minutes=10),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def client(db):
    client = Client(name="Bekzod", phone_number="+998901112233", tg_id="client-chat")
    db.add(client)
    db.commit()
    return client


@pytest.fixture
def staff(db):
    rows = [
        User(name="Admin", role=StaffRole.ADMIN, tg_id="admin-chat"),
        User(name="Owner", role=StaffRole.SUPER_ADMIN, tg_id="owner-chat"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def make_group(db):
    """Insert a booking group directly, bypassing the lifecycle checks"""

    def _make(client, barber, service_list, day, time, status=BookingStatus.APPROVED, **flags):
        start = datetime.combine(day, datetime.strptime(time, "%H:%M").time())
        end_time = start + timedelta(minutes=sum(s.duration_minutes for s in service_list))
        rows = [
            Booking(
                client_id=client.id,
                barber_id=barber.id,
                service_id=s.id,
                date=day,
                time=time,
                end_time=end_time,
                status=status,
                **flags,
            )
            for s in service_list
        ]
        db.add_all(rows)
        db.commit()
        return rows

    return _make
