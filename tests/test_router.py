from datetime import date

import pytest
from fastapi.testclient import TestClient

from barberbook.database import get_db
from barberbook.domain.bookings.router import get_notifier
from barberbook.main import app
from barberbook.models import BookingStatus

DAY = "2030-01-15"


@pytest.fixture
def api(db, notifier):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def payload(client, barber, services):
    return {
        "client_id": client.id,
        "barber_id": barber.id,
        "service_ids": [s.id for s in services],
        "date": DAY,
        "time": "10:00",
    }


def test_health(api):
    assert api.get("/health").json() == {"status": "healthy"}


def test_create_booking_group(api, payload, notifier):
    response = api.post("/bookings", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["time"] == "10:00"
    assert body["end_time"] == "2030-01-15T11:00:00"
    assert len(body["bookings"]) == 3
    assert [r for r, _ in notifier.sent] == ["barber-chat"]


def test_create_booking_with_new_client(api, barber, services):
    response = api.post(
        "/bookings",
        json={
            "client_name": "Walk-in",
            "phone_number": "+998901110000",
            "barber_id": barber.id,
            "service_ids": [services[0].id],
            "date": DAY,
            "time": "15:00",
        },
    )
    assert response.status_code == 201


def test_create_booking_conflict(api, payload):
    assert api.post("/bookings", json=payload).status_code == 201

    overlapping = dict(payload, time="10:30", service_ids=[payload["service_ids"][0]])
    response = api.post("/bookings", json=overlapping)

    assert response.status_code == 409


@pytest.mark.parametrize(
    "changes",
    [
        {"time": "25:00"},
        {"service_ids": []},
        {"date": "15/01/2030"},
        {"client_id": None},
    ],
)
def test_create_booking_rejects_malformed_payload(api, payload, changes):
    response = api.post("/bookings", json=dict(payload, **changes))
    assert response.status_code == 422


def test_create_booking_domain_validation(api, payload):
    response = api.post("/bookings", json=dict(payload, service_ids=[1, 1]))
    assert response.status_code == 400


def test_create_booking_unknown_barber(api, payload):
    response = api.post("/bookings", json=dict(payload, barber_id=999))
    assert response.status_code == 404


def test_status_lifecycle(api, payload):
    booking_id = api.post("/bookings", json=payload).json()["bookings"][0]["id"]

    response = api.patch(f"/bookings/{booking_id}/status", json={"status": "approved"})
    assert response.status_code == 200
    assert {b["status"] for b in response.json()["bookings"]} == {"approved"}

    response = api.patch(f"/bookings/{booking_id}/status", json={"status": "approved"})
    assert response.status_code == 409

    response = api.patch(f"/bookings/{booking_id}/status", json={"status": "archived"})
    assert response.status_code == 422

    response = api.patch("/bookings/999/status", json={"status": "approved"})
    assert response.status_code == 404


def test_comment_endpoint(api, client, barber, services, make_group):
    day = date.fromisoformat(DAY)
    pending = make_group(client, barber, [services[0]], day, "10:00", status=BookingStatus.PENDING)
    done = make_group(client, barber, [services[1]], day, "12:00", status=BookingStatus.COMPLETED)

    response = api.patch(f"/bookings/{pending[0].id}/comment", json={"comment": "Nice"})
    assert response.status_code == 400

    response = api.patch(f"/bookings/{done[0].id}/comment", json={"comment": " Nice "})
    assert response.status_code == 200
    assert response.json()["comment"] == "Nice"

    assert [b["id"] for b in api.get("/bookings/comments").json()] == [done[0].id]


def test_get_and_delete_group(api, payload):
    booking_id = api.post("/bookings", json=payload).json()["bookings"][1]["id"]

    group = api.get(f"/bookings/{booking_id}").json()
    assert len(group["bookings"]) == 3

    assert api.delete(f"/bookings/{booking_id}").json() == {"deleted": 3}
    assert api.get(f"/bookings/{booking_id}").status_code == 404


def test_listing_endpoints(api, payload, client, barber):
    api.post("/bookings", json=payload)

    assert len(api.get("/bookings/pending").json()) == 3
    assert len(api.get(f"/bookings/barber/{barber.id}").json()) == 3
    assert len(api.get(f"/bookings/client/{client.id}").json()) == 3
    assert api.get("/bookings/client/999").json() == []


def test_available_slots(api, payload, barber, services):
    api.post("/bookings", json=payload)

    response = api.get(
        "/bookings/slots",
        params={"barber_id": barber.id, "date": DAY, "service_ids": [services[0].id]},
    )

    assert response.status_code == 200
    slots = response.json()["slots"]
    assert "10:00" not in slots
    assert slots[0] == "09:00"
    assert "11:00" in slots
