from datetime import date
import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from soiltesting.api.routes import date_availability, misc, requests, schedules, time_slots
from soiltesting.core.security import create_access_token
from soiltesting.db import models
from soiltesting.db.session import Base, get_db
from soiltesting.services import scheduling_service


def _auth(user_id, role):
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


ADMIN = _auth(1, "admin")
FARMER = _auth(7, "farmer")
OTHER_FARMER = _auth(8, "farmer")
OFFICER = _auth(11, "field_officer")


@pytest.fixture()
def api_client(sms_outbox):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    test_app = FastAPI()
    for module in (requests, schedules, time_slots, date_availability, misc):
        test_app.include_router(module.router, prefix="/api/v1")
    test_app.dependency_overrides[get_db] = override_get_db

    with TestClient(test_app) as client:
        yield client, TestingSessionLocal

    test_app.dependency_overrides.clear()


def _create_slot(client, max_bookings=1):
    response = client.post(
        "/api/v1/soil-testing/time-slots",
        json={
            "center_id": 1,
            "date": "2030-03-14",
            "start_time": "09:00",
            "end_time": "10:00",
            "max_bookings": max_bookings,
        },
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()


def _create_request(client, headers=FARMER):
    response = client.post(
        "/api/v1/soil-testing-requests",
        json={
            "center_id": 1,
            "preferred_date": "2030-03-14",
            "preferred_time_slot": "morning",
            "farmer_phone": "0771234567",
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


APPROVAL = {
    "approved_date": "2030-03-14",
    "approved_start_time": "09:00",
    "approved_end_time": "10:00",
    "field_officer_id": 11,
}


def test_health(api_client):
    client, _ = api_client

    assert client.get("/api/v1/health").json() == {"status": "ok"}


def test_requests_require_authentication(api_client):
    client, _ = api_client

    assert client.get("/api/v1/soil-testing-requests").status_code == 401
    assert client.get("/api/v1/soil-testing-requests", headers=FARMER).status_code == 403


def test_request_lifecycle(api_client, sms_outbox):
    client, SessionLocal = api_client
    slot = _create_slot(client)
    created = _create_request(client)
    assert created["status"] == "pending"
    assert created["farmer_id"] == 7

    pending = client.get("/api/v1/soil-testing-requests/pending", headers=ADMIN).json()
    assert pending["total"] == 1
    assert pending["items"][0]["id"] == created["id"]

    response = client.post(
        f"/api/v1/soil-testing-requests/{created['id']}/approve", json=APPROVAL, headers=ADMIN
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["schedule"]["status"] == "approved"
    assert body["schedule"]["time_slot_id"] == slot["id"]

    again = client.post(
        f"/api/v1/soil-testing-requests/{created['id']}/approve", json=APPROVAL, headers=ADMIN
    )
    assert again.status_code == 409

    with SessionLocal() as db:
        assert db.get(models.TimeSlot, slot["id"]).current_bookings == 1
    assert len(sms_outbox) == 1


def test_capacity_conflict_returns_409(api_client):
    client, _ = api_client
    _create_slot(client)
    first = _create_request(client)
    second = _create_request(client, headers=OTHER_FARMER)

    assert client.post(
        f"/api/v1/soil-testing-requests/{first['id']}/approve", json=APPROVAL, headers=ADMIN
    ).status_code == 200
    response = client.post(
        f"/api/v1/soil-testing-requests/{second['id']}/approve", json=APPROVAL, headers=ADMIN
    )

    assert response.status_code == 409
    assert "fully booked" in response.json()["detail"]


def test_farmer_sees_only_own_requests(api_client):
    client, _ = api_client
    created = _create_request(client)

    assert client.get(
        f"/api/v1/soil-testing-requests/{created['id']}", headers=FARMER
    ).status_code == 200
    assert client.get(
        f"/api/v1/soil-testing-requests/{created['id']}", headers=OTHER_FARMER
    ).status_code == 404
    assert client.post(
        f"/api/v1/soil-testing-requests/{created['id']}/cancel", headers=OTHER_FARMER
    ).status_code == 404

    mine = client.get("/api/v1/soil-testing-requests/mine", headers=FARMER).json()
    assert [item["id"] for item in mine["items"]] == [created["id"]]

    cancelled = client.post(
        f"/api/v1/soil-testing-requests/{created['id']}/cancel", headers=FARMER
    )
    assert cancelled.json()["status"] == "cancelled"


def test_rejection_requires_reason(api_client, sms_outbox):
    client, _ = api_client
    created = _create_request(client)

    invalid = client.put(
        f"/api/v1/soil-testing-requests/{created['id']}",
        json={"status": "rejected"},
        headers=ADMIN,
    )
    assert invalid.status_code == 422

    response = client.put(
        f"/api/v1/soil-testing-requests/{created['id']}",
        json={"status": "rejected", "rejection_reason": "Outside service area"},
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Outside service area"
    assert "Outside service area" in sms_outbox[-1][1]


def test_completion_and_verification(api_client):
    client, _ = api_client
    created = _create_request(client)
    approved = client.post(
        f"/api/v1/soil-testing-requests/{created['id']}/approve", json=APPROVAL, headers=ADMIN
    ).json()
    schedule = approved["schedule"]
    unique_id = json.loads(schedule["qr_code_data"])["unique_id"]

    verified = client.get(f"/api/v1/soil-testing/verify/{unique_id}", headers=OFFICER)
    assert verified.status_code == 200
    assert verified.json()["is_actionable"] is True
    assert verified.json()["schedule"]["id"] == schedule["id"]

    assert client.get(
        "/api/v1/soil-testing/verify/not-a-credential", headers=OFFICER
    ).status_code == 400
    assert client.get(f"/api/v1/soil-testing/verify/{unique_id}", headers=FARMER).status_code == 403

    completed = client.post(
        f"/api/v1/soil-testing/schedules/{schedule['id']}/complete", headers=OFFICER
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["completed_at"] is not None

    repeat = client.post(
        f"/api/v1/soil-testing/schedules/{schedule['id']}/complete", headers=OFFICER
    )
    assert repeat.status_code == 409


def test_farmer_schedule_search_is_scoped(api_client):
    client, _ = api_client
    for headers in (FARMER, OTHER_FARMER):
        created = _create_request(client, headers=headers)
        client.post(
            f"/api/v1/soil-testing-requests/{created['id']}/approve",
            json=APPROVAL,
            headers=ADMIN,
        )

    everything = client.get("/api/v1/soil-testing/schedules", headers=ADMIN).json()
    mine = client.get(
        "/api/v1/soil-testing/schedules", params={"farmer_id": 8}, headers=FARMER
    ).json()

    assert everything["total"] == 2
    assert mine["total"] == 1
    assert mine["items"][0]["farmer_id"] == 7


def test_time_slot_admin_endpoints(api_client):
    client, _ = api_client
    bulk = client.post(
        "/api/v1/soil-testing/time-slots/bulk",
        json={
            "center_id": 1,
            "dates": ["2030-03-14", "2030-03-15"],
            "intervals": [{"start_time": "9:00", "end_time": "10:00"}],
            "max_bookings": 2,
        },
        headers=ADMIN,
    )
    assert bulk.status_code == 201
    assert [slot["start_time"] for slot in bulk.json()] == ["09:00", "09:00"]

    duplicate = client.post(
        "/api/v1/soil-testing/time-slots",
        json={"center_id": 1, "date": "2030-03-14", "start_time": "09:00", "end_time": "10:00"},
        headers=ADMIN,
    )
    assert duplicate.status_code == 409

    available = client.get(
        "/api/v1/soil-testing/time-slots/available/1",
        params={"date_from": "2030-03-01", "date_to": "2030-03-31"},
    ).json()
    assert [entry["date"] for entry in available] == ["2030-03-14", "2030-03-15"]

    slot_id = bulk.json()[0]["id"]
    updated = client.put(
        f"/api/v1/soil-testing/time-slots/{slot_id}", json={"max_bookings": 5}, headers=ADMIN
    )
    assert updated.json()["available_bookings"] == 5

    page = client.get(
        "/api/v1/soil-testing/time-slots", params={"date": "2030-03-15"}, headers=ADMIN
    ).json()
    assert page["total"] == 1

    assert client.delete(
        f"/api/v1/soil-testing/time-slots/{slot_id}", headers=ADMIN
    ).json() == {"status": "deleted"}
    assert client.delete(
        f"/api/v1/soil-testing/time-slots/{slot_id}", headers=ADMIN
    ).status_code == 404


def test_date_availability_endpoints(api_client):
    client, _ = api_client
    _create_slot(client)
    _create_request(client)

    check = client.get("/api/v1/soil-testing/date-availability/1/check/2030-03-14").json()
    assert check["has_scheduled_appointments"] is True
    assert check["can_make_unavailable"] is False

    blocked = client.post(
        "/api/v1/soil-testing/date-availability/1/unavailable",
        json={"date": "2030-03-14"},
        headers=ADMIN,
    )
    assert blocked.status_code == 409
    assert "active appointments" in blocked.json()["detail"]

    report = client.post(
        "/api/v1/soil-testing/date-availability/1/bulk-update",
        json={
            "dates": [
                {"date": "2030-03-14", "is_available": False},
                {"date": "2030-03-20", "is_available": False},
            ]
        },
        headers=ADMIN,
    )
    assert report.status_code == 200
    assert report.json()["updated"] == []
    assert [error["date"] for error in report.json()["errors"]] == ["2030-03-14", "2030-03-20"]

    forced = client.post(
        "/api/v1/soil-testing/date-availability/1/unavailable",
        json={"date": "2030-03-14", "force": True},
        headers=ADMIN,
    )
    assert forced.status_code == 200
    assert forced.json()["updated_slots"] == 1

    summary = client.get(
        "/api/v1/soil-testing/date-availability/1",
        params={"date_from": "2030-03-14", "date_to": "2030-03-14"},
    ).json()
    assert summary == [
        {
            "date": "2030-03-14",
            "is_available": False,
            "total_slots": 1,
            "available_slots": 0,
            "scheduled_appointments": 0,
        }
    ]


def test_today_endpoint_lists_active_visits(api_client, monkeypatch):
    monkeypatch.setattr(scheduling_service, "local_today", lambda: date(2030, 3, 14))
    client, _ = api_client
    created = _create_request(client)
    client.post(
        f"/api/v1/soil-testing-requests/{created['id']}/approve", json=APPROVAL, headers=ADMIN
    )

    today = client.get("/api/v1/soil-testing/schedules/today", headers=OFFICER).json()

    assert [item["request_id"] for item in today] == [created["id"]]
