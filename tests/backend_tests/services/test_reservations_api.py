import pytest
from fastapi.testclient import TestClient

from backend.services.api import app
from backend.services.parking.api import get_parking_service
from backend.services.parking.service import ParkingService
from backend.services.reservations.api import ERROR_STATUS_CODES, get_reservation_service

TENANT = {"X-User-Id": "20"}
OWNER = {"X-User-Id": "10", "X-User-Role": "owner"}
ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}
STRANGER = {"X-User-Id": "30"}


# -------------------------
# Test client fixture
# -------------------------

@pytest.fixture
def client(service, session_factory):
    app.dependency_overrides[get_reservation_service] = lambda: service
    app.dependency_overrides[get_parking_service] = lambda: ParkingService(session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


# -------------------------
# Helpers
# -------------------------

def _booking_payload(lot, **overrides):
    base = {
        "parking_id": lot["parking_id"],
        "spot_identifiers": "A1",
        "license_plates": "1-ABC-123",
        "reserved_date": "2025-07-03",
        "start_time": "08:00",
        "end_time": "17:00",
    }
    base.update(overrides)
    return base


def _book(client, lot, headers=TENANT, **overrides):
    r = client.post("/reservations", json=_booking_payload(lot, **overrides), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


# -------------------------
# Root / health
# -------------------------

def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "running" in r.json()["message"]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


# -------------------------
# POST /reservations
# -------------------------

def test_book_success(client, lot):
    body = _book(client, lot)
    assert body["user_id"] == 20
    assert len(body["reservation_ids"]) == 1
    assert body["spot_costs"][0]["license_plate"] == "1ABC123"
    assert body["status"] == "active"


def test_book_conflict_is_409(client, lot):
    _book(client, lot)
    r = client.post("/reservations", json=_booking_payload(lot, start_time="16:00", end_time="18:00"), headers=TENANT)
    assert r.status_code == 409
    assert r.json()["detail"]["kind"] == "conflict"
    assert "A1" in r.json()["detail"]["message"]


def test_book_validation_is_422(client, lot):
    r = client.post("/reservations", json=_booking_payload(lot, spot_identifiers="A3-A1"), headers=TENANT)
    assert r.status_code == 422
    assert r.json()["detail"]["kind"] == "validation"


def test_error_kinds_map_to_status_codes():
    assert ERROR_STATUS_CODES["validation"] == 422
    assert ERROR_STATUS_CODES["conflict"] == 409
    assert ERROR_STATUS_CODES["not_found"] == 404


def test_book_for_other_user_is_403(client, lot):
    r = client.post("/reservations", json=_booking_payload(lot, target_user_id=99), headers=TENANT)
    assert r.status_code == 403


def test_book_unknown_spot_is_404(client, lot):
    r = client.post("/reservations", json=_booking_payload(lot, spot_identifiers="Q1"), headers=TENANT)
    assert r.status_code == 404
    assert r.json()["detail"]["kind"] == "not_found"


def test_missing_user_header_is_422(client, lot):
    r = client.post("/reservations", json=_booking_payload(lot))
    assert r.status_code == 422


# -------------------------
# Groups
# -------------------------

def test_get_and_update_group(client, lot):
    booked = _book(client, lot)
    token = booked["group_token"]

    r = client.get(f"/reservations/groups/{token}", headers=TENANT)
    assert r.status_code == 200
    assert [v["id"] for v in r.json()] == booked["reservation_ids"]

    r = client.patch(f"/reservations/groups/{token}", json={"end_time": "12:00"}, headers=TENANT)
    assert r.status_code == 200
    assert r.json()["group_token"] == token

    statuses = [v["status"] for v in client.get(f"/reservations/groups/{token}", headers=TENANT).json()]
    assert statuses == ["cancelled_by_owner", "active"]


def test_update_by_stranger_is_403(client, lot):
    token = _book(client, lot)["group_token"]
    r = client.patch(f"/reservations/groups/{token}", json={"end_time": "12:00"}, headers=STRANGER)
    assert r.status_code == 403


def test_unknown_group_is_404(client):
    assert client.get("/reservations/groups/missing", headers=TENANT).status_code == 404


# -------------------------
# Status transitions
# -------------------------

def test_cancel_and_cancel_again(client, lot):
    reservation_id = _book(client, lot)["reservation_ids"][0]

    r = client.post(f"/reservations/{reservation_id}/cancel", headers=TENANT)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled_by_user"

    r = client.post(f"/reservations/{reservation_id}/cancel", headers=TENANT)
    assert r.status_code == 200
    assert r.json()["already_finalized"] is True


def test_owner_cancel_too_early_is_422(client, lot):
    reservation_id = _book(client, lot, reserved_date="2025-07-10")["reservation_ids"][0]
    r = client.post(f"/reservations/{reservation_id}/cancel", headers=OWNER)
    assert r.status_code == 422


def test_end_early(client, lot):
    reservation_id = _book(client, lot)["reservation_ids"][0]
    r = client.post(f"/reservations/{reservation_id}/end", headers=TENANT)
    assert r.status_code == 200
    assert r.json()["status"] == "done"


def test_cancel_unknown_is_404(client):
    assert client.post("/reservations/999/cancel", headers=ADMIN).status_code == 404


def test_manual_occupancy(client, lot):
    payload = {
        "spot_id": lot["spots"]["A2"],
        "start_datetime": "2025-07-03T08:00:00",
        "end_datetime": "2025-07-03T12:00:00",
    }
    assert client.post("/reservations/manual-occupancy", json=payload, headers=TENANT).status_code == 403

    r = client.post("/reservations/manual-occupancy", json=payload, headers=ADMIN)
    assert r.status_code == 201
    assert r.json()["status"] == "manual_override"
    assert r.json()["user_id"] is None


# -------------------------
# Parking endpoints
# -------------------------

def test_provision_and_search(client, lot):
    r = client.post(f"/parkings/{lot['parking_id']}/spots", json={"identifiers": "B1-B2"}, headers=OWNER)
    assert r.status_code == 201
    assert [s["identifier"] for s in r.json()] == ["B1", "B2"]

    _book(client, lot)
    r = client.get(
        f"/parkings/{lot['parking_id']}/available-spots",
        params={"start_datetime": "2025-07-03T09:00:00", "end_datetime": "2025-07-03T10:00:00"},
    )
    assert r.status_code == 200
    identifiers = [s["identifier"] for s in r.json()["spots"]]
    assert "A1" not in identifiers
    assert r.json()["number_of_available_spots"] == 5


def test_deactivate_parking(client, lot):
    assert client.delete(f"/parkings/{lot['parking_id']}", headers=STRANGER).status_code == 403

    r = client.delete(f"/parkings/{lot['parking_id']}", headers=OWNER)
    assert r.status_code == 200
    assert r.json()["spots_deactivated"] == 4


def test_deactivate_spot(client, lot):
    r = client.delete(f"/parking-spots/{lot['spots']['A1']}", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["is_available"] is False
