# tests/test_api.py
"""End-to-end HTTP tests against the FastAPI app with an in-memory database."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from tiretrack.database import get_db
from tiretrack.main import app
from tiretrack.services import auth_service


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client, session_factory):
    db = session_factory()
    try:
        auth_service.create_admin_user(db, "ops", "pw")
    finally:
        db.close()
    resp = client.post("/api/v1/admin/login", json={"username": "ops", "password": "pw"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def owner_headers(client):
    with patch("tiretrack.services.sms_service.send_otp", new_callable=AsyncMock) as mock_send:
        mock_send.return_value = True
        resp = client.post("/api/v1/auth/otp/request", json={"phone": "0811111111"})
    assert resp.status_code == 200
    resp = client.post("/api/v1/auth/otp/verify", json={"phone": "0811111111", "code": "000000"})
    assert resp.status_code == 200
    assert resp.json()["kind"] == "owner"
    return {"Authorization": f"Bearer {resp.json()['token']}"}


IMPORT_ROWS = [
    {
        "license_plate": "AB-1234", "phone": 811111111, "branch_name": "Central",
        "visit_date": "2024-03-15", "odometer_km": 30000,
        "tire_position": "หน้าซ้าย", "tire_size": "205/55R16", "tire_brand": "Michelin",
    },
    {
        "license_plate": "AB 1234", "phone": "0811111111", "branch_name": "Central",
        "visit_date": "2024-03-15", "odometer_km": 30000,
        "oil_model": "Castrol Edge", "oil_viscosity": "5W-30", "oil_type": "สังเคราะห์แท้",
    },
    {
        "license_plate": "AB 1234", "phone": "0811111111", "branch_name": "Central",
        "visit_date": "2024-03-15", "tire_position": "XX", "tire_size": "205/55R16",
    },
]


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["database"] == "ok"


class TestAdminApi:
    def test_requires_admin_session(self, client):
        assert client.get("/api/v1/admin/stats").status_code == 401
        resp = client.get("/api/v1/admin/visits", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid session"

    def test_wrong_password(self, client, admin_headers):
        resp = client.post("/api/v1/admin/login", json={"username": "ops", "password": "bad"})
        assert resp.status_code == 401

    def test_owner_session_is_not_admin(self, client, owner_headers):
        assert client.get("/api/v1/admin/stats", headers=owner_headers).status_code == 401

    def test_json_import_then_list(self, client, admin_headers):
        resp = client.post("/api/v1/admin/import", json=IMPORT_ROWS, headers=admin_headers)
        assert resp.status_code == 200
        result = resp.json()
        assert result["success_count"] == 2
        assert result["error_count"] == 1
        assert "XX" in result["errors"][0]

        resp = client.get("/api/v1/admin/visits", params={"search": "ab1234"}, headers=admin_headers)
        visits = resp.json()
        assert visits["total"] == 1
        assert visits["data"][0]["tire_change_count"] == 1
        assert visits["data"][0]["oil_change_count"] == 1

        again = client.post("/api/v1/admin/import", json=IMPORT_ROWS[:2], headers=admin_headers).json()
        assert again["duplicate_count"] == 2

    def test_file_import(self, client, admin_headers):
        content = (
            "ทะเบียนรถ,เบอร์โทรศัพท์,วันที่เข้ารับบริการ,ระยะที่เข้ารับบริการ,บริการที่เข้ารับ\n"
            "AB-1234,0811111111,15/03/2567,42000,สลับยาง\n"
            ",,,,\n"
            "CD-5678,0822222222,,10000,\n"
        ).encode("utf-8")
        resp = client.post(
            "/api/v1/admin/import/file",
            files={"file": ("services.csv", content, "text/csv")},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        result = resp.json()
        assert result["parsed_rows"] == 1
        assert result["skipped_rows"] == 1
        assert result["success_count"] == 1

    def test_file_import_rejects_unknown_type(self, client, admin_headers):
        resp = client.post(
            "/api/v1/admin/import/file",
            files={"file": ("services.pdf", b"%PDF", "application/pdf")},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    def test_add_service_and_merge(self, client, admin_headers):
        branch = client.post("/api/v1/admin/branches", json={"name": "Central"}, headers=admin_headers).json()
        body = {
            "license_plate": "ab-1234", "phone": "0811111111", "branch_id": branch["id"],
            "visit_date": "2024-03-15T10:00:00", "odometer_km": 42000,
            "tire_changes": [{"position": "FL", "tire_size": "205/55R16"}],
        }
        first = client.post("/api/v1/admin/visits", json=body, headers=admin_headers)
        assert first.status_code == 201
        assert first.json()["merged"] is False

        body["tire_switches"] = [{"from_position": "หน้าซ้าย", "to_position": "RR"}]
        second = client.post("/api/v1/admin/visits", json=body, headers=admin_headers)
        assert second.json()["merged"] is True
        assert second.json()["id"] == first.json()["id"]
        assert len(second.json()["tire_switches"]) == 1

    def test_add_service_rejects_unknown_position(self, client, admin_headers):
        body = {
            "license_plate": "AB 1234", "phone": "0811111111", "branch_id": 1,
            "visit_date": "2024-03-15T10:00:00", "odometer_km": 42000,
            "tire_changes": [{"position": "XX", "tire_size": "205/55R16"}],
        }
        assert client.post("/api/v1/admin/visits", json=body, headers=admin_headers).status_code == 422

    def test_car_crud(self, client, admin_headers):
        resp = client.post("/api/v1/admin/cars", json={"license_plate": "AB-1234", "phone": "0811111111"}, headers=admin_headers)
        assert resp.status_code == 201
        car = resp.json()
        assert car["license_plate"] == "AB 1234"
        assert car["restored"] is False

        dup = client.post("/api/v1/admin/cars", json={"license_plate": "AB1234", "phone": "0811111111"}, headers=admin_headers)
        assert dup.status_code == 409

        assert client.get("/api/v1/admin/cars/search", params={"query": "AB12"}, headers=admin_headers).json()[0]["id"] == car["id"]
        assert client.delete(f"/api/v1/admin/cars/{car['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/v1/admin/cars/{car['id']}", headers=admin_headers).status_code == 404


class TestOwnerApi:
    def test_requires_owner_session(self, client):
        assert client.get("/api/v1/cars").status_code == 401

    def test_otp_cooldown_returns_retry_after(self, client):
        with patch("tiretrack.services.sms_service.send_otp", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = True
            assert client.post("/api/v1/auth/otp/request", json={"phone": "0811111111"}).status_code == 200
            resp = client.post("/api/v1/auth/otp/request", json={"phone": "0811111111"})
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) > 0

    def test_add_car_and_status(self, client, owner_headers):
        resp = client.post("/api/v1/cars", json={"license_plate": "ab-1234", "car_model": "Civic"}, headers=owner_headers)
        assert resp.status_code == 201
        car = resp.json()
        assert car["license_plate"] == "AB 1234"
        assert car["restored"] is False

        assert client.post("/api/v1/cars", json={"license_plate": "AB1234"}, headers=owner_headers).status_code == 409

        status = client.get(f"/api/v1/cars/{car['id']}/status", params={"current_odometer_km": 1000}, headers=owner_headers)
        assert status.status_code == 200
        data = status.json()
        assert data["current_odometer_km"] == 1000
        assert [t["position"] for t in data["tires"]] == ["FL", "FR", "RL", "RR", "SP"]
        assert data["next_oil_change"] is None

        assert client.get("/api/v1/cars/by-plate/AB-1234", headers=owner_headers).json()["id"] == car["id"]
        assert client.get("/api/v1/cars/999/status", headers=owner_headers).status_code == 404

    def test_remove_car_then_history_is_empty(self, client, owner_headers):
        car = client.post("/api/v1/cars", json={"license_plate": "AB 1234"}, headers=owner_headers).json()
        assert client.delete(f"/api/v1/cars/{car['id']}", headers=owner_headers).status_code == 200
        assert client.get("/api/v1/cars", headers=owner_headers).json() == []
        assert client.get("/api/v1/history", headers=owner_headers).json()["total"] == 0

    def test_logout(self, client, owner_headers):
        resp = client.post("/api/v1/auth/logout", headers=owner_headers)
        assert resp.json()["expired"] is True
        assert client.get("/api/v1/cars", headers=owner_headers).status_code == 401

    def test_bad_paging_is_rejected(self, client, owner_headers):
        car = client.post("/api/v1/cars", json={"license_plate": "AB 1234"}, headers=owner_headers).json()
        resp = client.get(f"/api/v1/cars/{car['id']}/tire-changes", params={"limit": 500}, headers=owner_headers)
        assert resp.status_code == 422
