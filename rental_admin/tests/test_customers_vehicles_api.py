"""
Integration tests for customer and vehicle management.
"""

from datetime import date

import pytest
from sqlalchemy import select

from rental_admin.app.core.config import settings
from rental_admin.app.core.reliability import calendar_circuit_breaker
from rental_admin.app.models.audit_log import AuditLog
from rental_admin.app.services.calendar_service import CalendarError, CalendarService


# TEST 1: Customers
@pytest.mark.asyncio
async def test_create_customer(client, auth_headers):
    response = await client.post("/v1/customers", json={
        "full_name": "Giulia Bianchi",
        "email": "giulia@example.com",
        "phone": "",
    }, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["full_name"] == "Giulia Bianchi"
    # Empty strings stored as NULL
    assert data["phone"] is None
    assert "id" in data


@pytest.mark.asyncio
async def test_list_customers(client, auth_headers):
    for name in ("Anna", "Luca"):
        await client.post("/v1/customers", json={"full_name": name}, headers=auth_headers)

    response = await client.get("/v1/customers", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {c["full_name"] for c in data["customers"]} == {"Anna", "Luca"}


@pytest.mark.asyncio
async def test_update_customer_records_old_and_new(client, auth_headers, db_session):
    created = await client.post("/v1/customers", json={"full_name": "Old Name"}, headers=auth_headers)
    customer_id = created.json()["id"]

    response = await client.patch(
        f"/v1/customers/{customer_id}",
        json={"full_name": "New Name", "notes": "VIP"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["full_name"] == "New Name"
    assert response.json()["notes"] == "VIP"

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.entity_type == "customer").order_by(AuditLog.id)
    )
    entries = result.scalars().all()
    assert [e.action for e in entries] == ["create", "update"]
    assert entries[1].diff["old"]["full_name"] == "Old Name"
    assert entries[1].diff["new"]["full_name"] == "New Name"


@pytest.mark.asyncio
async def test_update_missing_customer_404(client, auth_headers):
    response = await client.patch("/v1/customers/999", json={"full_name": "X"}, headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_customers_require_token(client):
    response = await client.get("/v1/customers")
    assert response.status_code == 401


# TEST 2: Vehicles
@pytest.mark.asyncio
async def test_create_vehicle(client, auth_headers):
    response = await client.post("/v1/vehicles", json={
        "display_name": "Porsche 911 Carrera",
        "plate": "CD456EF",
        "daily_rate": 380,
    }, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["display_name"] == "Porsche 911 Carrera"
    assert data["status"] == "available"
    assert data["daily_rate"] == 380.0


@pytest.mark.asyncio
async def test_create_vehicle_validation(client, auth_headers):
    response = await client.post("/v1/vehicles", json={
        "display_name": "",
        "daily_rate": -5,
    }, headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_update_vehicle_status(client, auth_headers, vehicle):
    response = await client.patch(
        f"/v1/vehicles/{vehicle.id}",
        json={"status": "maintenance", "plate": None},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "maintenance"
    assert data["plate"] is None
    assert data["display_name"] == "Ferrari 488 GTB"  # Unchanged


@pytest.mark.asyncio
async def test_list_vehicles(client, auth_headers, vehicle):
    response = await client.get("/v1/vehicles", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["vehicles"][0]["id"] == vehicle.id


@pytest.fixture
def calendar_ready(mocker):
    mocker.patch.object(CalendarService, "is_configured", return_value=True)
    calendar_circuit_breaker.reset_state()
    yield
    calendar_circuit_breaker.reset_state()


@pytest.mark.asyncio
async def test_block_vehicle_in_calendar(client, auth_headers, vehicle, calendar_ready, mocker):
    create = mocker.patch.object(
        CalendarService,
        "create_unavailability_event",
        return_value={"id": "evt_block", "htmlLink": "https://calendar/evt_block"},
    )

    response = await client.post(
        f"/v1/vehicles/{vehicle.id}/unavailability",
        json={"unavailable_from": "2025-06-10", "unavailable_until": "2025-06-12", "reason": "Tagliando"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json() == {
        "vehicle_id": vehicle.id,
        "event_id": "evt_block",
        "event_link": "https://calendar/evt_block",
    }
    args = create.call_args.args
    assert args[0].display_name == "Ferrari 488 GTB"
    assert args[1:3] == (date(2025, 6, 10), date(2025, 6, 12))
    assert args[4] == "Tagliando"


@pytest.mark.asyncio
async def test_block_vehicle_rejects_reversed_range(client, auth_headers, vehicle):
    response = await client.post(
        f"/v1/vehicles/{vehicle.id}/unavailability",
        json={"unavailable_from": "2025-06-12", "unavailable_until": "2025-06-10"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_block_vehicle_calendar_not_configured(client, auth_headers, vehicle, mocker):
    mocker.patch.object(settings, "google_refresh_token", None)

    response = await client.post(
        f"/v1/vehicles/{vehicle.id}/unavailability",
        json={"unavailable_from": "2025-06-10", "unavailable_until": "2025-06-12"},
        headers=auth_headers,
    )

    assert response.status_code == 502
    assert response.json()["error_code"] == "ERR_CALENDAR_UNAVAILABLE"


@pytest.mark.asyncio
async def test_block_vehicle_calendar_error(client, auth_headers, vehicle, calendar_ready, mocker):
    mocker.patch.object(
        CalendarService, "create_unavailability_event", side_effect=CalendarError("quota exceeded")
    )

    response = await client.post(
        f"/v1/vehicles/{vehicle.id}/unavailability",
        json={"unavailable_from": "2025-06-10", "unavailable_until": "2025-06-12"},
        headers=auth_headers,
    )

    assert response.status_code == 502
    assert response.json()["details"]["reason"] == "quota exceeded"


@pytest.mark.asyncio
async def test_block_missing_vehicle_404(client, auth_headers):
    response = await client.post(
        "/v1/vehicles/999/unavailability",
        json={"unavailable_from": "2025-06-10", "unavailable_until": "2025-06-12"},
        headers=auth_headers,
    )
    assert response.status_code == 404


# TEST 3: Health
@pytest.mark.asyncio
async def test_health_is_public(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "ok"


@pytest.mark.asyncio
async def test_health_reports_lock_backend_down(client, redis_client_session, mocker):
    mocker.patch.object(redis_client_session, "ping", side_effect=ConnectionRefusedError("redis down"))

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["redis"] == "unavailable"


@pytest.mark.asyncio
async def test_correlation_id_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "panel-123"})

    assert response.headers["X-Correlation-ID"] == "panel-123"
    assert "X-Process-Time" in response.headers
