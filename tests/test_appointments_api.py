"""Tests for appointment endpoints."""

import asyncio
from uuid import uuid4

import pytest
from conftest import auth_headers_for
from httpx import AsyncClient
from jose import jwt

from scheduling.config import settings
from scheduling.dependencies import get_scheduling_service
from scheduling.main import app
from scheduling.repositories.memory import InMemoryAppointmentRepository
from scheduling.services.appointment_service import SchedulingService
from scheduling.services.audit_service import AuditEmitter, InMemoryAuditSink

BASE = "/api/v1/appointments/"


class StalledRepository(InMemoryAppointmentRepository):
    async def insert(self, *args, **kwargs):
        await asyncio.sleep(5)
        return await super().insert(*args, **kwargs)


async def create(client: AsyncClient, headers: dict, payload: dict) -> str:
    response = await client.post(BASE, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["id"]


@pytest.mark.asyncio
async def test_create_appointment(client, auth_headers, sample_appointment_data, audit_sink):
    response = await client.post(BASE, json=sample_appointment_data, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert set(body) == {"id"}
    assert [str(e.subject_id) for e in audit_sink.events] == [body["id"]]


@pytest.mark.asyncio
async def test_create_overlapping_appointment_conflicts(
    client, auth_headers, sample_appointment_data
):
    await create(client, auth_headers, sample_appointment_data)

    overlapping = {
        **sample_appointment_data,
        "patient_id": str(uuid4()),
        "starts_at": "2025-01-10T09:15:00Z",
        "ends_at": "2025-01-10T09:45:00Z",
    }
    response = await client.post(BASE, json=overlapping, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "overlap"


@pytest.mark.asyncio
async def test_back_to_back_appointments_are_allowed(
    client, auth_headers, sample_appointment_data
):
    await create(client, auth_headers, sample_appointment_data)

    adjacent = {
        **sample_appointment_data,
        "starts_at": "2025-01-10T09:30:00Z",
        "ends_at": "2025-01-10T10:00:00Z",
    }
    response = await client.post(BASE, json=adjacent, headers=auth_headers)

    assert response.status_code == 201


@pytest.mark.asyncio
async def test_create_with_inverted_range(client, auth_headers, sample_appointment_data):
    payload = {
        **sample_appointment_data,
        "starts_at": "2025-01-10T10:00:00Z",
        "ends_at": "2025-01-10T09:00:00Z",
    }

    response = await client.post(BASE, json=payload, headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["code"] == "invalid_range"


@pytest.mark.asyncio
async def test_create_with_naive_datetime(client, auth_headers, sample_appointment_data):
    payload = {**sample_appointment_data, "starts_at": "2025-01-10T09:00:00"}

    response = await client.post(BASE, json=payload, headers=auth_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert all(set(detail) == {"loc", "msg"} for detail in body["details"])


@pytest.mark.asyncio
async def test_requires_token(client, sample_appointment_data):
    response = await client.post(BASE, json=sample_appointment_data)

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_rejects_token_without_tenant(client):
    token = jwt.encode(
        {"sub": str(uuid4()), "type": "access"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    response = await client.get(BASE, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_appointment(client, auth_headers, sample_appointment_data, tenant):
    appointment_id = await create(client, auth_headers, sample_appointment_data)

    response = await client.get(f"{BASE}{appointment_id}", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "scheduled"
    assert body["tenant_id"] == str(tenant.tenant_id)
    assert body["created_by"] == str(tenant.actor_id)
    assert body["location"] == "Room 4"


@pytest.mark.asyncio
async def test_other_tenant_sees_not_found(
    client, auth_headers, sample_appointment_data, other_tenant
):
    appointment_id = await create(client, auth_headers, sample_appointment_data)
    foreign = auth_headers_for(other_tenant)

    for response in (
        await client.get(f"{BASE}{appointment_id}", headers=foreign),
        await client.post(f"{BASE}{appointment_id}/cancel", headers=foreign),
    ):
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    listed = await client.get(BASE, headers=foreign)
    assert listed.json()["total"] == 0


@pytest.mark.asyncio
async def test_reschedule_appointment(client, auth_headers, sample_appointment_data):
    appointment_id = await create(client, auth_headers, sample_appointment_data)

    response = await client.post(
        f"{BASE}{appointment_id}/reschedule",
        json={"starts_at": "2025-01-10T11:00:00Z", "ends_at": "2025-01-10T11:30:00Z"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    moved = (await client.get(f"{BASE}{appointment_id}", headers=auth_headers)).json()
    assert moved["starts_at"].startswith("2025-01-10T11:00:00")


@pytest.mark.asyncio
async def test_reschedule_into_taken_slot_conflicts(
    client, auth_headers, sample_appointment_data
):
    await create(client, auth_headers, sample_appointment_data)
    later = await create(
        client,
        auth_headers,
        {
            **sample_appointment_data,
            "starts_at": "2025-01-10T10:00:00Z",
            "ends_at": "2025-01-10T10:30:00Z",
        },
    )

    response = await client.post(
        f"{BASE}{later}/reschedule",
        json={"starts_at": "2025-01-10T09:20:00Z", "ends_at": "2025-01-10T09:50:00Z"},
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "overlap"


@pytest.mark.asyncio
async def test_cancel_twice(client, auth_headers, sample_appointment_data):
    appointment_id = await create(client, auth_headers, sample_appointment_data)

    first = await client.post(f"{BASE}{appointment_id}/cancel", headers=auth_headers)
    second = await client.post(f"{BASE}{appointment_id}/cancel", headers=auth_headers)

    assert first.status_code == 200
    assert first.json() == {"ok": True}
    assert second.status_code == 409
    assert second.json()["code"] == "already_canceled"


@pytest.mark.asyncio
async def test_canceled_slot_can_be_rebooked(client, auth_headers, sample_appointment_data):
    appointment_id = await create(client, auth_headers, sample_appointment_data)
    await client.post(f"{BASE}{appointment_id}/cancel", headers=auth_headers)

    response = await client.post(BASE, json=sample_appointment_data, headers=auth_headers)

    assert response.status_code == 201


@pytest.mark.asyncio
async def test_past_appointment_cannot_be_canceled(
    client, auth_headers, sample_appointment_data, clock
):
    appointment_id = await create(client, auth_headers, sample_appointment_data)
    clock.set(clock.now().replace(day=10, hour=9))

    response = await client.post(f"{BASE}{appointment_id}/cancel", headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "past_appointment"


@pytest.mark.asyncio
async def test_list_with_date_only_filters(client, auth_headers, sample_appointment_data):
    for day in ("09", "10", "11"):
        await create(
            client,
            auth_headers,
            {
                **sample_appointment_data,
                "starts_at": f"2025-01-{day}T23:00:00Z",
                "ends_at": f"2025-01-{day}T23:30:00Z",
            },
        )

    response = await client.get(
        BASE,
        params={"date_from": "2025-01-10", "date_to": "2025-01-10"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["starts_at"].startswith("2025-01-10T23:00:00")


@pytest.mark.asyncio
async def test_list_upper_bound_is_inclusive(client, auth_headers, sample_appointment_data):
    await create(client, auth_headers, sample_appointment_data)

    response = await client.get(
        BASE,
        params={"date_to": "2025-01-10T09:00:00Z"},
        headers=auth_headers,
    )

    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_list_pagination_and_filters(
    client, auth_headers, sample_appointment_data, clinician_id
):
    for hour in (9, 10, 11):
        await create(
            client,
            auth_headers,
            {
                **sample_appointment_data,
                "starts_at": f"2025-01-10T{hour:02d}:00:00Z",
                "ends_at": f"2025-01-10T{hour:02d}:30:00Z",
            },
        )
    await create(client, auth_headers, {**sample_appointment_data, "clinician_id": str(uuid4())})

    response = await client.get(
        BASE,
        params={"clinician_id": str(clinician_id), "page": 2, "page_size": 2},
        headers=auth_headers,
    )

    body = response.json()
    assert body["total"] == 3
    assert body["page"] == 2
    assert body["page_size"] == 2
    assert [i["starts_at"][:19] for i in body["items"]] == ["2025-01-10T09:00:00"]


@pytest.mark.asyncio
async def test_list_rejects_unparseable_dates(client, auth_headers):
    for value in ("next tuesday", "2025-01-10T09:00:00"):
        response = await client.get(BASE, params={"date_from": value}, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_timeout_reports_unknown_outcome(
    client, auth_headers, sample_appointment_data, clock, monkeypatch
):
    stalled = SchedulingService(
        StalledRepository(), AuditEmitter(InMemoryAuditSink()), clock=clock
    )

    async def override_service() -> SchedulingService:
        return stalled

    app.dependency_overrides[get_scheduling_service] = override_service
    monkeypatch.setattr(settings, "request_timeout_seconds", 0.05)

    response = await client.post(BASE, json=sample_appointment_data, headers=auth_headers)

    assert response.status_code == 504
    assert response.json()["code"] == "outcome_unknown"


@pytest.mark.asyncio
async def test_health_and_request_id(client):
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"] == "req-123"

    detailed = (await client.get("/api/v1/health/detailed")).json()
    assert detailed["storage_backend"] == "memory"
    assert detailed["database"] == "not_used"


@pytest.mark.asyncio
async def test_list_accepts_configured_max_page_size(
    client, auth_headers, sample_appointment_data
):
    await create(client, auth_headers, sample_appointment_data)

    response = await client.get(
        BASE, params={"page_size": settings.max_page_size}, headers=auth_headers
    )
    too_large = await client.get(
        BASE, params={"page_size": settings.max_page_size + 1}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["page_size"] == settings.max_page_size
    assert response.json()["total"] == 1
    assert too_large.status_code == 422
    assert too_large.json()["code"] == "validation_error"
