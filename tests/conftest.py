import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

# Load environment variables from .env file
load_dotenv()

# Tests never touch a real database
os.environ["STORAGE_BACKEND"] = "memory"

from scheduling.core.clock import FixedClock
from scheduling.core.security import TenantContext, create_access_token
from scheduling.dependencies import get_scheduling_service
from scheduling.main import app
from scheduling.repositories.memory import InMemoryAppointmentRepository
from scheduling.schemas.appointments import AppointmentCreate
from scheduling.services.appointment_service import SchedulingService
from scheduling.services.audit_service import AuditEmitter, InMemoryAuditSink

# The day before the scenario appointments
NOW = datetime(2025, 1, 9, 12, 0, tzinfo=UTC)


def at(hour: int, minute: int = 0, day: int = 10) -> datetime:
    """Instant on January ``day`` 2025, UTC."""
    return datetime(2025, 1, day, hour, minute, tzinfo=UTC)


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to NOW."""
    return FixedClock(NOW)


@pytest.fixture
def repository() -> InMemoryAppointmentRepository:
    """Empty in-memory appointment store."""
    return InMemoryAppointmentRepository()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    """Audit sink that records events in a list."""
    return InMemoryAuditSink()


@pytest.fixture
def service(
    repository: InMemoryAppointmentRepository,
    audit_sink: InMemoryAuditSink,
    clock: FixedClock,
) -> SchedulingService:
    """Scheduling service over in-memory collaborators."""
    return SchedulingService(repository, AuditEmitter(audit_sink, timeout_seconds=1.0), clock=clock)


@pytest.fixture
def tenant() -> TenantContext:
    """Primary tenant and actor."""
    return TenantContext(tenant_id=uuid4(), actor_id=uuid4())


@pytest.fixture
def other_tenant() -> TenantContext:
    """A second, unrelated tenant."""
    return TenantContext(tenant_id=uuid4(), actor_id=uuid4())


@pytest.fixture
def clinician_id() -> UUID:
    return uuid4()


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_appointment(
    patient_id: UUID,
    clinician_id: UUID,
) -> Callable[..., AppointmentCreate]:
    """Factory for creation payloads, defaulting to the shared patient and clinician."""

    def _make(
        starts_at: datetime,
        ends_at: datetime,
        *,
        clinician: UUID | None = None,
        patient: UUID | None = None,
        **extra,
    ) -> AppointmentCreate:
        return AppointmentCreate(
            patient_id=patient or patient_id,
            clinician_id=clinician or clinician_id,
            starts_at=starts_at,
            ends_at=ends_at,
            **extra,
        )

    return _make


def auth_headers_for(ctx: TenantContext) -> dict:
    """Bearer headers carrying the context's tenant and actor."""
    token = create_access_token(ctx.actor_id, ctx.tenant_id, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(tenant: TenantContext) -> dict:
    """Authentication headers for the primary tenant."""
    return auth_headers_for(tenant)


@pytest_asyncio.fixture
async def client(service: SchedulingService) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client wired to the in-memory service."""

    async def override_service() -> SchedulingService:
        return service

    app.dependency_overrides[get_scheduling_service] = override_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_appointment_data(patient_id: UUID, clinician_id: UUID) -> dict:
    """Sample creation payload for 2025-01-10 09:00-09:30 UTC."""
    return {
        "patient_id": str(patient_id),
        "clinician_id": str(clinician_id),
        "starts_at": "2025-01-10T09:00:00Z",
        "ends_at": "2025-01-10T09:30:00Z",
        "location": "Room 4",
        "reason": "Follow-up",
    }
