"""In-process appointment repository."""

import asyncio
from datetime import datetime
from uuid import UUID, uuid4

from scheduling.core.clock import overlaps
from scheduling.core.exceptions import SlotConflictError
from scheduling.repositories.base import AppointmentRepository
from scheduling.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentStatus,
)

OVERLAP_CONSTRAINT = "memory_no_overlap_per_clinician"


class InMemoryAppointmentRepository(AppointmentRepository):
    """
    Repository holding appointments in a dict.

    Writes run inside one lock so that the overlap check and the write are a
    single atomic step, the same guarantee the PostgreSQL exclusion
    constraint gives. Meant for local development and tests; state is lost
    with the process.
    """

    def __init__(self) -> None:
        self._rows: dict[UUID, Appointment] = {}
        self._lock = asyncio.Lock()

    def _conflicts(
        self,
        tenant_id: UUID,
        clinician_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_id: UUID | None,
    ) -> list[Appointment]:
        return [
            row
            for row in self._rows.values()
            if row.tenant_id == tenant_id
            and row.clinician_id == clinician_id
            and row.status == AppointmentStatus.SCHEDULED
            and row.id != exclude_id
            and overlaps(row.starts_at, row.ends_at, starts_at, ends_at)
        ]

    def _writable(self, tenant_id: UUID, appointment_id: UUID, now: datetime) -> Appointment | None:
        row = self._rows.get(appointment_id)
        if row is None or row.tenant_id != tenant_id:
            return None
        if row.status != AppointmentStatus.SCHEDULED or row.starts_at <= now:
            return None
        return row

    async def get(self, tenant_id: UUID, appointment_id: UUID) -> Appointment | None:
        row = self._rows.get(appointment_id)
        if row is None or row.tenant_id != tenant_id:
            return None
        return row

    async def insert(
        self,
        tenant_id: UUID,
        created_by: UUID,
        data: AppointmentCreate,
        *,
        now: datetime,
    ) -> Appointment:
        async with self._lock:
            if self._conflicts(tenant_id, data.clinician_id, data.starts_at, data.ends_at, None):
                raise SlotConflictError(OVERLAP_CONSTRAINT)

            row = Appointment(
                id=uuid4(),
                tenant_id=tenant_id,
                patient_id=data.patient_id,
                clinician_id=data.clinician_id,
                starts_at=data.starts_at,
                ends_at=data.ends_at,
                status=AppointmentStatus.SCHEDULED,
                location=data.location or None,
                reason=data.reason or None,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            self._rows[row.id] = row
            return row

    async def update_range(
        self,
        tenant_id: UUID,
        appointment_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        *,
        now: datetime,
    ) -> Appointment | None:
        async with self._lock:
            row = self._writable(tenant_id, appointment_id, now)
            if row is None:
                return None

            if self._conflicts(tenant_id, row.clinician_id, starts_at, ends_at, row.id):
                raise SlotConflictError(OVERLAP_CONSTRAINT)

            updated = row.model_copy(
                update={"starts_at": starts_at, "ends_at": ends_at, "updated_at": now}
            )
            self._rows[row.id] = updated
            return updated

    async def cancel(
        self,
        tenant_id: UUID,
        appointment_id: UUID,
        *,
        now: datetime,
    ) -> Appointment | None:
        async with self._lock:
            row = self._writable(tenant_id, appointment_id, now)
            if row is None:
                return None

            updated = row.model_copy(
                update={
                    "status": AppointmentStatus.CANCELED,
                    "canceled_at": now,
                    "updated_at": now,
                }
            )
            self._rows[row.id] = updated
            return updated

    async def search(
        self,
        tenant_id: UUID,
        filters: AppointmentFilters,
    ) -> tuple[list[Appointment], int]:
        matches = [
            row
            for row in self._rows.values()
            if row.tenant_id == tenant_id
            and (filters.patient_id is None or row.patient_id == filters.patient_id)
            and (filters.clinician_id is None or row.clinician_id == filters.clinician_id)
            and (filters.date_from is None or row.starts_at >= filters.date_from)
            and (filters.date_to is None or row.starts_at <= filters.date_to)
        ]
        # Descending start, ties broken by id like the SQL ordering
        matches.sort(key=lambda row: str(row.id))
        matches.sort(key=lambda row: row.starts_at, reverse=True)
        page = matches[filters.offset : filters.offset + filters.page_size]
        return page, len(matches)

    async def find_overlapping(
        self,
        tenant_id: UUID,
        clinician_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_id: UUID | None = None,
    ) -> list[Appointment]:
        return self._conflicts(tenant_id, clinician_id, starts_at, ends_at, exclude_id)
