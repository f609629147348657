"""PostgreSQL appointment repository."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scheduling.core.exceptions import RepositoryError, SlotConflictError
from scheduling.models.appointments import appointments
from scheduling.repositories.base import AppointmentRepository
from scheduling.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentStatus,
)

EXCLUSION_VIOLATION = "23P01"


def is_exclusion_violation(exc: IntegrityError) -> bool:
    """Check the SQLSTATE carried by the driver error."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate == EXCLUSION_VIOLATION


def violated_constraint(exc: IntegrityError) -> str | None:
    """Name of the violated constraint, when the driver reports it."""
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
    return None


def _to_appointment(row: Any) -> Appointment:
    return Appointment.model_validate(dict(row._mapping))


class SqlAppointmentRepository(AppointmentRepository):
    """Repository backed by the ``appointments`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def _write(self, stmt: Any) -> Any:
        """Execute and commit a single write, translating storage errors."""
        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if is_exclusion_violation(e):
                raise SlotConflictError(violated_constraint(e)) from e
            raise RepositoryError("appointment write rejected by storage") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RepositoryError("appointment write failed") from e
        return row

    async def _read(self, stmt: Any) -> Any:
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryError("appointment read failed") from e

    async def get(self, tenant_id: UUID, appointment_id: UUID) -> Appointment | None:
        stmt = select(appointments).where(
            and_(
                appointments.c.id == appointment_id,
                appointments.c.tenant_id == tenant_id,
            )
        )
        result = await self._read(stmt)
        row = result.fetchone()
        return _to_appointment(row) if row else None

    async def insert(
        self,
        tenant_id: UUID,
        created_by: UUID,
        data: AppointmentCreate,
        *,
        now: datetime,
    ) -> Appointment:
        values = {
            "tenant_id": tenant_id,
            "patient_id": data.patient_id,
            "clinician_id": data.clinician_id,
            "starts_at": data.starts_at,
            "ends_at": data.ends_at,
            "status": AppointmentStatus.SCHEDULED.value,
            "location": data.location or None,
            "reason": data.reason or None,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }

        stmt = insert(appointments).values(**values).returning(appointments)
        row = await self._write(stmt)
        if row is None:
            raise RepositoryError("insert returned no row")
        return _to_appointment(row)

    async def update_range(
        self,
        tenant_id: UUID,
        appointment_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        *,
        now: datetime,
    ) -> Appointment | None:
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.tenant_id == tenant_id,
                    appointments.c.status == AppointmentStatus.SCHEDULED.value,
                    appointments.c.starts_at > now,
                )
            )
            .values(starts_at=starts_at, ends_at=ends_at, updated_at=now)
            .returning(appointments)
        )
        row = await self._write(stmt)
        return _to_appointment(row) if row else None

    async def cancel(
        self,
        tenant_id: UUID,
        appointment_id: UUID,
        *,
        now: datetime,
    ) -> Appointment | None:
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.tenant_id == tenant_id,
                    appointments.c.status == AppointmentStatus.SCHEDULED.value,
                    appointments.c.starts_at > now,
                )
            )
            .values(
                status=AppointmentStatus.CANCELED.value,
                canceled_at=now,
                updated_at=now,
            )
            .returning(appointments)
        )
        row = await self._write(stmt)
        return _to_appointment(row) if row else None

    async def search(
        self,
        tenant_id: UUID,
        filters: AppointmentFilters,
    ) -> tuple[list[Appointment], int]:
        # Build where conditions
        conditions = [appointments.c.tenant_id == tenant_id]

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.clinician_id:
            conditions.append(appointments.c.clinician_id == filters.clinician_id)

        if filters.date_from:
            conditions.append(appointments.c.starts_at >= filters.date_from)

        if filters.date_to:
            conditions.append(appointments.c.starts_at <= filters.date_to)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total_result = await self._read(count_stmt)
        total = total_result.scalar() or 0

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.starts_at.desc(), appointments.c.id)
            .limit(filters.page_size)
            .offset(filters.offset)
        )
        result = await self._read(stmt)
        items = [_to_appointment(row) for row in result.fetchall()]
        return items, total

    async def find_overlapping(
        self,
        tenant_id: UUID,
        clinician_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_id: UUID | None = None,
    ) -> list[Appointment]:
        conditions = [
            appointments.c.tenant_id == tenant_id,
            appointments.c.clinician_id == clinician_id,
            appointments.c.status == AppointmentStatus.SCHEDULED.value,
            appointments.c.starts_at < ends_at,
            appointments.c.ends_at > starts_at,
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        result = await self._read(select(appointments).where(and_(*conditions)))
        return [_to_appointment(row) for row in result.fetchall()]
