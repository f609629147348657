"""Appointment repository contract."""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from scheduling.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
)


class AppointmentRepository(ABC):
    """
    Durable store of appointments.

    Every method is scoped by ``tenant_id``; there is no unscoped read.

    Implementations must reject, atomically and at write time, any insert or
    update that would leave two scheduled appointments of the same clinician
    in the same tenant with intersecting ``[starts_at, ends_at)`` ranges. The
    rejection is signalled by raising ``SlotConflictError``. Any other storage
    failure is raised as ``RepositoryError``.
    """

    @abstractmethod
    async def get(self, tenant_id: UUID, appointment_id: UUID) -> Appointment | None:
        """Return the appointment if it exists in this tenant."""

    @abstractmethod
    async def insert(
        self,
        tenant_id: UUID,
        created_by: UUID,
        data: AppointmentCreate,
        *,
        now: datetime,
    ) -> Appointment:
        """
        Insert a scheduled appointment.

        Raises:
            SlotConflictError: If the range overlaps another scheduled appointment
        """

    @abstractmethod
    async def update_range(
        self,
        tenant_id: UUID,
        appointment_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        *,
        now: datetime,
    ) -> Appointment | None:
        """
        Move a scheduled appointment that has not started yet.

        The status and start-time preconditions are evaluated inside the same
        atomic write. The record being moved never conflicts with itself.

        Returns:
            Updated appointment, or None if the preconditions no longer hold

        Raises:
            SlotConflictError: If the new range overlaps another scheduled appointment
        """

    @abstractmethod
    async def cancel(
        self,
        tenant_id: UUID,
        appointment_id: UUID,
        *,
        now: datetime,
    ) -> Appointment | None:
        """
        Cancel a scheduled appointment that has not started yet.

        Returns:
            Canceled appointment, or None if the preconditions no longer hold
        """

    @abstractmethod
    async def search(
        self,
        tenant_id: UUID,
        filters: AppointmentFilters,
    ) -> tuple[list[Appointment], int]:
        """Return one page ordered by ``starts_at`` descending, and the total count."""

    @abstractmethod
    async def find_overlapping(
        self,
        tenant_id: UUID,
        clinician_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_id: UUID | None = None,
    ) -> list[Appointment]:
        """Return scheduled appointments of the clinician intersecting the range."""
