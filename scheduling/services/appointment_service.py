"""Appointment scheduling service for business logic."""

import asyncio
from collections.abc import Awaitable
from datetime import datetime
from typing import TypeVar
from uuid import UUID

import structlog

from scheduling.core.clock import Clock, SystemClock, has_started, is_valid_range
from scheduling.core.exceptions import (
    AlreadyCanceledError,
    AppointmentNotFoundError,
    InternalSchedulingError,
    InvalidRangeError,
    OutcomeUnknownError,
    OverlapError,
    PastAppointmentError,
    RepositoryError,
    SlotConflictError,
)
from scheduling.core.security import TenantContext
from scheduling.repositories.base import AppointmentRepository
from scheduling.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
)
from scheduling.schemas.audit import AuditAction, AuditEvent
from scheduling.services.audit_service import AuditEmitter

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def run_with_deadline(operation: Awaitable[T], seconds: float) -> T:
    """
    Await an operation under a deadline.

    A write that times out may already have been applied, so expiry is
    reported as an unknown outcome rather than a failure.

    Raises:
        OutcomeUnknownError: If the deadline expires first
    """
    try:
        return await asyncio.wait_for(operation, timeout=seconds)
    except TimeoutError as e:
        logger.warning("operation_deadline_exceeded", timeout_seconds=seconds)
        raise OutcomeUnknownError() from e


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class SchedulingService:
    """
    Creates, reschedules, cancels and lists appointments for one tenant at a time.

    Every call takes an explicit ``TenantContext``; nothing is read from
    ambient request state. The no-overlap rule is enforced by the repository
    at write time; the service only maps its conflict signal to ``OverlapError``.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        audit: AuditEmitter,
        clock: Clock | None = None,
        overlap_precheck: bool = True,
    ):
        """Initialize service with its collaborators."""
        self.repository = repository
        self.audit = audit
        self.clock = clock or SystemClock()
        self.overlap_precheck = overlap_precheck

    async def _precheck_overlap(
        self,
        ctx: TenantContext,
        clinician_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_id: UUID | None = None,
    ) -> None:
        """Fail fast on a visible conflict. Not a substitute for the storage constraint."""
        if not self.overlap_precheck:
            return
        try:
            clashes = await self.repository.find_overlapping(
                ctx.tenant_id, clinician_id, starts_at, ends_at, exclude_id=exclude_id
            )
        except RepositoryError as e:
            raise self._internal("overlap_precheck", ctx, e) from e
        if clashes:
            logger.info(
                "appointment_overlap_precheck",
                tenant_id=str(ctx.tenant_id),
                clinician_id=str(clinician_id),
                conflicts=len(clashes),
            )
            raise OverlapError()

    def _internal(
        self,
        operation: str,
        ctx: TenantContext,
        error: Exception,
        appointment_id: UUID | None = None,
    ) -> InternalSchedulingError:
        """Log a storage failure with full context and return the generic error."""
        logger.error(
            "appointment_storage_failure",
            operation=operation,
            tenant_id=str(ctx.tenant_id),
            actor_id=str(ctx.actor_id),
            appointment_id=str(appointment_id) if appointment_id else None,
            error=str(error),
            exc_info=error,
        )
        return InternalSchedulingError()

    async def _load(self, ctx: TenantContext, appointment_id: UUID, operation: str) -> Appointment:
        try:
            appointment = await self.repository.get(ctx.tenant_id, appointment_id)
        except RepositoryError as e:
            raise self._internal(operation, ctx, e, appointment_id) from e
        if appointment is None:
            raise AppointmentNotFoundError()
        return appointment

    def _check_reschedulable(self, appointment: Appointment, now: datetime) -> None:
        if has_started(appointment.starts_at, now):
            raise PastAppointmentError()
        if appointment.is_canceled:
            raise AppointmentNotFoundError()

    def _check_cancelable(self, appointment: Appointment, now: datetime) -> None:
        if appointment.is_canceled:
            raise AlreadyCanceledError()
        if has_started(appointment.starts_at, now):
            raise PastAppointmentError()

    async def create_appointment(self, ctx: TenantContext, data: AppointmentCreate) -> UUID:
        """
        Create a scheduled appointment.

        Start times in the past are accepted so that visits can be backfilled.

        Args:
            ctx: Tenant and actor
            data: Appointment creation data

        Returns:
            ID of the new appointment

        Raises:
            InvalidRangeError: If ``ends_at`` is not after ``starts_at``
            OverlapError: If the clinician already has a scheduled appointment in range
            InternalSchedulingError: If storage fails
        """
        if not is_valid_range(data.starts_at, data.ends_at):
            raise InvalidRangeError()

        await self._precheck_overlap(ctx, data.clinician_id, data.starts_at, data.ends_at)

        now = self.clock.now()
        try:
            appointment = await self.repository.insert(
                ctx.tenant_id, ctx.actor_id, data, now=now
            )
        except SlotConflictError as e:
            logger.info(
                "appointment_overlap_rejected",
                tenant_id=str(ctx.tenant_id),
                clinician_id=str(data.clinician_id),
                constraint=e.constraint,
            )
            raise OverlapError() from e
        except RepositoryError as e:
            raise self._internal("create", ctx, e) from e

        logger.info(
            "appointment_created",
            tenant_id=str(ctx.tenant_id),
            actor_id=str(ctx.actor_id),
            appointment_id=str(appointment.id),
        )

        await self.audit.emit(
            AuditEvent(
                tenant_id=ctx.tenant_id,
                actor_id=ctx.actor_id,
                action=AuditAction.CREATE,
                subject_id=appointment.id,
                occurred_at=now,
                meta={
                    "patient_id": str(appointment.patient_id),
                    "clinician_id": str(appointment.clinician_id),
                    "starts_at": _iso(appointment.starts_at),
                    "ends_at": _iso(appointment.ends_at),
                    "location": appointment.location,
                    "reason": appointment.reason,
                },
            )
        )

        return appointment.id

    async def reschedule_appointment(
        self,
        ctx: TenantContext,
        appointment_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
    ) -> None:
        """
        Move an appointment to a new range.

        Checks run in order: existence in tenant, range, not started, not
        canceled. They are evaluated again inside the write.

        Raises:
            AppointmentNotFoundError: If missing, in another tenant, or canceled
            InvalidRangeError: If ``ends_at`` is not after ``starts_at``
            PastAppointmentError: If the current appointment has already started
            OverlapError: If the new range overlaps another scheduled appointment
            InternalSchedulingError: If storage fails
        """
        current = await self._load(ctx, appointment_id, "reschedule")
        if not is_valid_range(starts_at, ends_at):
            raise InvalidRangeError()
        now = self.clock.now()
        self._check_reschedulable(current, now)

        await self._precheck_overlap(
            ctx, current.clinician_id, starts_at, ends_at, exclude_id=current.id
        )

        try:
            updated = await self.repository.update_range(
                ctx.tenant_id, appointment_id, starts_at, ends_at, now=now
            )
        except SlotConflictError as e:
            logger.info(
                "appointment_overlap_rejected",
                tenant_id=str(ctx.tenant_id),
                appointment_id=str(appointment_id),
                constraint=e.constraint,
            )
            raise OverlapError() from e
        except RepositoryError as e:
            raise self._internal("reschedule", ctx, e, appointment_id) from e

        if updated is None:
            # A concurrent writer got there first; classify what changed
            latest = await self._load(ctx, appointment_id, "reschedule")
            self._check_reschedulable(latest, now)
            logger.error(
                "appointment_write_precondition_unexplained",
                operation="reschedule",
                appointment_id=str(appointment_id),
            )
            raise InternalSchedulingError()

        logger.info(
            "appointment_rescheduled",
            tenant_id=str(ctx.tenant_id),
            actor_id=str(ctx.actor_id),
            appointment_id=str(appointment_id),
        )

        await self.audit.emit(
            AuditEvent(
                tenant_id=ctx.tenant_id,
                actor_id=ctx.actor_id,
                action=AuditAction.UPDATE,
                subject_id=appointment_id,
                occurred_at=now,
                meta={
                    "old_starts_at": _iso(current.starts_at),
                    "old_ends_at": _iso(current.ends_at),
                    "new_starts_at": _iso(updated.starts_at),
                    "new_ends_at": _iso(updated.ends_at),
                    "rescheduled_at": _iso(now),
                },
            )
        )

    async def cancel_appointment(self, ctx: TenantContext, appointment_id: UUID) -> None:
        """
        Cancel an appointment. Cancellation is terminal.

        Raises:
            AppointmentNotFoundError: If missing or in another tenant
            AlreadyCanceledError: If it was already canceled; nothing changes
            PastAppointmentError: If it has already started
            InternalSchedulingError: If storage fails
        """
        current = await self._load(ctx, appointment_id, "cancel")
        now = self.clock.now()
        self._check_cancelable(current, now)

        try:
            canceled = await self.repository.cancel(ctx.tenant_id, appointment_id, now=now)
        except RepositoryError as e:
            raise self._internal("cancel", ctx, e, appointment_id) from e

        if canceled is None:
            latest = await self._load(ctx, appointment_id, "cancel")
            self._check_cancelable(latest, now)
            logger.error(
                "appointment_write_precondition_unexplained",
                operation="cancel",
                appointment_id=str(appointment_id),
            )
            raise InternalSchedulingError()

        logger.info(
            "appointment_canceled",
            tenant_id=str(ctx.tenant_id),
            actor_id=str(ctx.actor_id),
            appointment_id=str(appointment_id),
        )

        await self.audit.emit(
            AuditEvent(
                tenant_id=ctx.tenant_id,
                actor_id=ctx.actor_id,
                action=AuditAction.CANCEL,
                subject_id=appointment_id,
                occurred_at=now,
                meta={
                    "previous_status": current.status.value,
                    "canceled_at": _iso(now),
                },
            )
        )

    async def get_appointment(
        self,
        ctx: TenantContext,
        appointment_id: UUID,
    ) -> AppointmentResponse:
        """
        Get appointment by ID within the caller's tenant.

        Raises:
            AppointmentNotFoundError: If appointment not found in this tenant
        """
        appointment = await self._load(ctx, appointment_id, "get")
        return AppointmentResponse.model_validate(appointment.model_dump())

    async def list_appointments(
        self,
        ctx: TenantContext,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            ctx: Tenant and actor
            filters: Filter and pagination parameters

        Returns:
            Page of appointments, newest start first, with the total count
        """
        try:
            rows, total = await self.repository.search(ctx.tenant_id, filters)
        except RepositoryError as e:
            raise self._internal("list", ctx, e) from e

        items = [AppointmentResponse.model_validate(row.model_dump()) for row in rows]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )
