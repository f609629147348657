"""Appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from scheduling.config import settings
from scheduling.core.clock import parse_filter_bound
from scheduling.core.exceptions import ValidationException
from scheduling.dependencies import CurrentTenant, Scheduler
from scheduling.schemas.appointments import (
    AppointmentCreate,
    AppointmentCreated,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    OperationResult,
)
from scheduling.services.appointment_service import run_with_deadline

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentCreated,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    ctx: CurrentTenant,
    service: Scheduler,
) -> AppointmentCreated:
    """
    Create a scheduled appointment in the caller's tenant.

    Args:
        data: Appointment creation data
        ctx: Tenant and actor from the token
        service: Scheduling service

    Returns:
        ID of the created appointment
    """
    appointment_id = await run_with_deadline(
        service.create_appointment(ctx, data),
        settings.request_timeout_seconds,
    )
    return AppointmentCreated(id=appointment_id)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    ctx: CurrentTenant,
    service: Scheduler,
    patient_id: UUID | None = Query(None),
    clinician_id: UUID | None = Query(None),
    date_from: str | None = Query(None, description="ISO date or timezone-aware datetime"),
    date_to: str | None = Query(None, description="ISO date or timezone-aware datetime"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
) -> AppointmentListResponse:
    """
    List appointments in the caller's tenant, newest start first.

    Date bounds are inclusive and apply to the start time. A date without a
    time covers that whole day.

    Args:
        ctx: Tenant and actor from the token
        service: Scheduling service
        patient_id: Filter by patient ID
        clinician_id: Filter by clinician ID
        date_from: Earliest start
        date_to: Latest start
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    try:
        lower = parse_filter_bound(date_from, end=False) if date_from else None
        upper = parse_filter_bound(date_to, end=True) if date_to else None
    except ValueError:
        raise ValidationException("Date filters must be ISO dates or timezone-aware datetimes")

    filters = AppointmentFilters(
        patient_id=patient_id,
        clinician_id=clinician_id,
        date_from=lower,
        date_to=upper,
        page=page,
        page_size=page_size,
    )

    return await run_with_deadline(
        service.list_appointments(ctx, filters),
        settings.request_timeout_seconds,
    )


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    ctx: CurrentTenant,
    service: Scheduler,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        AppointmentNotFoundError: If it does not exist in the caller's tenant
    """
    return await run_with_deadline(
        service.get_appointment(ctx, appointment_id),
        settings.request_timeout_seconds,
    )


@router.post(
    "/{appointment_id}/reschedule",
    response_model=OperationResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    ctx: CurrentTenant,
    service: Scheduler,
) -> OperationResult:
    """
    Move an appointment to a new time range.

    Args:
        appointment_id: Appointment ID
        data: New range
        ctx: Tenant and actor from the token
        service: Scheduling service

    Returns:
        Confirmation
    """
    await run_with_deadline(
        service.reschedule_appointment(ctx, appointment_id, data.starts_at, data.ends_at),
        settings.request_timeout_seconds,
    )
    return OperationResult()


@router.post(
    "/{appointment_id}/cancel",
    response_model=OperationResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    ctx: CurrentTenant,
    service: Scheduler,
) -> OperationResult:
    """
    Cancel an appointment. Canceled appointments cannot be restored.

    Args:
        appointment_id: Appointment ID
        ctx: Tenant and actor from the token
        service: Scheduling service

    Returns:
        Confirmation
    """
    await run_with_deadline(
        service.cancel_appointment(ctx, appointment_id),
        settings.request_timeout_seconds,
    )
    return OperationResult()
