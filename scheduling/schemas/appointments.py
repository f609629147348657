"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CANCELED = "canceled"


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment."""

    patient_id: UUID
    clinician_id: UUID
    starts_at: AwareDatetime
    ends_at: AwareDatetime
    location: str | None = Field(None, max_length=500)
    reason: str | None = Field(None, max_length=1000)


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new range."""

    starts_at: AwareDatetime
    ends_at: AwareDatetime


class Appointment(BaseModel):
    """Stored appointment."""

    id: UUID
    tenant_id: UUID
    patient_id: UUID
    clinician_id: UUID
    starts_at: datetime
    ends_at: datetime
    status: AppointmentStatus
    location: str | None = None
    reason: str | None = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    canceled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_canceled(self) -> bool:
        return self.status == AppointmentStatus.CANCELED


class AppointmentResponse(Appointment):
    """Schema for appointment response."""


class AppointmentCreated(BaseModel):
    """Schema for the result of a successful creation."""

    id: UUID


class OperationResult(BaseModel):
    """Schema for mutations that return no payload."""

    ok: bool = True


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """
    Schema for appointment filtering.

    Both date bounds are inclusive and compare against ``starts_at``.
    """

    patient_id: UUID | None = None
    clinician_id: UUID | None = None
    date_from: AwareDatetime | None = None
    date_to: AwareDatetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size
