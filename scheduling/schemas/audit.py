"""Audit event schemas."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    """Mutations recorded in the audit log."""

    CREATE = "create"
    UPDATE = "update"
    CANCEL = "cancel"


class AuditEvent(BaseModel):
    """Immutable record of who did what to which appointment, and when."""

    model_config = {"frozen": True}

    id: UUID = Field(default_factory=uuid4)
    tenant_id: UUID
    actor_id: UUID
    action: AuditAction
    subject_type: str = "appointment"
    subject_id: UUID
    occurred_at: datetime
    meta: dict[str, Any] = Field(default_factory=dict)
