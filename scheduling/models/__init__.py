"""Database models."""

from scheduling.models.appointments import OVERLAP_CONSTRAINT, appointments, metadata
from scheduling.models.audit_logs import audit_logs

__all__ = [
    "OVERLAP_CONSTRAINT",
    "appointments",
    "audit_logs",
    "metadata",
]
