"""Audit log table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

from scheduling.models.appointments import metadata

# Append-only: rows are inserted, never updated or deleted
audit_logs = Table(
    "audit_logs",
    metadata,
    Column(
        "id",
        UUID,
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column("tenant_id", UUID, nullable=False),
    Column("actor_id", UUID, nullable=False),
    Column("action", Text, nullable=False),
    Column("subject_type", Text, nullable=False, server_default="appointment"),
    Column("subject_id", UUID, nullable=False),
    Column("occurred_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("meta", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    CheckConstraint(
        "action IN ('create', 'update', 'cancel')",
        name="audit_logs_action_check",
    ),
    Index("ix_audit_logs_tenant_subject_occurred", "tenant_id", "subject_id", "occurred_at"),
)
