"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    Index,
    MetaData,
    Table,
    Text,
    event,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

# Metadata for all tables
metadata = MetaData()

OVERLAP_CONSTRAINT = "appointments_no_overlap_per_clinician"

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID,
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # Ownership / references
    Column("tenant_id", UUID, nullable=False),
    Column("patient_id", UUID, nullable=False),
    Column("clinician_id", UUID, nullable=False),
    # Time range, half-open [starts_at, ends_at)
    Column("starts_at", TIMESTAMP(timezone=True), nullable=False),
    Column("ends_at", TIMESTAMP(timezone=True), nullable=False),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default="scheduled",
    ),
    # Free-text metadata
    Column("location", Text, nullable=True),
    Column("reason", Text, nullable=True),
    # Audit fields
    Column("created_by", UUID, nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("canceled_at", TIMESTAMP(timezone=True), nullable=True),
    # Constraints
    CheckConstraint("starts_at < ends_at", name="appointments_range_check"),
    CheckConstraint(
        "status IN ('scheduled', 'canceled')",
        name="appointments_status_check",
    ),
    Index("ix_appointments_tenant_starts_at", "tenant_id", "starts_at"),
    Index("ix_appointments_tenant_patient", "tenant_id", "patient_id"),
    Index("ix_appointments_tenant_clinician", "tenant_id", "clinician_id"),
)

# Scheduled appointments of one clinician in one tenant never overlap.
# Requires the btree_gist extension.
event.listen(
    appointments,
    "after_create",
    DDL(
        f"ALTER TABLE appointments ADD CONSTRAINT {OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist ("
        "tenant_id WITH =, "
        "clinician_id WITH =, "
        "tstzrange(starts_at, ends_at, '[)') WITH &&"
        ") WHERE (status = 'scheduled')"
    ).execute_if(dialect="postgresql"),
)
