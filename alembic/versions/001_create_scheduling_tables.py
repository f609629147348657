"""Create appointments and audit_logs tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')
    # Needed for "=" on uuid columns inside a gist exclusion constraint
    op.execute('CREATE EXTENSION IF NOT EXISTS "btree_gist"')

    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("tenant_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("clinician_id", postgresql.UUID(), nullable=False),
        sa.Column("starts_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ends_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.Text(), server_default="scheduled", nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("canceled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("starts_at < ends_at", name="appointments_range_check"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'canceled')",
            name="appointments_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.execute(
        """
        ALTER TABLE appointments
        ADD CONSTRAINT appointments_no_overlap_per_clinician
        EXCLUDE USING gist (
            tenant_id WITH =,
            clinician_id WITH =,
            tstzrange(starts_at, ends_at, '[)') WITH &&
        ) WHERE (status = 'scheduled')
        """
    )

    op.create_index("ix_appointments_tenant_starts_at", "appointments", ["tenant_id", "starts_at"])
    op.create_index("ix_appointments_tenant_patient", "appointments", ["tenant_id", "patient_id"])
    op.create_index(
        "ix_appointments_tenant_clinician", "appointments", ["tenant_id", "clinician_id"]
    )

    op.create_table(
        "audit_logs",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("tenant_id", postgresql.UUID(), nullable=False),
        sa.Column("actor_id", postgresql.UUID(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("subject_type", sa.Text(), server_default="appointment", nullable=False),
        sa.Column("subject_id", postgresql.UUID(), nullable=False),
        sa.Column(
            "occurred_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "meta",
            postgresql.JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "action IN ('create', 'update', 'cancel')",
            name="audit_logs_action_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_audit_logs_tenant_subject_occurred",
        "audit_logs",
        ["tenant_id", "subject_id", "occurred_at"],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_audit_logs_tenant_subject_occurred", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_appointments_tenant_clinician", table_name="appointments")
    op.drop_index("ix_appointments_tenant_patient", table_name="appointments")
    op.drop_index("ix_appointments_tenant_starts_at", table_name="appointments")
    op.drop_table("appointments")
