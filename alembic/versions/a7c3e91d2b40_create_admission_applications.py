"""create admission_applications

Revision ID: a7c3e91d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the admission_status enum type
2. Creates the admission_applications table, with uploaded documents and
   the status audit trail stored inline as JSONB
3. Adds indexes for the admin dashboard filters and the exam jobs
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c3e91d2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLAlchemy stores Python enum member names
ADMISSION_STATUS_VALUES = ("SUBMITTED", "SCHEDULED", "EXAM_TAKEN", "APPROVED", "REJECTED")


def upgrade() -> None:
    """Create admission_applications table."""
    admission_status_enum = postgresql.ENUM(
        *ADMISSION_STATUS_VALUES,
        name="admission_status",
        create_type=False,  # Created explicitly with checkfirst below
    )
    admission_status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "admission_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        # Applicant profile
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("contact_number", sa.String(length=20), nullable=False),
        sa.Column("desired_program", sa.String(length=200), nullable=False),
        sa.Column("year_level", sa.String(length=50), nullable=True),
        # Lifecycle
        sa.Column("status", admission_status_enum, nullable=False),
        sa.Column("exam_schedule", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        # Documents and audit trail
        sa.Column(
            "documents",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "status_history",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        # Decision
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("decision_reason", sa.Text(), nullable=True),
        # Notification bookkeeping
        sa.Column("exam_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_notification", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        # Audit timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_admission_applications_status", "admission_applications", ["status"])
    op.create_index("ix_admission_applications_email", "admission_applications", ["email"])
    op.create_index(
        "ix_admission_applications_exam_schedule",
        "admission_applications",
        ["exam_schedule"],
    )


def downgrade() -> None:
    """Drop admission_applications table and its enum type."""
    op.drop_index("ix_admission_applications_exam_schedule", table_name="admission_applications")
    op.drop_index("ix_admission_applications_email", table_name="admission_applications")
    op.drop_index("ix_admission_applications_status", table_name="admission_applications")
    op.drop_table("admission_applications")

    postgresql.ENUM(name="admission_status").drop(op.get_bind(), checkfirst=True)
