"""
Admissions Models

Database model for student admission applications.
One row per application; uploaded documents and the status audit trail
are stored inline as JSONB so a single row lock covers every mutation.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class ApplicationStatus(str, enum.Enum):
    """Status of an admission application."""

    SUBMITTED = "submitted"
    SCHEDULED = "scheduled"
    EXAM_TAKEN = "exam_taken"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(str, enum.Enum):
    """Supporting documents an applicant can upload."""

    PICTURE_2X2 = "picture_2x2"
    GOOD_MORAL_CERTIFICATE = "good_moral_certificate"
    FORM_138 = "form_138"
    GRADUATION_CERTIFICATE = "graduation_certificate"


class AdmissionApplication(Base):
    """
    Student admission application.

    Profile fields are fixed at submission. `status` and `exam_schedule`
    change only through the lifecycle state machine and the exam scheduler.
    """

    __tablename__ = "admission_applications"

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Applicant profile
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_number: Mapped[str] = mapped_column(String(20), nullable=False)
    desired_program: Mapped[str] = mapped_column(String(200), nullable=False)
    year_level: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Lifecycle
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="admission_status"),
        nullable=False,
        default=ApplicationStatus.SUBMITTED,
    )
    exam_schedule: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Uploaded documents: {document_type: {uri, uploaded_at, size_bytes, content_type}}
    documents: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    # Audit trail: [{from_status, to_status, exam_schedule, changed_at, changed_by, reason}, ...]
    status_history: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    # Decision
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Notification bookkeeping
    exam_reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_notification: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_admission_applications_status", "status"),
        Index("ix_admission_applications_email", "email"),
        Index("ix_admission_applications_exam_schedule", "exam_schedule"),
    )
