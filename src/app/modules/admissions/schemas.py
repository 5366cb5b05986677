"""
Admissions Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# Re-use enums from models (they work with Pydantic too!)
from app.modules.admissions.models import ApplicationStatus

# ============================================
# Shared value objects
# ============================================


class DocumentDescriptor(BaseModel):
    """Reference to a stored document. The bytes live in the blob store."""

    uri: str = Field(..., description="Durable storage URI")
    uploaded_at: datetime = Field(..., description="When the document was attached")
    size_bytes: int = Field(..., ge=0, description="Stored size in bytes")
    content_type: str | None = Field(None, description="Declared MIME type")


class StatusHistoryEntry(BaseModel):
    """One committed status change."""

    from_status: ApplicationStatus
    to_status: ApplicationStatus
    exam_schedule: datetime | None = None
    changed_at: datetime
    changed_by: UUID | None = None
    reason: str | None = None


class DispatchResult(BaseModel):
    """Outcome of one notification attempt."""

    success: bool
    message_id: str | None = None
    error: str | None = None
    recipient: str
    attempted_at: datetime


# ============================================
# Applicant-facing schemas
# ============================================


class ApplicationCreate(BaseModel):
    """Admission application submitted by a prospective student."""

    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    contact_number: str = Field(..., min_length=7, max_length=20)
    desired_program: str = Field(..., min_length=1, max_length=200)
    year_level: str | None = Field(None, max_length=50)


class ApplicationSubmittedResponse(BaseModel):
    """Response after submitting an application."""

    id: UUID = Field(..., description="Application UUID")
    status: ApplicationStatus = Field(..., description="Initial status (submitted)")
    email: str = Field(..., description="Applicant email")
    submitted_at: datetime
    message: str = Field(
        default="Application submitted. We will notify you of the exam schedule shortly.",
    )


class DocumentUploadResponse(BaseModel):
    """Response after attaching a document."""

    application_id: UUID
    document_type: str
    document: DocumentDescriptor


class ApplicationStatusResponse(BaseModel):
    """Applicant-facing status view."""

    id: UUID
    full_name: str
    desired_program: str
    status: ApplicationStatus
    status_label: str
    status_description: str
    submitted_at: datetime
    exam_schedule: datetime | None = None
    documents: list[str] = Field(default_factory=list, description="Attached document types")


# ============================================
# Admin schemas
# ============================================


class ApplicationListItem(BaseModel):
    """Summary row for the admin dashboard."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    desired_program: str
    year_level: str | None = None
    status: ApplicationStatus
    exam_schedule: datetime | None = None
    submitted_at: datetime
    document_count: int = 0


class ApplicationListResponse(BaseModel):
    """Paginated list of applications."""

    applications: list[ApplicationListItem]
    total: int = Field(..., ge=0)
    skip: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)


class DashboardStats(BaseModel):
    """Aggregated counters for the admin dashboard."""

    submitted: int = Field(..., ge=0)
    scheduled: int = Field(..., ge=0)
    exam_taken: int = Field(..., ge=0)
    approved: int = Field(..., ge=0)
    rejected: int = Field(..., ge=0)
    exams_this_week: int = Field(..., ge=0, description="Scheduled exams in the next 7 days")
    total_this_month: int = Field(..., ge=0, description="Applications submitted this month")


class ApplicationDetailResponse(BaseModel):
    """Complete application details for admin review."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str
    contact_number: str
    desired_program: str
    year_level: str | None = None
    status: ApplicationStatus
    exam_schedule: datetime | None = None
    submitted_at: datetime
    documents: dict[str, DocumentDescriptor] = Field(default_factory=dict)
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)
    decided_at: datetime | None = None
    decided_by: UUID | None = None
    decision_reason: str | None = None
    exam_reminder_sent_at: datetime | None = None
    last_notification: DispatchResult | None = None


class ScheduleExamRequest(BaseModel):
    """Request body for scheduling or rescheduling an exam."""

    exam_datetime: str | None = Field(
        None,
        description=(
            "ISO-8601 date-time. Values without an offset are read in the configured "
            "time zone. Omit to use the default slot (7 days out at 09:00)."
        ),
        json_schema_extra={"example": "2026-11-02T09:00:00+08:00"},
    )


class ScheduleExamResponse(BaseModel):
    """Response after scheduling; notification outcome is reported, never fatal."""

    id: UUID
    status: ApplicationStatus
    exam_schedule: datetime
    notification: DispatchResult | None = None
    message: str = "Exam scheduled"


class TransitionRequest(BaseModel):
    """Request body for an administrative status change."""

    to_status: ApplicationStatus
    reason: str | None = Field(None, max_length=1000)


class TransitionResponse(BaseModel):
    """Response after a status change."""

    id: UUID
    status: ApplicationStatus
    exam_schedule: datetime | None = None
    message: str = "Status updated"
