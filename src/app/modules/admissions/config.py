"""
Admissions Configuration

Explicit configuration for the admissions core. An instance is built once
from the process settings and passed to each component's constructor.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.config import Settings
from app.modules.admissions.models import ApplicationStatus, DocumentType

IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

DOCUMENT_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
    | IMAGE_CONTENT_TYPES
)

DEFAULT_CONTENT_TYPES: dict[str, frozenset[str]] = {
    DocumentType.PICTURE_2X2.value: IMAGE_CONTENT_TYPES,
    DocumentType.GOOD_MORAL_CERTIFICATE.value: DOCUMENT_CONTENT_TYPES,
    DocumentType.FORM_138.value: DOCUMENT_CONTENT_TYPES,
    DocumentType.GRADUATION_CERTIFICATE.value: DOCUMENT_CONTENT_TYPES,
}


class AdmissionsConfig(BaseModel):
    """Options recognized by the admissions core."""

    model_config = ConfigDict(frozen=True)

    max_upload_bytes: int = Field(5 * 1024 * 1024, gt=0)
    allowed_document_types: frozenset[str] = frozenset(DEFAULT_CONTENT_TYPES)
    document_content_types: dict[str, frozenset[str]] = Field(
        default_factory=lambda: dict(DEFAULT_CONTENT_TYPES)
    )
    terminal_statuses: frozenset[ApplicationStatus] = frozenset(
        {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    )
    time_zone: str = "Asia/Manila"
    purge_replaced_documents: bool = False
    default_exam_lead_days: int = Field(7, ge=0)
    default_exam_hour: int = Field(9, ge=0, le=23)
    exam_taken_grace_hours: int = Field(3, ge=0)

    @field_validator("time_zone")
    @classmethod
    def _known_time_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {value}") from e
        return value

    @model_validator(mode="after")
    def _content_types_cover_allowed_types(self) -> "AdmissionsConfig":
        missing = self.allowed_document_types - set(self.document_content_types)
        if missing:
            raise ValueError(f"No content types configured for document types: {sorted(missing)}")
        return self

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    def content_types_for(self, document_type: str) -> frozenset[str]:
        return self.document_content_types.get(document_type, frozenset())


def config_from_settings(settings: Settings) -> AdmissionsConfig:
    """Build the admissions configuration from process settings."""
    return AdmissionsConfig(
        max_upload_bytes=settings.admissions_max_upload_bytes,
        allowed_document_types=frozenset(settings.admissions_allowed_document_types),
        terminal_statuses=frozenset(
            ApplicationStatus(status) for status in settings.admissions_terminal_statuses
        ),
        time_zone=settings.admissions_time_zone,
        purge_replaced_documents=settings.admissions_purge_replaced_documents,
        default_exam_lead_days=settings.admissions_default_exam_lead_days,
        default_exam_hour=settings.admissions_default_exam_hour,
        exam_taken_grace_hours=settings.admissions_exam_taken_grace_hours,
    )
