"""
Admissions Shared Helpers

Clock, date parsing/formatting and display labels shared by the lifecycle,
scheduling, notification and job modules.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from app.modules.admissions.models import ApplicationStatus

STATUS_LABELS: dict[ApplicationStatus, str] = {
    ApplicationStatus.SUBMITTED: "Submitted",
    ApplicationStatus.SCHEDULED: "Exam Scheduled",
    ApplicationStatus.EXAM_TAKEN: "Exam Taken",
    ApplicationStatus.APPROVED: "Approved",
    ApplicationStatus.REJECTED: "Rejected",
}

STATUS_DESCRIPTIONS: dict[ApplicationStatus, str] = {
    ApplicationStatus.SUBMITTED: (
        "Your application has been received. We will notify you of the exam schedule shortly."
    ),
    ApplicationStatus.SCHEDULED: (
        "Your entrance exam has been scheduled. Check your email for the date and time."
    ),
    ApplicationStatus.EXAM_TAKEN: "Your exam has been recorded. Results are being reviewed.",
    ApplicationStatus.APPROVED: "Congratulations! Your application has been approved.",
    ApplicationStatus.REJECTED: (
        "Unfortunately, your application was not approved. Please contact the admission office."
    ),
}


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def parse_exam_datetime(value: datetime | str, zone: ZoneInfo) -> datetime:
    """
    Parse an exam date-time into an aware UTC datetime.

    Strings are read as ISO-8601 (a trailing "Z" is accepted). Values
    without an offset are interpreted in `zone`, the admission office's
    local time.

    Raises:
        ValueError: If the value is not a valid point in time
    """
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Exam date-time is empty")
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    elif isinstance(value, datetime):
        parsed = value
    else:
        raise ValueError(f"Unsupported exam date-time value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed.astimezone(UTC)


def format_exam_datetime(value: datetime, zone: ZoneInfo) -> str:
    """Render an exam time for applicants, e.g. 'Monday, March 10, 2025 at 5:00 PM (PST)'."""
    local = value.astimezone(zone)
    hour = local.strftime("%I").lstrip("0") or "12"
    return (
        f"{local.strftime('%A, %B')} {local.day}, {local.year} at "
        f"{hour}:{local.strftime('%M %p')} ({local.tzname()})"
    )


def isoformat_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
