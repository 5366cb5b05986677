"""
Admissions Service Layer

Orchestrates the admissions core for the HTTP routers and background jobs.

This module implements:
1. Intake:
   - Create the application in the submitted state
   - Send the "Application Received" acknowledgement (best-effort)

2. Documents:
   - Attach/replace and detach supporting documents

3. Status Checking:
   - Applicant status lookup guarded by a case-insensitive email match

4. Admin actions:
   - List, stats and detail views
   - Schedule/reschedule exams, then notify the applicant after commit
   - Resend the schedule notification
   - Decisions and exam outcome through the lifecycle state machine

A notification failure never undoes a committed schedule. The failed
DispatchResult is returned to the caller and stored as last_notification.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.email import Mailer, get_mailer
from app.core.storage import BlobStore, get_blob_store
from app.modules.admissions import helpers, repository
from app.modules.admissions.config import AdmissionsConfig, config_from_settings
from app.modules.admissions.documents import DocumentAttachmentManager
from app.modules.admissions.errors import (
    AdmissionsError,
    ApplicationNotFoundError,
    InvalidEmailError,
    InvalidNotificationInputError,
    NotificationFailedError,
)
from app.modules.admissions.helpers import STATUS_DESCRIPTIONS, STATUS_LABELS
from app.modules.admissions.lifecycle import LifecycleStateMachine
from app.modules.admissions.models import AdmissionApplication, ApplicationStatus
from app.modules.admissions.notifications import NotificationDispatcher
from app.modules.admissions.scheduling import ExamScheduler
from app.modules.admissions.schemas import (
    ApplicationCreate,
    ApplicationListItem,
    ApplicationStatusResponse,
    DispatchResult,
    DocumentDescriptor,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionsCore:
    """The admissions components, wired once per process."""

    config: AdmissionsConfig
    state_machine: LifecycleStateMachine
    scheduler: ExamScheduler
    documents: DocumentAttachmentManager
    notifications: NotificationDispatcher


def build_admissions_core(
    config: AdmissionsConfig | None = None,
    *,
    blob_store: BlobStore | None = None,
    mailer: Mailer | None = None,
    frontend_url: str | None = None,
) -> AdmissionsCore:
    """Wire the admissions components around the given (or default) adapters."""
    config = config or config_from_settings(settings)
    state_machine = LifecycleStateMachine(config)
    return AdmissionsCore(
        config=config,
        state_machine=state_machine,
        scheduler=ExamScheduler(config, state_machine),
        documents=DocumentAttachmentManager(config, blob_store or get_blob_store()),
        notifications=NotificationDispatcher(
            config,
            mailer or get_mailer(),
            frontend_url if frontend_url is not None else settings.frontend_url,
        ),
    )


@lru_cache
def get_admissions_core() -> AdmissionsCore:
    """Process-wide admissions core (FastAPI dependency)."""
    return build_admissions_core()


# ============================================
# Applicant Service Functions
# ============================================


async def submit_application(
    db: AsyncSession,
    core: AdmissionsCore,
    data: ApplicationCreate,
) -> AdmissionApplication:
    """
    Submit a new admission application.

    The acknowledgement email is best-effort: the application is already
    committed, so a mail failure is logged and the submission still succeeds.

    Args:
        db: Database session
        core: Admissions components
        data: Validated application data

    Returns:
        The created application
    """
    application = await repository.create(db, data)
    logger.info(f"Admission application created: {application.id} for {data.desired_program}")

    try:
        await core.notifications.notify_received(application)
    except AdmissionsError as e:
        logger.warning(f"Acknowledgement for application {application.id} not sent: {e.message}")

    return application


async def verify_applicant(
    db: AsyncSession,
    application_id: UUID,
    email: str,
) -> AdmissionApplication:
    """
    Load an application on behalf of its applicant.

    The email is required for security - only the applicant should be able
    to see or change their application.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        InvalidEmailError: If email doesn't match (case-insensitive)
    """
    application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found for applicant access: {application_id}")
        raise ApplicationNotFoundError(application_id)

    if email.strip().lower() != application.email.lower():
        logger.warning(
            f"Unauthorized access attempt for application {application_id}: "
            f"provided email does not match"
        )
        raise InvalidEmailError()

    return application


async def get_application_status(
    db: AsyncSession,
    application_id: UUID,
    email: str,
) -> ApplicationStatusResponse:
    """Get the applicant-facing status of an application."""
    application = await verify_applicant(db, application_id, email)

    return ApplicationStatusResponse(
        id=application.id,
        full_name=application.full_name,
        desired_program=application.desired_program,
        status=application.status,
        status_label=STATUS_LABELS.get(application.status, application.status.value),
        status_description=STATUS_DESCRIPTIONS.get(
            application.status,
            "Please contact the admission office for more information.",
        ),
        submitted_at=application.submitted_at,
        exam_schedule=application.exam_schedule,
        documents=sorted((application.documents or {}).keys()),
    )


async def upload_document(
    db: AsyncSession,
    core: AdmissionsCore,
    application_id: UUID,
    email: str,
    document_type: str,
    file_bytes: bytes,
    content_type: str | None,
    size_bytes: int | None = None,
) -> DocumentDescriptor:
    """Attach (or replace) a supporting document on behalf of the applicant."""
    await verify_applicant(db, application_id, email)
    return await core.documents.attach(
        db,
        application_id,
        document_type,
        file_bytes,
        content_type,
        size_bytes,
    )


async def remove_document(
    db: AsyncSession,
    core: AdmissionsCore,
    application_id: UUID,
    email: str,
    document_type: str,
) -> DocumentDescriptor:
    """Detach a supporting document on behalf of the applicant."""
    await verify_applicant(db, application_id, email)
    return await core.documents.detach(db, application_id, document_type)


# ============================================
# Admin Service Functions
# ============================================


async def admin_get_applications_list(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    sort_by: str = "submitted_at",
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """
    Get paginated list of applications for the admin dashboard.

    Returns:
        Dict with applications list, total count, skip, and limit
    """
    logger.info(
        f"Admin listing applications: status={status}, search={search}, "
        f"sort={sort_by}:{sort_order}, skip={skip}, limit={limit}"
    )

    # Validate and cap limit
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    applications, total = await repository.list_applications(
        db,
        status=status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )

    items = [
        ApplicationListItem.model_validate(application).model_copy(
            update={"document_count": len(application.documents or {})}
        )
        for application in applications
    ]

    return {
        "applications": items,
        "total": total,
        "skip": skip,
        "limit": limit,
    }


async def admin_get_dashboard_stats(db: AsyncSession) -> dict:
    """Get counters for the admin dashboard."""
    stats = await repository.get_dashboard_stats(db)
    logger.info(f"Dashboard stats: {stats}")
    return stats


async def admin_get_application_detail(
    db: AsyncSession,
    application_id: UUID,
) -> AdmissionApplication:
    """
    Raises:
        ApplicationNotFoundError: If application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)
    if not application:
        raise ApplicationNotFoundError(application_id)
    return application


async def _notify_schedule(
    db: AsyncSession,
    core: AdmissionsCore,
    application: AdmissionApplication,
) -> DispatchResult:
    """
    Send the schedule email and persist the outcome.

    Transport failures and an unusable applicant email are returned as a
    failed DispatchResult instead of raised; the schedule they refer to is
    already committed.
    """
    try:
        result = await core.notifications.notify_schedule(application)
    except NotificationFailedError as e:
        result = e.result
        logger.warning(
            f"Exam schedule for application {application.id} committed but "
            f"notification failed: {e.transport_error}"
        )
    except InvalidNotificationInputError as e:
        result = DispatchResult(
            success=False,
            error=e.message,
            recipient=application.email,
            attempted_at=helpers.utcnow(),
        )
        logger.warning(
            f"Exam schedule for application {application.id} committed but "
            f"notification input was rejected: {e.message}"
        )

    try:
        await repository.record_notification(db, application.id, result.model_dump(mode="json"))
    except AdmissionsError as e:
        logger.error(f"Could not record notification for {application.id}: {e.message}")

    return result


async def admin_schedule_exam(
    db: AsyncSession,
    core: AdmissionsCore,
    application_id: UUID,
    exam_datetime: datetime | str | None,
    *,
    actor_id: UUID | None = None,
) -> tuple[AdmissionApplication, DispatchResult | None]:
    """
    Schedule (or reschedule) an exam and notify the applicant.

    Args:
        db: Database session
        core: Admissions components
        application_id: UUID of the application
        exam_datetime: Exam date-time; None uses the default slot
        actor_id: Staff member scheduling the exam

    Returns:
        Tuple of (updated application, dispatch result). The dispatch result
        is None when scheduling was a no-op for an already-set instant.

    Raises:
        InvalidScheduleError: If the date-time is malformed or in the past
        ApplicationNotFoundError: If application doesn't exist
        IllegalTransitionError: If the status does not allow scheduling
    """
    if exam_datetime is None:
        exam_datetime = core.scheduler.default_exam_datetime()

    application, changed = await core.scheduler.schedule_with_outcome(
        db, application_id, exam_datetime, actor_id=actor_id
    )

    if not changed:
        logger.info(f"Schedule unchanged for application {application_id}; no notification")
        return application, None

    result = await _notify_schedule(db, core, application)
    return application, result


async def admin_resend_schedule_notification(
    db: AsyncSession,
    core: AdmissionsCore,
    application_id: UUID,
) -> DispatchResult:
    """
    Send the exam schedule email again.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        InvalidNotificationInputError: If no exam is scheduled
    """
    application = await repository.get_by_id(db, application_id)
    if not application:
        raise ApplicationNotFoundError(application_id)
    if application.exam_schedule is None:
        raise InvalidNotificationInputError(
            f"Application {application_id} has no exam schedule to notify about"
        )

    return await _notify_schedule(db, core, application)


async def admin_transition(
    db: AsyncSession,
    core: AdmissionsCore,
    application_id: UUID,
    to_status: ApplicationStatus,
    *,
    actor_id: UUID | None = None,
    reason: str | None = None,
) -> AdmissionApplication:
    """
    Record an exam outcome or decision.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        IllegalTransitionError: If the transition is not allowed
    """
    application = await core.state_machine.transition(
        db,
        application_id,
        to_status,
        actor_id=actor_id,
        reason=reason,
    )
    logger.info(f"Admin {actor_id} moved application {application_id} to {to_status.value}")
    return application
