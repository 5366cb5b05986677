"""
Admissions Admin Router

API endpoints for admission office staff to review applications,
schedule entrance exams and record outcomes.
All endpoints require authentication and the admissions_staff role.

Endpoints:
- GET /admin/admissions/applications - List applications with filters and pagination
- GET /admin/admissions/applications/stats - Get dashboard statistics
- GET /admin/admissions/applications/{id} - Get application details
- POST /admin/admissions/applications/{id}/schedule - Schedule or reschedule the exam
- POST /admin/admissions/applications/{id}/notify - Resend the exam schedule email
- POST /admin/admissions/applications/{id}/transition - Record exam outcome or decision
- GET /admin/admissions/applications/{id}/documents/{type} - Download a document

Security:
- All endpoints require valid JWT token with admissions_staff role
- Rate limiting on action endpoints to prevent abuse
- Audit logging for all staff actions
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import StaffUser, get_current_staff_user
from app.core.database import get_db
from app.core.rate_limit import RateLimitExceeded, check_rate_limit
from app.modules.admissions import service
from app.modules.admissions.errors import AdmissionsError
from app.modules.admissions.models import AdmissionApplication, ApplicationStatus
from app.modules.admissions.schemas import (
    ApplicationDetailResponse,
    ApplicationListResponse,
    DashboardStats,
    DispatchResult,
    ScheduleExamRequest,
    ScheduleExamResponse,
    TransitionRequest,
    TransitionResponse,
)
from app.modules.admissions.service import AdmissionsCore, get_admissions_core

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_SCHEDULE = (30, 60)  # 30 schedules per minute
RATE_LIMIT_NOTIFY = (10, 60)  # 10 resends per minute
RATE_LIMIT_TRANSITION = (30, 60)  # 30 decisions per minute


async def _check_staff_rate_limit(
    staff: StaffUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Raises:
        RateLimitExceeded: If the staff member exceeded the limit for `action`
    """
    key = f"admissions_admin:{action}:{staff.id}"
    allowed = await check_rate_limit(key, limit, window_seconds)

    if not allowed:
        logger.warning(
            f"Rate limit exceeded for staff {staff.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: AdmissionsError) -> None:
    """Convert admissions errors to HTTPExceptions."""
    detail = {
        "error": e.error_code,
        "message": e.message,
    }
    if e.retryable:
        detail["retryable"] = True
    raise HTTPException(status_code=e.status_code, detail=detail) from e


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Error {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


def _application_to_detail(application: AdmissionApplication) -> ApplicationDetailResponse:
    return ApplicationDetailResponse.model_validate(application)


# ============================================
# List & Stats Endpoints
# ============================================


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Applications",
    description="""
Get paginated list of admission applications with optional filters.

**Filters:**
- `status`: Filter by application status
- `search`: Search in applicant name, email and desired program

**Sorting:**
- `sort_by`: submitted_at, exam_schedule or full_name. Default: submitted_at
- `sort_order`: asc or desc. Default: asc (oldest first for fairness)

**Access:** Admissions staff only
""",
    responses={
        401: {"description": "Unauthorized - invalid or missing token"},
        403: {"description": "Forbidden - not admissions staff"},
    },
)
async def list_applications(
    status_filter: ApplicationStatus | None = Query(
        None,
        alias="status",
        description="Filter by application status",
    ),
    search: str | None = Query(
        None,
        min_length=1,
        max_length=100,
        description="Search term for name/email/program",
    ),
    sort_by: str = Query("submitted_at", description="Column to sort by"),
    sort_order: str = Query("asc", description="Sort direction (asc/desc)"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> ApplicationListResponse:
    """List applications for the admin dashboard."""
    try:
        result = await service.admin_get_applications_list(
            db,
            status=status_filter,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )

        logger.info(
            f"Staff {staff.id} listed applications: "
            f"total={result['total']}, returned={len(result['applications'])}"
        )

        return ApplicationListResponse(**result)

    except AdmissionsError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("listing applications", e) from e


@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Get Dashboard Statistics",
    description="""
Counters for the admin dashboard: applications per status, exams scheduled
in the next 7 days and applications received this month.

**Access:** Admissions staff only
""",
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> DashboardStats:
    try:
        stats = await service.admin_get_dashboard_stats(db)
        logger.info(f"Staff {staff.id} fetched dashboard stats")
        return DashboardStats(**stats)

    except AdmissionsError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("getting dashboard stats", e) from e


# ============================================
# Detail & Action Endpoints
# ============================================


@router.get(
    "/{application_id}",
    response_model=ApplicationDetailResponse,
    summary="Get Application Details",
    description="""
Complete application record including documents, status history,
decision details and the outcome of the last notification.

**Access:** Admissions staff only
""",
    responses={404: {"description": "Application not found"}},
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> ApplicationDetailResponse:
    try:
        application = await service.admin_get_application_detail(db, application_id)
        logger.info(f"Staff {staff.id} viewed application {application_id}")
        return _application_to_detail(application)

    except AdmissionsError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("getting application detail", e) from e


@router.post(
    "/{application_id}/schedule",
    response_model=ScheduleExamResponse,
    summary="Schedule Entrance Exam",
    description="""
Schedule or reschedule the entrance exam, then email the applicant.

**Requirements:**
- Application must be in `submitted` or `scheduled` status
- `exam_datetime` must not be in the past. Values without an offset are read
  in the admission office's time zone. Omit it to use the default slot.

**Effects:**
- Status becomes `scheduled` and `exam_schedule` is set
- Scheduling the same instant again changes nothing and sends no email
- The email outcome is reported in `notification`; a failed email does not
  undo the schedule

**Access:** Admissions staff only
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application cannot be scheduled from its current status"},
        422: {"description": "Invalid or past exam date-time"},
    },
)
async def schedule_exam(
    application_id: UUID,
    data: ScheduleExamRequest,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
    core: AdmissionsCore = Depends(get_admissions_core),
) -> ScheduleExamResponse:
    await _check_staff_rate_limit(staff, "schedule", *RATE_LIMIT_SCHEDULE)

    try:
        application, notification = await service.admin_schedule_exam(
            db,
            core,
            application_id,
            data.exam_datetime,
            actor_id=staff.id,
        )

        if notification is None:
            message = "Exam already scheduled for this time. No email sent."
        elif notification.success:
            message = "Exam scheduled. Notification sent to applicant."
        else:
            message = "Exam scheduled, but the notification email could not be sent."

        return ScheduleExamResponse(
            id=application.id,
            status=application.status,
            exam_schedule=application.exam_schedule,
            notification=notification,
            message=message,
        )

    except AdmissionsError as e:
        logger.warning(f"Cannot schedule application {application_id}: {e.message}")
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("scheduling exam", e) from e


@router.post(
    "/{application_id}/notify",
    response_model=DispatchResult,
    summary="Resend Exam Schedule Email",
    description="""
Send the exam schedule email again. The outcome is returned and stored as
the application's `last_notification`.

**Access:** Admissions staff only
""",
    responses={
        404: {"description": "Application not found"},
        422: {"description": "No exam scheduled"},
    },
)
async def resend_schedule_notification(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
    core: AdmissionsCore = Depends(get_admissions_core),
) -> DispatchResult:
    await _check_staff_rate_limit(staff, "notify", *RATE_LIMIT_NOTIFY)

    try:
        result = await service.admin_resend_schedule_notification(db, core, application_id)
        logger.info(
            f"Staff {staff.id} resent schedule for {application_id}: success={result.success}"
        )
        return result

    except AdmissionsError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("resending notification", e) from e


@router.post(
    "/{application_id}/transition",
    response_model=TransitionResponse,
    summary="Record Exam Outcome or Decision",
    description="""
Move an application to `exam_taken`, `approved` or `rejected`.

**Allowed transitions:**
- `submitted` -> `rejected`
- `scheduled` -> `exam_taken`, `approved`, `rejected`
- `exam_taken` -> `approved`, `rejected`

`approved` and `rejected` are final. Use the schedule endpoint to schedule an exam.

**Access:** Admissions staff only
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
async def transition_application(
    application_id: UUID,
    data: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
    core: AdmissionsCore = Depends(get_admissions_core),
) -> TransitionResponse:
    await _check_staff_rate_limit(staff, "transition", *RATE_LIMIT_TRANSITION)

    try:
        application = await service.admin_transition(
            db,
            core,
            application_id,
            data.to_status,
            actor_id=staff.id,
            reason=data.reason,
        )

        return TransitionResponse(
            id=application.id,
            status=application.status,
            exam_schedule=application.exam_schedule,
            message=f"Application moved to {application.status.value}",
        )

    except AdmissionsError as e:
        logger.warning(f"Cannot transition application {application_id}: {e.message}")
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("transitioning application", e) from e


@router.get(
    "/{application_id}/documents/{document_type}",
    response_class=Response,
    summary="Download Supporting Document",
    responses={
        200: {"description": "The stored file"},
        404: {"description": "Application or document not found"},
        503: {"description": "Storage temporarily unavailable, safe to retry"},
    },
)
async def download_document(
    application_id: UUID,
    document_type: str,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
    core: AdmissionsCore = Depends(get_admissions_core),
) -> Response:
    try:
        application = await service.admin_get_application_detail(db, application_id)
        data = await core.documents.read(db, application_id, document_type)
        content_type = (application.documents or {}).get(document_type, {}).get("content_type")
        logger.info(f"Staff {staff.id} downloaded {document_type} of {application_id}")
        return Response(content=data, media_type=content_type or "application/octet-stream")

    except AdmissionsError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("downloading document", e) from e
