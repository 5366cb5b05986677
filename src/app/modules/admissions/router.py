"""
Admissions Router

Public API endpoints for prospective students. No authentication is
required; document and status endpoints are guarded by the applicant's
email address instead.

Endpoints:
- POST /admissions/applications - Submit a new admission application
- PUT /admissions/applications/{id}/documents/{document_type} - Upload a document
- DELETE /admissions/applications/{id}/documents/{document_type} - Remove a document
- GET /admissions/applications/{id}/status - Get application status

Security:
- Rate limiting on submission via Redis (in-memory fallback)
- Email match required for document changes and status access
- Upload size capped before the whole file is read
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limit import RateLimitExceeded, check_rate_limit
from app.modules.admissions import service
from app.modules.admissions.errors import AdmissionsError
from app.modules.admissions.schemas import (
    ApplicationCreate,
    ApplicationStatusResponse,
    ApplicationSubmittedResponse,
    DocumentDescriptor,
    DocumentUploadResponse,
)
from app.modules.admissions.service import AdmissionsCore, get_admissions_core

logger = logging.getLogger(__name__)

router = APIRouter()

# Submissions per client IP
RATE_LIMIT_SUBMIT = (5, 3600)  # 5 applications per hour


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
    logger.exception(f"Unexpected error {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


@router.post(
    "",
    response_model=ApplicationSubmittedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Admission Application",
    description="""
Submit a new admission application.

After submission:
1. An "Application Received" email is sent to the applicant
2. Supporting documents can be uploaded with the returned application ID
3. The admission office schedules the entrance exam and emails the date

Limited to 5 submissions per hour per client.
""",
    responses={
        201: {"description": "Application created successfully"},
        429: {"description": "Too many submissions"},
    },
)
async def submit_application(
    data: ApplicationCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    core: AdmissionsCore = Depends(get_admissions_core),
) -> ApplicationSubmittedResponse:
    client_ip = request.client.host if request.client else "unknown"
    limit, window = RATE_LIMIT_SUBMIT
    if not await check_rate_limit(f"admissions:submit:{client_ip}", limit, window):
        logger.warning(f"Submission rate limit exceeded for {client_ip}")
        raise RateLimitExceeded(limit, window)

    try:
        application = await service.submit_application(db, core, data)

        logger.info(f"Application submitted successfully: id={application.id}")

        return ApplicationSubmittedResponse(
            id=application.id,
            status=application.status,
            email=application.email,
            submitted_at=application.submitted_at,
        )

    except AdmissionsError as e:
        logger.error(f"Admissions error on submit: {e.message}")
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("submitting application", e) from e


@router.put(
    "/{application_id}/documents/{document_type}",
    response_model=DocumentUploadResponse,
    summary="Upload Supporting Document",
    description="""
Upload or replace a supporting document.

**Document types:** `picture_2x2` (image), `good_moral_certificate`,
`form_138`, `graduation_certificate` (PDF, Word or image).

Maximum file size is 5 MB. Uploading a document type that already exists
replaces it.
""",
    responses={
        403: {"description": "Email does not match the application"},
        404: {"description": "Application not found"},
        413: {"description": "File too large"},
        415: {"description": "File type not accepted for this document"},
        422: {"description": "Unknown document type"},
        503: {"description": "Storage temporarily unavailable, safe to retry"},
    },
)
async def upload_document(
    application_id: UUID,
    document_type: str,
    file: UploadFile = File(..., description="Document file"),
    email: str = Query(..., description="Applicant email used on the application"),
    db: AsyncSession = Depends(get_db),
    core: AdmissionsCore = Depends(get_admissions_core),
) -> DocumentUploadResponse:
    try:
        # Read one byte past the limit so oversize files fail without buffering them
        file_bytes = await file.read(core.config.max_upload_bytes + 1)

        descriptor = await service.upload_document(
            db,
            core,
            application_id,
            email,
            document_type,
            file_bytes,
            file.content_type,
            file.size,
        )

        return DocumentUploadResponse(
            application_id=application_id,
            document_type=document_type,
            document=descriptor,
        )

    except AdmissionsError as e:
        logger.warning(f"Upload rejected for {application_id}/{document_type}: {e.message}")
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("uploading document", e) from e
    finally:
        await file.close()


@router.delete(
    "/{application_id}/documents/{document_type}",
    response_model=DocumentDescriptor,
    summary="Remove Supporting Document",
    responses={
        403: {"description": "Email does not match the application"},
        404: {"description": "Application or document not found"},
    },
)
async def remove_document(
    application_id: UUID,
    document_type: str,
    email: str = Query(..., description="Applicant email used on the application"),
    db: AsyncSession = Depends(get_db),
    core: AdmissionsCore = Depends(get_admissions_core),
) -> DocumentDescriptor:
    try:
        return await service.remove_document(db, core, application_id, email, document_type)

    except AdmissionsError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("removing document", e) from e


@router.get(
    "/{application_id}/status",
    response_model=ApplicationStatusResponse,
    summary="Get Application Status",
    description="""
Get the current status of an admission application, the scheduled exam
date (if any) and the list of uploaded documents.

The email must match the one used on the application.
""",
    responses={
        403: {"description": "Email does not match the application"},
        404: {"description": "Application not found"},
    },
)
async def get_application_status(
    application_id: UUID,
    email: str = Query(..., description="Applicant email used on the application"),
    db: AsyncSession = Depends(get_db),
) -> ApplicationStatusResponse:
    try:
        return await service.get_application_status(db, application_id, email)

    except AdmissionsError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("getting application status", e) from e
