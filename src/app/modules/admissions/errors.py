"""
Admissions Errors

Every failure the admissions core reports is an AdmissionsError carrying a
machine-readable error code and the HTTP status the routers answer with.
`retryable` separates "your input was invalid" (4xx) from "the system could
not complete the action" (5xx, safe to retry).
"""

from uuid import UUID


class AdmissionsError(Exception):
    """Base exception for admissions errors."""

    retryable = False

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ApplicationNotFoundError(AdmissionsError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class DocumentNotFoundError(AdmissionsError):
    """Raised when detaching or reading a document that is not attached."""

    def __init__(self, document_type: str):
        super().__init__(
            message=f"No '{document_type}' document is attached to this application",
            error_code="DOCUMENT_NOT_FOUND",
            status_code=404,
        )


class IllegalTransitionError(AdmissionsError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, current_status: str, new_status: str, detail: str | None = None):
        self.current_status = current_status
        self.new_status = new_status
        message = f"Cannot move application from '{current_status}' to '{new_status}'."
        if detail:
            message = f"{message} {detail}"
        super().__init__(
            message=message,
            error_code="ILLEGAL_TRANSITION",
            status_code=409,
        )


class InvalidScheduleError(AdmissionsError):
    """Raised when an exam date-time is malformed or in the past."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_SCHEDULE",
            status_code=422,
        )


class PayloadTooLargeError(AdmissionsError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, size_bytes: int, max_bytes: int):
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        super().__init__(
            message=f"File too large ({size_bytes} bytes). Maximum size is {max_bytes} bytes.",
            error_code="PAYLOAD_TOO_LARGE",
            status_code=413,
        )


class UnsupportedDocumentTypeError(AdmissionsError):
    """Raised when the document type is not one of the configured keys."""

    def __init__(self, document_type: str):
        super().__init__(
            message=f"Unsupported document type: {document_type}",
            error_code="UNSUPPORTED_DOCUMENT_TYPE",
            status_code=422,
        )


class UnsupportedContentTypeError(AdmissionsError):
    """Raised when the content type is not allowed for the document type."""

    def __init__(self, content_type: str, document_type: str):
        super().__init__(
            message=f"Content type '{content_type}' is not accepted for {document_type}",
            error_code="UNSUPPORTED_CONTENT_TYPE",
            status_code=415,
        )


class InvalidNotificationInputError(AdmissionsError):
    """Raised when an application cannot be notified (bad address, no exam date)."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_NOTIFICATION_INPUT",
            status_code=422,
        )


class InvalidEmailError(AdmissionsError):
    """Raised when the provided email doesn't match the application."""

    def __init__(self):
        super().__init__(
            message="Email does not match the application",
            error_code="INVALID_EMAIL",
            status_code=403,
        )


class NotificationFailedError(AdmissionsError):
    """Raised when the mail transport fails to accept a notification."""

    retryable = True

    def __init__(self, transport_error: Exception, result=None):
        self.transport_error = transport_error
        self.result = result
        super().__init__(
            message=f"Notification could not be sent: {transport_error}",
            error_code="NOTIFICATION_FAILED",
            status_code=502,
        )


class AdapterUnavailableError(AdmissionsError):
    """Raised when the record store or blob store is unreachable or times out."""

    retryable = True

    def __init__(self, adapter: str, cause: Exception | None = None):
        self.adapter = adapter
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(
            message=f"The {adapter} is temporarily unavailable{detail}. Please try again.",
            error_code="ADAPTER_UNAVAILABLE",
            status_code=503,
        )
