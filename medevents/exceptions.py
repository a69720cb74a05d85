"""
Pipeline error taxonomy.

Errors that block the submitter's primary intent carry an HTTP status and are
rendered verbatim by the API layer. ``IssuerFailure`` is raised by issuer
adapters and only ever handled inside the outbox dispatcher.
"""

from typing import Any, List, Optional


class PipelineError(Exception):
    status_code = 400
    error_code = "pipeline_error"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class EventNotFound(PipelineError):
    status_code = 404
    error_code = "event_not_found"

    def __init__(self, event_id: Any):
        super().__init__(f"Event {event_id} not found")


class FormNotFound(PipelineError):
    status_code = 404
    error_code = "form_not_found"

    def __init__(self, message: str = "Feedback form not found or inactive"):
        super().__init__(message)


class Unauthorized(PipelineError):
    status_code = 401
    error_code = "unauthorized"

    def __init__(self, message: str = "You must be signed in to submit this form"):
        super().__init__(message)


ATTENDANCE_MESSAGES = {
    "no_booking": "You need a booking for this event before you can submit feedback.",
    "no_scan": "Attendance not found for this event. Please scan the attendance QR code first.",
}


class AttendanceRequired(PipelineError):
    status_code = 403
    error_code = "attendance_required"

    def __init__(self, reason: str):
        super().__init__(ATTENDANCE_MESSAGES.get(reason, "Attendance could not be verified"), details={"reason": reason})
        self.reason = reason


class ValidationFailed(PipelineError):
    status_code = 422
    error_code = "validation_failed"

    def __init__(self, errors: List[str]):
        super().__init__("Validation errors", details=list(errors))
        self.errors = list(errors)


class AlreadySubmitted(PipelineError):
    status_code = 409
    error_code = "already_submitted"

    def __init__(self, message: str = "You have already submitted feedback for this form"):
        super().__init__(message)


class StorageFailure(PipelineError):
    status_code = 500
    error_code = "storage_failure"


class QRCodeNotFound(PipelineError):
    status_code = 404
    error_code = "qr_code_not_found"

    def __init__(self, message: str = "QR code not found"):
        super().__init__(message)


class ScanRejected(PipelineError):
    status_code = 400
    error_code = "scan_rejected"


class IssuerFailure(Exception):
    """The certificate issuer could not produce a certificate."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
