"""
Consistent error types for the lifecycle jobs and their collaborators.

Jobs never let these escape ``run()``: they are logged and collected into the
job results. Collaborator clients raise them so callers can tell an expected
external failure from a programming error.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class AppError(Exception):
    """
    Base application error with consistent error shape.

    All custom errors should inherit from this class.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to a loggable error payload."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(AppError):
    """Request violates a business rule."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(code="VALIDATION_ERROR", message=message, details=details)


class ConfigurationError(AppError):
    """Missing or malformed configuration."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(code="CONFIGURATION_ERROR", message=message, details=details)


class NotFoundError(AppError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Optional[Any] = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(code="NOT_FOUND", message=message)


class PaymentGatewayError(AppError):
    """Error talking to the payment processor."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(code="PAYMENT_GATEWAY_ERROR", message=message, details=details)
        self.status_code = status_code


class DocumentGenerationError(AppError):
    """Rendering or storing a document failed."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(code="DOCUMENT_GENERATION_ERROR", message=message, details=details)


class NotificationDeliveryError(AppError):
    """Email could not be rendered or delivered."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(code="NOTIFICATION_DELIVERY_ERROR", message=message, details=details)


class UnknownJobError(AppError):
    """Manual trigger for a job name that is not registered."""

    def __init__(self, job_name: str, known_jobs: Optional[list[str]] = None):
        super().__init__(
            code="UNKNOWN_JOB",
            message=f"Unknown job: {job_name}",
            details={"known_jobs": known_jobs or []},
        )
        self.job_name = job_name
