"""
Custom exception classes for the application.

Template and mapping problems are never raised: they come back as
structured validation results. These exceptions cover the transport layer
(push channel, directory backend), run lifecycle misuse and the HTTP
surface.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "DIRECTORY_BACKEND_ERROR")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# DIRECTORY BACKEND ERRORS
# ===================

class DirectoryBackendError(ExternalServiceError):
    """Upload or hub invocation rejected by the directory backend."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="directory_backend",
            message=message,
            details=details
        )


class ChannelNotConnectedError(ExternalServiceError):
    """Push channel is not connected and could not be (re)started."""

    def __init__(self, hub: str, state: str = "disconnected"):
        super().__init__(
            service="push_channel",
            message=f"Connection to hub {hub} is not established",
            details={"hub": hub, "state": state}
        )


class OperationTimeoutError(ExternalServiceError):
    """Upload, analysis or import did not finish within its ceiling (504)."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            service="directory_backend",
            message=f"{operation.capitalize()} received no answer within {timeout_seconds:g}s",
            details={"operation": operation, "timeout_seconds": timeout_seconds}
        )
        self.status_code = 504


# ===================
# IMPORT RUN ERRORS
# ===================

class InvalidRunTransitionError(ValidationError):
    """Import run cannot move from its current status to the requested one."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_RUN_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
            }
        )


# ===================
# REPORT ERRORS
# ===================

class UnsupportedReportFormatError(ValidationError):
    """Requested export format is not one of csv/json/txt/xlsx."""

    def __init__(self, fmt: str, valid: list[str]):
        super().__init__(
            code="REPORT_UNSUPPORTED_FORMAT",
            message=f"Report format must be one of {', '.join(valid)}",
            details={"provided": fmt, "valid": valid}
        )
