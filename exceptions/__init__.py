"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,

    # Directory backend
    DirectoryBackendError,
    ChannelNotConnectedError,
    OperationTimeoutError,

    # Import runs
    InvalidRunTransitionError,

    # Reports
    UnsupportedReportFormatError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",

    # Directory backend
    "DirectoryBackendError",
    "ChannelNotConnectedError",
    "OperationTimeoutError",

    # Import runs
    "InvalidRunTransitionError",

    # Reports
    "UnsupportedReportFormatError",
]
