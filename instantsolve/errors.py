"""
Error taxonomy for the query pipeline.

Adapters turn tier failures into backup attempts; only
BothTiersFailedError and RequestCancelledError reach the dispatcher
boundary, where they become structured results.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories reported in PipelineResult.error_kind."""

    CLASSIFICATION = "classification"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    BOTH_TIERS_FAILED = "both_tiers_failed"
    CANCELLED = "cancelled"
    UNSUPPORTED_IMAGE_FORMAT = "unsupported_image_format"
    INTERNAL = "internal"


class PipelineError(Exception):
    """Base class for every error raised inside the pipeline."""

    kind: ErrorKind = ErrorKind.INTERNAL
    # Safe to show to an end user
    user_message = "Sorry, we couldn't get an answer at this time. Please try again."


class ClassificationError(PipelineError):
    """Classifier received something it cannot score (programmer error)."""

    kind = ErrorKind.CLASSIFICATION


class NetworkError(PipelineError):
    """Transport failure, timeout or non-2xx status."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(PipelineError):
    """2xx response without the expected completion fields."""

    kind = ErrorKind.MALFORMED_RESPONSE


class UnsupportedImageFormatError(PipelineError):
    """Image reference whose extension is not in the allow-list."""

    kind = ErrorKind.UNSUPPORTED_IMAGE_FORMAT
    user_message = "That image format is not supported. Please use JPG, PNG, GIF or WEBP."


class BothTiersFailedError(PipelineError):
    """Primary and backup backends both failed for a mode."""

    kind = ErrorKind.BOTH_TIERS_FAILED

    def __init__(self, mode: str, primary_error: Exception, backup_error: Exception):
        super().__init__(f"Both models failed for mode '{mode}'")
        self.mode = mode
        self.primary_error = primary_error
        self.backup_error = backup_error


class RequestCancelledError(PipelineError):
    """The caller cancelled the request while a call was in flight."""

    kind = ErrorKind.CANCELLED
    user_message = "Request was cancelled."
