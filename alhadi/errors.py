"""
Error taxonomy and classification for playback and upload.

Every failure in the core is one of a small set of error types. Validation
errors are resolved locally and never reach the network; network and
timeout errors drive the stream fallback policy; the rest surface to the
user as localized messages.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import httpx

if TYPE_CHECKING:
    from alhadi.upload.validation import ValidationFailure

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    """Classification of error types."""

    VALIDATION = "validation"  # Bad file type/size, local only
    NETWORK = "network"  # Stream or storage unreachable
    MEDIA = "media"  # Decode-level failure
    TIMEOUT = "timeout"  # Loading took too long, handled as network
    STORAGE_SERVICE = "storage_service"  # Collaborator returned an error payload
    UNSUPPORTED = "unsupported"  # Platform cannot run the decode engine
    OTHER = "other"


class AlhadiError(Exception):
    """Base class for all errors raised by the core."""

    error_type: ErrorType = ErrorType.OTHER

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UploadValidationError(AlhadiError):
    """A file failed local validation. Never retried."""

    error_type = ErrorType.VALIDATION

    def __init__(self, failure: "ValidationFailure"):
        super().__init__(failure.message, {"reason": failure.reason.value})
        self.failure = failure


class InvalidInputError(AlhadiError):
    """A caller passed an argument that cannot be acted on."""

    error_type = ErrorType.VALIDATION


class StreamNetworkError(AlhadiError):
    error_type = ErrorType.NETWORK


class StreamMediaError(AlhadiError):
    error_type = ErrorType.MEDIA


class StreamTimeoutError(AlhadiError):
    error_type = ErrorType.TIMEOUT


class TransportError(AlhadiError):
    """A collaborator could not be reached."""

    error_type = ErrorType.NETWORK


class StorageServiceError(AlhadiError):
    """The storage or data collaborator answered with an error payload."""

    error_type = ErrorType.STORAGE_SERVICE

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code


@dataclass
class ClassifiedError:
    """An exception reduced to its error type and message."""

    error_type: ErrorType
    message: str
    original_exception: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def falls_back(self) -> bool:
        """Whether this error should move playback to the next candidate."""
        return self.error_type in (ErrorType.NETWORK, ErrorType.TIMEOUT)


class ErrorClassifier:
    """Classifies exceptions into error types."""

    @staticmethod
    def classify(error: BaseException) -> ClassifiedError:
        """
        Classify an exception into a ClassifiedError.

        Args:
            error: The exception to classify.

        Returns:
            ClassifiedError with the matching error type.
        """
        if isinstance(error, AlhadiError):
            error_type = error.error_type
        elif isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
            error_type = ErrorType.TIMEOUT
        elif isinstance(error, httpx.HTTPStatusError):
            error_type = ErrorType.STORAGE_SERVICE
        elif isinstance(error, (httpx.TransportError, ConnectionError)):
            error_type = ErrorType.NETWORK
        elif isinstance(error, NotImplementedError):
            error_type = ErrorType.UNSUPPORTED
        else:
            error_str = str(error).lower()
            if any(term in error_str for term in ["timeout", "timed out"]):
                error_type = ErrorType.TIMEOUT
            elif any(term in error_str for term in ["connection", "network", "dns"]):
                error_type = ErrorType.NETWORK
            elif any(term in error_str for term in ["codec", "decoder", "media"]):
                error_type = ErrorType.MEDIA
            else:
                error_type = ErrorType.OTHER

        message = getattr(error, "message", None) or str(error) or type(error).__name__
        return ClassifiedError(
            error_type=error_type,
            message=message,
            original_exception=error,
        )
