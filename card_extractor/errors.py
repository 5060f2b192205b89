"""
Exception taxonomy for card extraction.

OCR-stage errors are raised by OCR providers, remote-stage errors by remote
extraction clients. The orchestrator decides which of them end a request.
"""

from enum import Enum


class ExtractionError(Exception):
    """Base class for every extraction failure."""


# =========================
# OCR STAGE
# =========================

class OcrError(ExtractionError):
    """OCR provider could not deliver a result."""


class NoTextFoundError(OcrError):
    """The image was readable but contained no recognizable text."""


class OcrProcessingError(OcrError):
    """The OCR engine failed while recognizing the image."""


class InvalidImageError(OcrError):
    """The image bytes could not be decoded."""


# =========================
# REMOTE STAGE
# =========================

class RemoteErrorKind(str, Enum):
    SERVICE_UNAVAILABLE = "service_unavailable"
    NETWORK_ERROR = "network_error"
    INVALID_CREDENTIAL = "invalid_credential"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_RESPONSE = "invalid_response"
    PARSING_FAILED = "parsing_failed"


class RemoteExtractionError(ExtractionError):
    """Remote extraction failed. Always recoverable by using the local parse."""
    kind: RemoteErrorKind


class ServiceUnavailableError(RemoteExtractionError):
    """Client is not configured or has been disabled."""
    kind = RemoteErrorKind.SERVICE_UNAVAILABLE


class RemoteNetworkError(RemoteExtractionError):
    """Transport failure or timeout."""
    kind = RemoteErrorKind.NETWORK_ERROR


class InvalidCredentialError(RemoteExtractionError):
    """The provider rejected the API key."""
    kind = RemoteErrorKind.INVALID_CREDENTIAL


class QuotaExceededError(RemoteExtractionError):
    """Rate or usage limit reached."""
    kind = RemoteErrorKind.QUOTA_EXCEEDED


class InvalidResponseError(RemoteExtractionError):
    """The provider answered with a malformed payload."""
    kind = RemoteErrorKind.INVALID_RESPONSE


class ParsingFailedError(RemoteExtractionError):
    """The payload was well formed but carried nothing usable."""
    kind = RemoteErrorKind.PARSING_FAILED
