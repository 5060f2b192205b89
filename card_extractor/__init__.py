"""
Card field extraction package for the Business Card Processing API.
"""

from .ai_extractor import GeminiCardExtractor, RemoteExtractionClient, parse_extraction_payload
from .errors import (
    ExtractionError,
    InvalidCredentialError,
    InvalidImageError,
    InvalidResponseError,
    NoTextFoundError,
    OcrError,
    OcrProcessingError,
    ParsingFailedError,
    QuotaExceededError,
    RemoteErrorKind,
    RemoteExtractionError,
    RemoteNetworkError,
    ServiceUnavailableError,
)
from .models import (
    ExtractedCardFields,
    ExtractionOutcome,
    NormalizedRect,
    OCRResult,
    OcrFailed,
    ParseSource,
    ProcessingFailed,
    Success,
    TextBoundingBox,
)
from .ocr import EasyOCRProvider, OcrProvider
from .parser import CardFieldParser
from .pipeline import ExtractionOrchestrator, PipelineState
from .reconciler import ResultReconciler

__all__ = [
    "CardFieldParser",
    "EasyOCRProvider",
    "ExtractedCardFields",
    "ExtractionError",
    "ExtractionOrchestrator",
    "ExtractionOutcome",
    "GeminiCardExtractor",
    "InvalidCredentialError",
    "InvalidImageError",
    "InvalidResponseError",
    "NoTextFoundError",
    "NormalizedRect",
    "OCRResult",
    "OcrError",
    "OcrFailed",
    "OcrProcessingError",
    "OcrProvider",
    "ParseSource",
    "ParsingFailedError",
    "PipelineState",
    "ProcessingFailed",
    "QuotaExceededError",
    "RemoteErrorKind",
    "RemoteExtractionClient",
    "RemoteExtractionError",
    "RemoteNetworkError",
    "ResultReconciler",
    "ServiceUnavailableError",
    "Success",
    "TextBoundingBox",
    "parse_extraction_payload",
]
