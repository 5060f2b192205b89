"""
Data model for card field extraction.

OCR results, the structured card record shared by the local parser and the
AI extractor, and the terminal outcomes handed back to callers.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .errors import ExtractionError


# =========================
# OCR RESULT
# =========================

@dataclass(frozen=True)
class NormalizedRect:
    """Rectangle in normalized image coordinates, origin at the top-left."""
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")


@dataclass(frozen=True)
class TextBoundingBox:
    """One recognized line of text and where it sits on the card."""
    text: str
    confidence: float
    frame: NormalizedRect
    alternate_candidates: Tuple[str, ...] = ()

    def __post_init__(self):
        _check_unit_interval("confidence", self.confidence)
        object.__setattr__(self, "alternate_candidates", tuple(self.alternate_candidates))


@dataclass(frozen=True)
class OCRResult:
    """What an OCR provider returns for a single image.

    Attributes:
        recognized_text: Full text, one recognized line per row
        confidence: Overall recognition confidence in [0, 1]
        bounding_boxes: Per-line boxes in the order the provider delivered them
        processing_time: Seconds spent recognizing
    """
    recognized_text: str
    confidence: float
    bounding_boxes: Tuple[TextBoundingBox, ...] = ()
    processing_time: float = 0.0

    def __post_init__(self):
        _check_unit_interval("confidence", self.confidence)
        object.__setattr__(self, "bounding_boxes", tuple(self.bounding_boxes))


# =========================
# STRUCTURED CARD RECORD
# =========================

class ParseSource(str, Enum):
    """Which stage authored a card record."""
    LOCAL = "local"
    AI = "ai"
    MANUAL = "manual"


TEXT_FIELDS: Tuple[str, ...] = (
    "name",
    "name_phonetic",
    "job_title",
    "company",
    "department",
    "email",
    "phone",
    "mobile",
    "address",
    "website",
)


@dataclass(frozen=True)
class ExtractedCardFields:
    """Structured contact data extracted from one business card.

    Text fields are either None or a non-empty, trimmed string. Blank strings
    passed in are stored as None.
    """
    name: Optional[str] = None
    name_phonetic: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    department: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    confidence: float = 0.0
    source: ParseSource = ParseSource.MANUAL

    def __post_init__(self):
        for name in TEXT_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise TypeError(f"{name} must be a string, got {type(value).__name__}")
            object.__setattr__(self, name, value.strip() or None)

        _check_unit_interval("confidence", self.confidence)
        object.__setattr__(self, "confidence", float(self.confidence))
        object.__setattr__(self, "source", ParseSource(self.source))

    def populated_fields(self) -> Dict[str, str]:
        """Text fields that hold a value, in declaration order."""
        return {name: getattr(self, name) for name in TEXT_FIELDS if getattr(self, name)}

    def has_any_field(self) -> bool:
        return any(getattr(self, name) for name in TEXT_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: getattr(self, name) for name in TEXT_FIELDS}
        data["confidence"] = round(self.confidence, 2)
        data["source"] = self.source.value
        return data


def _check_unit_interval(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")


# =========================
# OUTCOMES
# =========================

RawImage = bytes


@dataclass(frozen=True)
class Success:
    """Extraction finished; fields may come from the local parse only."""
    fields: ExtractedCardFields
    image: RawImage = field(repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "status": "success",
            "contact_data": self.fields.to_dict(),
            "source": self.fields.source.value,
            "confidence": round(self.fields.confidence, 2),
            "image_size": len(self.image),
        }


@dataclass(frozen=True)
class OcrFailed:
    """The OCR provider found no text; the caller should ask for a retake."""
    image: RawImage = field(repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "status": "ocr_failed",
            "error": "No text found on the card image",
            "image_size": len(self.image),
        }


@dataclass(frozen=True)
class ProcessingFailed:
    """An unexpected fault ended the request."""
    error: ExtractionError

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "status": "processing_failed",
            "error": str(self.error),
        }


ExtractionOutcome = Union[Success, OcrFailed, ProcessingFailed]
