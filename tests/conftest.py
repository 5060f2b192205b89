"""
Shared fixtures and in-memory doubles for the OCR provider and AI extractor.
"""

import asyncio
from typing import List, Optional, Tuple

import pytest

from card_extractor.ai_extractor import RemoteExtractionClient
from card_extractor.errors import NoTextFoundError
from card_extractor.models import (
    ExtractedCardFields,
    NormalizedRect,
    OCRResult,
    ParseSource,
    TextBoundingBox,
)
from card_extractor.ocr import OcrProvider


SCENARIO_TEXT = "\n".join([
    "王大明",
    "ABC科技公司",
    "產品經理",
    "02-1234-5678",
    "0912-345-678",
    "wang@abc.com",
])

FAKE_IMAGE = b"\x89PNG\r\n\x1a\nfake-card"


def make_ocr_result(text: str, confidence: float = 0.9) -> OCRResult:
    """OCRResult with one box per line, stacked top to bottom."""
    lines = [line for line in text.splitlines() if line.strip()]
    step = 1.0 / max(len(lines), 1)
    boxes = [
        TextBoundingBox(
            text=line,
            confidence=confidence,
            frame=NormalizedRect(x=0.1, y=i * step, width=0.8, height=step * 0.8),
        )
        for i, line in enumerate(lines)
    ]
    return OCRResult(recognized_text="\n".join(lines), confidence=confidence, bounding_boxes=boxes)


class StaticOcrProvider(OcrProvider):
    """Returns a fixed result, or raises a fixed error."""

    def __init__(self, result: Optional[OCRResult] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[bytes] = []

    async def recognize(self, image: bytes) -> OCRResult:
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        if self.result is None:
            raise NoTextFoundError("No text")
        return self.result


class StaticRemoteExtractor(RemoteExtractionClient):
    """Remote client double: fixed record, fixed error, or a hang."""

    def __init__(
        self,
        record: Optional[ExtractedCardFields] = None,
        error: Optional[Exception] = None,
        available: bool = True,
        delay: float = 0.0,
    ):
        self.record = record
        self.error = error
        self.available = available
        self.delay = delay
        self.calls: List[Tuple[str, Optional[bytes]]] = []
        self.cancelled = False

    def is_available(self) -> bool:
        return self.available

    async def extract(self, ocr_text: str, image_bytes: Optional[bytes] = None) -> ExtractedCardFields:
        self.calls.append((ocr_text, image_bytes))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.record


@pytest.fixture
def scenario_text():
    return SCENARIO_TEXT


@pytest.fixture
def scenario_result():
    return make_ocr_result(SCENARIO_TEXT, confidence=0.92)


@pytest.fixture
def remote_record():
    """What Gemini returns for the scenario card."""
    return ExtractedCardFields(
        name="王大明",
        name_phonetic="Wang Da-Ming",
        job_title="產品經理",
        company="ABC科技公司",
        department="產品部",
        email="wang@abc.com",
        phone="02-1234-5678",
        mobile="0912-345-678",
        confidence=0.9,
        source=ParseSource.AI,
    )
