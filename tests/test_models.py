"""
Tests for the extraction data model.
"""

import math

import pytest

from card_extractor.errors import ExtractionError
from card_extractor.models import (
    TEXT_FIELDS,
    ExtractedCardFields,
    NormalizedRect,
    OCRResult,
    OcrFailed,
    ParseSource,
    ProcessingFailed,
    Success,
    TextBoundingBox,
)


class TestExtractedCardFields:
    """Test cases for ExtractedCardFields invariants."""

    def test_defaults(self):
        record = ExtractedCardFields()

        assert all(getattr(record, name) is None for name in TEXT_FIELDS)
        assert record.confidence == 0.0
        assert record.source is ParseSource.MANUAL
        assert record.has_any_field() is False

    def test_text_fields_are_trimmed(self):
        record = ExtractedCardFields(name="  王大明 ", company="\tABC科技公司\n")

        assert record.name == "王大明"
        assert record.company == "ABC科技公司"

    def test_blank_text_becomes_none(self):
        record = ExtractedCardFields(name="   ", email="")

        assert record.name is None
        assert record.email is None

    def test_non_string_field_rejected(self):
        with pytest.raises(TypeError):
            ExtractedCardFields(phone=212345678)

    @pytest.mark.parametrize("confidence", [-0.01, 1.01, math.nan])
    def test_confidence_out_of_range(self, confidence):
        with pytest.raises(ValueError):
            ExtractedCardFields(confidence=confidence)

    def test_confidence_must_be_number(self):
        with pytest.raises(TypeError):
            ExtractedCardFields(confidence="0.5")
        with pytest.raises(TypeError):
            ExtractedCardFields(confidence=True)

    def test_source_accepts_value(self):
        record = ExtractedCardFields(name="A", source="ai")
        assert record.source is ParseSource.AI

    def test_is_frozen(self):
        record = ExtractedCardFields(name="A")
        with pytest.raises(AttributeError):
            record.name = "B"

    def test_populated_fields_in_declaration_order(self):
        record = ExtractedCardFields(website="www.abc.com", name="王大明", phone="02-1234-5678")

        assert list(record.populated_fields()) == ["name", "phone", "website"]

    def test_to_dict(self):
        record = ExtractedCardFields(name="王大明", confidence=0.756, source=ParseSource.LOCAL)
        data = record.to_dict()

        assert set(TEXT_FIELDS) <= set(data)
        assert data["name"] == "王大明"
        assert data["company"] is None
        assert data["confidence"] == 0.76
        assert data["source"] == "local"


class TestOcrModels:
    """Test cases for OCR result types."""

    def test_rect_bounds(self):
        NormalizedRect(x=0.0, y=0.5, width=1.0, height=0.1)
        with pytest.raises(ValueError):
            NormalizedRect(x=0.0, y=0.0, width=1.2, height=0.1)

    def test_box_confidence_checked(self):
        frame = NormalizedRect(0.1, 0.1, 0.5, 0.1)
        with pytest.raises(ValueError):
            TextBoundingBox(text="x", confidence=1.5, frame=frame)

    def test_sequences_become_tuples(self):
        frame = NormalizedRect(0.1, 0.1, 0.5, 0.1)
        box = TextBoundingBox(text="x", confidence=0.5, frame=frame, alternate_candidates=["y", "z"])
        result = OCRResult(recognized_text="x", confidence=0.5, bounding_boxes=[box])

        assert box.alternate_candidates == ("y", "z")
        assert result.bounding_boxes == (box,)


class TestOutcomes:
    """Test cases for outcome serialization."""

    def test_success_to_dict(self):
        fields = ExtractedCardFields(name="王大明", confidence=0.75, source=ParseSource.LOCAL)
        data = Success(fields=fields, image=b"abc").to_dict()

        assert data["success"] is True
        assert data["status"] == "success"
        assert data["source"] == "local"
        assert data["confidence"] == 0.75
        assert data["contact_data"]["name"] == "王大明"
        assert data["image_size"] == 3

    def test_ocr_failed_to_dict(self):
        data = OcrFailed(image=b"abcd").to_dict()

        assert data["success"] is False
        assert data["status"] == "ocr_failed"
        assert data["image_size"] == 4

    def test_processing_failed_to_dict(self):
        data = ProcessingFailed(error=ExtractionError("boom")).to_dict()

        assert data["success"] is False
        assert data["status"] == "processing_failed"
        assert data["error"] == "boom"
