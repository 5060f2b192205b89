"""
Tests for EasyOCRProvider with a mocked EasyOCR reader.
"""

import asyncio
import sys
from unittest.mock import Mock, patch

import cv2
import numpy as np
import pytest

from card_extractor.errors import InvalidImageError, NoTextFoundError, OcrProcessingError
from card_extractor.ocr import EasyOCRProvider, correct_ocr_text


def encode_image(width: int, height: int) -> bytes:
    ok, buf = cv2.imencode(".png", np.full((height, width, 3), 255, dtype=np.uint8))
    assert ok
    return buf.tobytes()


def quad(x0, y0, x1, y1):
    return [[x0, y0], [x1, y0], [x1, y1], [x0, y1]]


READER_OUTPUT = [
    (quad(100, 300, 700, 350), "wang@abc.c0m", 0.9),
    (quad(320, 105, 500, 148), "Wang", 0.8),
    (quad(100, 100, 300, 150), "王大明", 0.95),
    (quad(100, 500, 200, 540), "x", 0.05),
]


class TestEasyOCRProvider:
    """Test cases for EasyOCRProvider."""

    @pytest.fixture
    def reader(self):
        reader = Mock()
        reader.readtext.return_value = list(READER_OUTPUT)
        return reader

    @pytest.fixture
    def provider(self, reader):
        provider = EasyOCRProvider(max_dimension=1600)
        provider._reader = reader
        return provider

    def test_recognize(self, provider):
        result = asyncio.run(provider.recognize(encode_image(1600, 800)))

        assert result.recognized_text == "王大明 Wang\nwang@abc.com"
        assert [b.text for b in result.bounding_boxes] == ["王大明 Wang", "wang@abc.com"]
        assert result.confidence == pytest.approx((6.05 / 7 * 8 + 0.9 * 12) / 20)
        assert result.processing_time >= 0.0

    def test_line_frames_normalized(self, provider):
        result = asyncio.run(provider.recognize(encode_image(1600, 800)))

        frame = result.bounding_boxes[0].frame
        assert frame.x == pytest.approx(100 / 1600)
        assert frame.y == pytest.approx(100 / 800)
        assert frame.width == pytest.approx(400 / 1600)
        assert frame.height == pytest.approx(50 / 800)

    def test_corrected_line_keeps_raw_alternate(self, provider):
        result = asyncio.run(provider.recognize(encode_image(1600, 800)))

        email_box = result.bounding_boxes[1]
        assert email_box.alternate_candidates == ("wang@abc.c0m",)
        assert result.bounding_boxes[0].alternate_candidates == ()

    def test_low_confidence_words_dropped(self, provider):
        result = asyncio.run(provider.recognize(encode_image(1600, 800)))
        assert "x" not in result.recognized_text.split()

    def test_image_resized_to_max_dimension(self, provider, reader):
        provider.max_dimension = 800
        reader.readtext.return_value = []

        with pytest.raises(NoTextFoundError):
            asyncio.run(provider.recognize(encode_image(400, 200)))

        image = reader.readtext.call_args.args[0]
        assert image.shape[:2] == (400, 800)

    def test_enhanced_image_is_grayscale(self, provider, reader):
        provider.enhance_images = True

        asyncio.run(provider.recognize(encode_image(1600, 800)))

        assert reader.readtext.call_args.args[0].ndim == 2

    def test_no_text(self, provider, reader):
        reader.readtext.return_value = []

        with pytest.raises(NoTextFoundError):
            asyncio.run(provider.recognize(encode_image(1600, 800)))

    def test_only_symbols_is_no_text(self, provider, reader):
        reader.readtext.return_value = [(quad(10, 10, 50, 30), "--|", 0.9)]

        with pytest.raises(NoTextFoundError):
            asyncio.run(provider.recognize(encode_image(1600, 800)))

    @pytest.mark.parametrize("data", [b"", b"definitely not an image"])
    def test_invalid_image(self, provider, data):
        with pytest.raises(InvalidImageError):
            asyncio.run(provider.recognize(data))

    def test_reader_failure(self, provider, reader):
        reader.readtext.side_effect = RuntimeError("CUDA out of memory")

        with pytest.raises(OcrProcessingError):
            asyncio.run(provider.recognize(encode_image(1600, 800)))

    def test_reader_created_lazily(self, tmp_path):
        fake_easyocr = Mock()
        provider = EasyOCRProvider(languages=["ch_tra", "en"], model_dir=str(tmp_path / "models"))

        with patch.dict(sys.modules, {"easyocr": fake_easyocr}):
            fake_easyocr.Reader.assert_not_called()
            reader = provider._get_reader()
            again = provider._get_reader()

        assert reader is again
        fake_easyocr.Reader.assert_called_once()
        assert fake_easyocr.Reader.call_args.kwargs["lang_list"] == ["ch_tra", "en"]
        assert (tmp_path / "models").is_dir()


class TestCorrectOcrText:
    """Test cases for OCR character confusion fixes."""

    @pytest.mark.parametrize("raw, expected", [
        ("Wi11iam", "William"),
        ("emai1", "email"),
        ("b1ue", "blue"),
        ("s0lutions", "solutions"),
        ("info@abc . com", "info@abc.com"),
        ("www . abc.c0m", "www.abc.com"),
        ("02-1234-5678", "02-1234-5678"),
        ("王大明  經理", "王大明 經理"),
    ])
    def test_corrections(self, raw, expected):
        assert correct_ocr_text(raw) == expected
