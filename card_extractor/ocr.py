"""
OCR providers turning card images into OCRResult objects.
"""
import asyncio
import logging
import os
import re
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .errors import InvalidImageError, NoTextFoundError, OcrProcessingError
from .models import NormalizedRect, OCRResult, TextBoundingBox

logger = logging.getLogger(__name__)


class OcrProvider(ABC):
    """Recognizes text on an encoded card image."""

    @abstractmethod
    async def recognize(self, image: bytes) -> OCRResult:
        """
        Run OCR on one image.

        Raises:
            NoTextFoundError: Nothing recognizable on the image
            InvalidImageError: The bytes are not a decodable image
            OcrProcessingError: The engine failed
        """


class EasyOCRProvider(OcrProvider):
    """OCR provider backed by EasyOCR."""

    def __init__(
        self,
        languages: Optional[List[str]] = None,
        gpu: bool = False,
        model_dir: str = "./models",
        min_confidence: float = 0.15,
        max_dimension: int = 1600,
        enhance_images: bool = False,
    ):
        """
        Initialize the provider. The EasyOCR reader is created on first use.

        Args:
            languages: EasyOCR language codes
            gpu: Use GPU for OCR
            model_dir: Directory for model storage
            min_confidence: Word boxes below this confidence are discarded
            max_dimension: Longer image side is scaled to this many pixels
            enhance_images: Denoise and apply CLAHE before recognition
        """
        self.languages = languages or ["ch_tra", "en"]
        self.gpu = gpu
        self.model_dir = model_dir
        self.min_confidence = min_confidence
        self.max_dimension = max_dimension
        self.enhance_images = enhance_images
        self._reader = None

    def _get_reader(self):
        if self._reader is None:
            import easyocr

            os.makedirs(self.model_dir, exist_ok=True)
            logger.info(f"Initializing EasyOCR with languages: {self.languages}")
            self._reader = easyocr.Reader(
                lang_list=self.languages,
                gpu=self.gpu,
                model_storage_directory=self.model_dir,
                download_enabled=True,
                verbose=False,
            )
            logger.info("EasyOCR initialized successfully")
        return self._reader

    async def recognize(self, image: bytes) -> OCRResult:
        return await asyncio.to_thread(self._recognize_sync, image)

    def _recognize_sync(self, image: bytes) -> OCRResult:
        started = time.perf_counter()

        img = self._decode(image)
        img = self._preprocess_image(img)
        height, width = img.shape[:2]

        try:
            results = self._get_reader().readtext(img, detail=1, paragraph=False)
        except Exception as e:
            logger.error(f"OCR extraction error: {e}", exc_info=True)
            raise OcrProcessingError(f"EasyOCR failed: {e}") from e

        words = []
        for bbox, text, confidence in results:
            text = text.strip()
            if text and confidence >= self.min_confidence:
                words.append((_box_extent(bbox), text, float(confidence)))

        boxes = []
        for line in _group_into_lines(words):
            box = self._build_line_box(line, width, height)
            if box is not None:
                boxes.append(box)

        if not boxes:
            raise NoTextFoundError("No text extracted from image")

        # Longer lines weigh more in the overall confidence
        weights = [len(b.text) for b in boxes]
        confidence = sum(b.confidence * w for b, w in zip(boxes, weights)) / sum(weights)
        elapsed = time.perf_counter() - started

        logger.info(f"Extracted {len(boxes)} lines with {confidence:.2%} confidence in {elapsed:.2f}s")
        return OCRResult(
            recognized_text="\n".join(b.text for b in boxes),
            confidence=min(1.0, confidence),
            bounding_boxes=tuple(boxes),
            processing_time=elapsed,
        )

    # =========================
    # IMAGE HANDLING
    # =========================

    @staticmethod
    def _decode(image: bytes) -> np.ndarray:
        if not image:
            raise InvalidImageError("Empty image data")
        img = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
        if img is None:
            raise InvalidImageError("Cannot decode image data")
        return img

    def _preprocess_image(self, img: np.ndarray) -> np.ndarray:
        h, w = img.shape[:2]
        longer = max(h, w)
        if longer != self.max_dimension:
            scale = self.max_dimension / longer
            interpolation = cv2.INTER_CUBIC if scale > 1 else cv2.INTER_AREA
            img = cv2.resize(img, (max(1, int(w * scale)), max(1, int(h * scale))), interpolation=interpolation)
            logger.debug(f"Resized from {w}x{h} to {img.shape[1]}x{img.shape[0]}")

        if not self.enhance_images:
            return img

        try:
            gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
            gray = cv2.fastNlMeansDenoising(gray, None, h=8, templateWindowSize=7, searchWindowSize=21)
            clahe = cv2.createCLAHE(clipLimit=3.0, tileGridSize=(12, 12))
            return clahe.apply(gray)
        except cv2.error as e:
            # Recognize the unenhanced image rather than failing the request
            logger.error(f"Image preprocessing error: {e}")
            return img

    def _build_line_box(self, line, width: int, height: int) -> Optional[TextBoundingBox]:
        line.sort(key=lambda w: w[0][0])
        raw_text = " ".join(text for _, text, _ in line)
        text = correct_ocr_text(raw_text)
        if not _looks_like_text(text):
            logger.debug(f"Dropped OCR line: {raw_text!r}")
            return None

        x0 = min(e[0] for e, _, _ in line)
        y0 = min(e[1] for e, _, _ in line)
        x1 = max(e[2] for e, _, _ in line)
        y1 = max(e[3] for e, _, _ in line)
        frame = NormalizedRect(
            x=_clamp(x0 / width),
            y=_clamp(y0 / height),
            width=_clamp((x1 - x0) / width),
            height=_clamp((y1 - y0) / height),
        )

        weights = [len(t) for _, t, _ in line]
        confidence = sum(c * w for (_, _, c), w in zip(line, weights)) / sum(weights)
        alternates = (raw_text,) if raw_text != text else ()
        return TextBoundingBox(text=text, confidence=min(1.0, confidence), frame=frame, alternate_candidates=alternates)


# =========================
# TEXT CORRECTION
# =========================

def correct_ocr_text(text: str) -> str:
    """
    Fix common EasyOCR character confusions in Latin words.

    EasyOCR often mistakes 'l' (lowercase L) for '1' and 'o' for '0' inside
    words; numbers and CJK text are left alone.
    """
    # Pattern: letter + 1 + letter (like "b1ue" -> "blue")
    text = re.sub(r"([a-zA-Z])1([a-zA-Z])", r"\1l\2", text)
    # Double 1s that should be ll (like "wa11" -> "wall")
    text = re.sub(r"([a-zA-Z])11([a-zA-Z])", r"\1ll\2", text)
    text = re.sub(r"([a-zA-Z])11\b", r"\1ll", text)
    # Letters + 1 at end of word (like "emai1" -> "email")
    text = re.sub(r"([a-zA-Z]{2,})1\b", r"\1l", text)
    # 0 -> o in words (like "s0lutions" -> "solutions")
    text = re.sub(r"([a-zA-Z])0([a-zA-Z])", r"\1o\2", text)

    # Email domains and URLs
    text = re.sub(r"@(\w+)\s*\.\s*com\b", r"@\1.com", text, flags=re.IGNORECASE)
    text = re.sub(r"www\s*\.\s*", "www.", text, flags=re.IGNORECASE)
    text = re.sub(r"\.c[o0]m\b", ".com", text, flags=re.IGNORECASE)

    return " ".join(text.split())


def _looks_like_text(line: str) -> bool:
    """At least half of the characters must be letters or digits."""
    if not line:
        return False
    return sum(1 for c in line if c.isalnum()) / len(line) >= 0.5


# =========================
# GEOMETRY
# =========================

Extent = Tuple[float, float, float, float]


def _box_extent(bbox) -> Extent:
    """(left, top, right, bottom) of an EasyOCR quadrilateral."""
    xs = [float(p[0]) for p in bbox]
    ys = [float(p[1]) for p in bbox]
    return min(xs), min(ys), max(xs), max(ys)


def _group_into_lines(words):
    """Group word boxes whose vertical centers are close into visual lines."""
    lines = []
    for word in sorted(words, key=lambda w: (w[0][1] + w[0][3]) / 2):
        extent = word[0]
        center = (extent[1] + extent[3]) / 2
        if lines:
            last = lines[-1]
            top = min(e[1] for e, _, _ in last)
            bottom = max(e[3] for e, _, _ in last)
            if top <= center <= bottom:
                last.append(word)
                continue
        lines.append([word])
    return lines


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))
