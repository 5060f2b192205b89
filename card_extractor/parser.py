import re
import logging
from typing import Dict, List, Optional, Tuple, Union

from .models import ExtractedCardFields, NormalizedRect, OCRResult, ParseSource
from .postprocessing import (
    EMAIL_PATTERN,
    clean_address,
    clean_website,
    extract_email,
    format_phone,
    strip_label,
)

logger = logging.getLogger(__name__)

# Confidence assigned to any local parse that found at least one field
DEFAULT_CONFIDENCE = 0.75

ADDRESS_KEYWORDS = ["市", "縣", "區", "鄉", "鎮", "路", "街", "巷", "弄", "號", "樓", "段"]

TITLE_KEYWORDS = [
    "總經理", "副總經理", "經理", "副理", "協理", "主任", "主管", "總監",
    "工程師", "設計師", "董事長", "執行長", "總裁", "副總", "專員", "顧問", "業務",
]

TITLE_KEYWORDS_EN = [
    "manager", "director", "supervisor", "engineer", "designer", "consultant",
    "specialist", "analyst", "president", "ceo", "cto", "cfo", "coo", "vp",
]

COMPANY_KEYWORDS = ["公司", "企業", "集團", "有限", "股份"]

# Labels announcing contact data; such lines never become name, company or title
CONTACT_LABELS = {"phone", "mobile", "email", "website", "address"}

# Vertical bands (top-left origin) searched when filling empty slots from the layout
NAME_BAND = (0.0, 0.5)
COMPANY_BAND = (0.0, 0.5)
TITLE_BAND = (0.3, 0.7)

Line = Tuple[str, NormalizedRect]


# =========================
# PARSER
# =========================

class CardFieldParser:
    """Rule-based classifier mapping OCR lines to card fields.

    Each line is checked against the classifiers in a fixed order and goes to
    the first one whose slot is still empty:
    phone, mobile, email, website, address, name, company, job title.
    Filled slots are never overwritten.

    With bounding boxes available, slots still empty afterwards may be filled
    from dropped lines by their position on the card.
    """

    def __init__(self):
        self.patterns = {
            # 02-1234-5678, (02) 2345 6789, 037-123-4567, +886-3-6590-999 #105,
            # 0800-123-456, 0836-22345
            "landline": re.compile(
                r"(?<![\d+])"
                r"(?:080[09][-\s.]?\d{3}[-\s.]?\d{3}"
                r"|08[23]6[-\s.]?\d{5}"
                r"|(?:\+?886[-\s.]?(?:\(0\))?[2-8]|\(?0[2-8]\d?\)?)[-\s.]?\d{3,4}[-\s.]?\d{4})"
                r"(?:\s*(?:#|ext\.?|分機)\s*\d{1,6})?"
                r"(?!\d)",
                re.IGNORECASE,
            ),
            "mobile_prefix": re.compile(r"^(?:\+?886[-\s.]?(?:\(0\))?9|09)"),
            "mobile": re.compile(r"(?:\+?886[-\s.]?(?:\(0\))?9\d{2}|09\d{2})[-\s.]?\d{3}[-\s.]?\d{3}"),
            "address": re.compile(
                r"\b(?:road|rd|street|st|avenue|ave|blvd|boulevard|lane|ln|district|floor|suite)\b",
                re.IGNORECASE,
            ),
            "title": re.compile(r"\b(?:" + "|".join(TITLE_KEYWORDS_EN) + r")\b", re.IGNORECASE),
            "company": re.compile(r"\b(?:ltd|inc|corp|company|group)\b|\bco\.", re.IGNORECASE),
            "name_en": re.compile(r"^[A-Za-z]+\s+[A-Za-z]+$"),
            "name_zh": re.compile(r"^[\u4e00-\u9fff]{2,4}$"),
            "valid_phone": re.compile(r"[\d\s\-+()#]{8,25}"),
            "valid_mobile": re.compile(r"[\d\s\-+()]{8,20}"),
        }

    # =========================
    # PIPELINE API
    # =========================

    def parse(self, source: Union[str, OCRResult]) -> ExtractedCardFields:
        """
        Parse OCR output into card fields.

        Args:
            source: Raw OCR text, or a full OCRResult whose bounding boxes
                give the line order and the layout

        Returns:
            ExtractedCardFields with source LOCAL
        """
        if isinstance(source, OCRResult) and source.bounding_boxes:
            lines = self._lines_from_result(source)
            slots, dropped = self._classify_lines([text for text, _ in lines])
            self._fill_from_layout(slots, [lines[i] for i in dropped])
        else:
            text = source.recognized_text if isinstance(source, OCRResult) else source
            slots, _ = self._classify_lines(self._split_lines(text or ""))

        self._validate(slots)
        confidence = DEFAULT_CONFIDENCE if slots else 0.0
        return ExtractedCardFields(confidence=confidence, source=ParseSource.LOCAL, **slots)

    # =========================
    # CORE PARSING
    # =========================

    def _classify_lines(self, lines: List[str]) -> Tuple[Dict[str, str], List[int]]:
        """Return the filled slots and the indexes of the dropped lines."""
        logger.debug(f"Parsing {len(lines)} lines")

        slots: Dict[str, str] = {}
        dropped: List[int] = []
        for index, line in enumerate(lines):
            classified = self._classify(line, slots)
            if classified is None or not classified[1]:
                logger.debug(f"Dropped line: {line!r}")
                dropped.append(index)
                continue
            slot, value = classified
            slots[slot] = value
            logger.debug(f"{slot} <- {value!r}")

        return slots, dropped

    def _classify(self, line: str, slots: Dict[str, str]) -> Optional[Tuple[str, str]]:
        """Return (slot, value) for the first matching empty slot, or None to drop."""
        label, body = strip_label(line)
        if label == "fax":
            return None

        landline = self.patterns["landline"].search(line)
        if landline and "phone" not in slots:
            return "phone", format_phone(landline.group(0))

        is_mobile = bool(self.patterns["mobile_prefix"].match(body))
        if is_mobile and "mobile" not in slots:
            return "mobile", self._extract_mobile(body)

        is_email = self._is_email(body)
        if is_email and "email" not in slots:
            return "email", extract_email(body) or body

        is_website = body.lower().startswith(("http", "www."))
        if is_website and "website" not in slots:
            return "website", clean_website(body.split()[0])

        is_address = label == "address" or self._has_address_keyword(line)
        if is_address and "address" not in slots:
            return "address", clean_address(body)

        if landline or is_mobile or is_email or is_website or is_address or label in CONTACT_LABELS:
            return None

        if "name" not in slots:
            return "name", line

        if "company" not in slots:
            return "company", line

        if "job_title" not in slots and self._has_title_keyword(line):
            return "job_title", line

        return None

    # =========================
    # LAYOUT AND VALIDATION
    # =========================

    def _fill_from_layout(self, slots: Dict[str, str], dropped: List[Line]) -> None:
        """Fill empty name, company and title slots from dropped lines by position."""
        candidates = [(text, frame) for text, frame in dropped if not self._carries_contact_data(text)]
        fillers = [
            ("name", NAME_BAND, self._looks_like_name),
            ("company", COMPANY_BAND, self._has_company_keyword),
            ("job_title", TITLE_BAND, self._has_title_keyword),
        ]

        for slot, band, accepts in fillers:
            if slot in slots:
                continue
            for candidate in candidates:
                text, frame = candidate
                if _in_band(frame, band) and accepts(text):
                    slots[slot] = text
                    candidates.remove(candidate)
                    logger.debug(f"{slot} <- {text!r} (layout)")
                    break

    def _validate(self, slots: Dict[str, str]) -> None:
        """Clear contact values whose format is not plausible."""
        checks = {
            "email": EMAIL_PATTERN,
            "phone": self.patterns["valid_phone"],
            "mobile": self.patterns["valid_mobile"],
        }
        for slot, pattern in checks.items():
            value = slots.get(slot)
            if value is not None and not pattern.search(value):
                logger.debug(f"Cleared invalid {slot}: {value!r}")
                del slots[slot]

    # =========================
    # HELPERS
    # =========================

    @staticmethod
    def _split_lines(text: str) -> List[str]:
        return [l.strip() for l in text.splitlines() if l.strip()]

    @staticmethod
    def _lines_from_result(ocr_result: OCRResult) -> List[Line]:
        """Box texts with their frames, top to bottom, then left to right."""
        lines = []
        for box in sorted(ocr_result.bounding_boxes, key=lambda b: (b.frame.y, b.frame.x)):
            text = box.text.strip()
            if not text:
                text = next((c.strip() for c in box.alternate_candidates if c.strip()), "")
            if text:
                lines.append((text, box.frame))
        return lines

    def _extract_mobile(self, body: str) -> str:
        m = self.patterns["mobile"].search(body)
        return format_phone(m.group(0) if m else body)

    @staticmethod
    def _is_email(text: str) -> bool:
        at = text.find("@")
        return at != -1 and "." in text[at + 1:]

    def _carries_contact_data(self, line: str) -> bool:
        label, body = strip_label(line)
        return (
            label is not None
            or bool(self.patterns["landline"].search(line))
            or bool(self.patterns["mobile_prefix"].match(body))
            or self._is_email(body)
            or body.lower().startswith(("http", "www."))
        )

    def _has_address_keyword(self, line: str) -> bool:
        if any(k in line for k in ADDRESS_KEYWORDS):
            return True
        # English keywords only count next to a house or floor number
        return bool(self.patterns["address"].search(line)) and any(c.isdigit() for c in line)

    def _has_title_keyword(self, line: str) -> bool:
        return any(k in line for k in TITLE_KEYWORDS) or bool(self.patterns["title"].search(line))

    def _has_company_keyword(self, line: str) -> bool:
        return any(k in line for k in COMPANY_KEYWORDS) or bool(self.patterns["company"].search(line))

    def _looks_like_name(self, line: str) -> bool:
        if any(c.isdigit() for c in line):
            return False
        if self._has_company_keyword(line) or self._has_title_keyword(line):
            return False
        return bool(self.patterns["name_en"].match(line) or self.patterns["name_zh"].match(line))


def _in_band(frame: NormalizedRect, band: Tuple[float, float]) -> bool:
    top, bottom = band
    return frame.y <= bottom and frame.y + frame.height >= top
