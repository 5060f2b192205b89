"""
AI-based structured extraction of business card fields.

Sends the OCR text (and, if allowed, the card image) to Gemini and maps the
JSON answer onto ExtractedCardFields. Gemini Flash costs roughly $0.0001 per
card; the free tier allows 1500 requests/day.
"""

import asyncio
import json
import logging
import math
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .errors import (
    InvalidCredentialError,
    InvalidResponseError,
    ParsingFailedError,
    QuotaExceededError,
    RemoteExtractionError,
    RemoteNetworkError,
    ServiceUnavailableError,
)
from .models import ExtractedCardFields, ParseSource

logger = logging.getLogger(__name__)

# Confidence used when the model returns fields without a confidence value
DEFAULT_AI_CONFIDENCE = 0.85

# Response keys and the record fields they fill
RESPONSE_FIELDS = {
    "name": "name",
    "namePhonetic": "name_phonetic",
    "jobTitle": "job_title",
    "company": "company",
    "department": "department",
    "email": "email",
    "phone": "phone",
    "mobile": "mobile",
    "address": "address",
    "website": "website",
}

# Values the model may legitimately send as JSON numbers
_NUMERIC_FIELDS = {"phone", "mobile"}


class RemoteExtractionClient(ABC):
    """A service turning OCR text into structured card fields."""

    @abstractmethod
    def is_available(self) -> bool:
        """Cheap check, no I/O: can extract() be attempted at all?"""

    @abstractmethod
    async def extract(self, ocr_text: str, image_bytes: Optional[bytes] = None) -> ExtractedCardFields:
        """
        Extract card fields remotely.

        Raises:
            RemoteExtractionError: one subclass per failure kind
        """


# =========================
# RESPONSE CONTRACT
# =========================

def parse_extraction_payload(response_text: Optional[str]) -> ExtractedCardFields:
    """
    Map a model answer onto an ExtractedCardFields record.

    Args:
        response_text: JSON object, optionally wrapped in a Markdown code fence

    Returns:
        Record with source AI

    Raises:
        InvalidResponseError: not JSON, not an object, or badly typed values
        ParsingFailedError: no field and no confidence in the object
    """
    if not response_text or not response_text.strip():
        raise InvalidResponseError("Empty response from extraction service")

    data = _load_json(response_text)
    if not isinstance(data, dict):
        raise InvalidResponseError(f"Expected a JSON object, got {type(data).__name__}")

    values: Dict[str, str] = {}
    for key, field_name in RESPONSE_FIELDS.items():
        raw = data.get(key, data.get(field_name))
        value = _coerce_text(field_name, raw)
        if value:
            values[field_name] = value

    confidence = _coerce_confidence(data.get("confidence"))

    if not values and confidence is None:
        raise ParsingFailedError("Response contained no card fields")

    if confidence is None:
        confidence = DEFAULT_AI_CONFIDENCE

    return ExtractedCardFields(confidence=confidence, source=ParseSource.AI, **values)


def _load_json(response_text: str) -> Any:
    """Parse JSON, accepting a Markdown code fence around it."""
    try:
        return json.loads(response_text)
    except json.JSONDecodeError:
        pass

    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response_text)
    if json_match:
        try:
            return json.loads(json_match.group(1))
        except json.JSONDecodeError:
            pass

    raise InvalidResponseError("Response is not valid JSON")


def _coerce_text(field_name: str, raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw.strip() or None
    if field_name in _NUMERIC_FIELDS and isinstance(raw, int) and not isinstance(raw, bool):
        return str(raw)
    raise InvalidResponseError(f"Field {field_name!r} has unexpected type {type(raw).__name__}")


def _coerce_confidence(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidResponseError(f"confidence must be a number, got {type(raw).__name__}")
    if math.isnan(raw) or not 0.0 <= raw <= 1.0:
        raise InvalidResponseError(f"confidence must be within [0, 1], got {raw}")
    return float(raw)


# =========================
# GEMINI CLIENT
# =========================

class GeminiCardExtractor(RemoteExtractionClient):
    """
    Gemini-based structured extraction for business cards.
    Uses Gemini Flash for cost-effective, high-accuracy field extraction.
    """

    # Extraction prompt - optimized for Taiwanese/English business cards
    EXTRACTION_PROMPT = """You parse OCR text recognized on a business card into structured contact data.

Return a JSON object with these exact keys (use null if not found):
{
    "name": "Full name of the person",
    "namePhonetic": "Phonetic or romanized name, if printed",
    "jobTitle": "Job title/position",
    "company": "Company/organization name",
    "department": "Department or division",
    "phone": "Office landline number",
    "mobile": "Mobile phone number",
    "email": "Email address",
    "website": "Website URL",
    "address": "Full postal address",
    "confidence": 0.0
}

Rules:
- Extract EXACTLY what is on the card, don't invent information
- Fix obvious OCR character confusions (l/1, O/0) in names and emails
- "confidence" is a number between 0 and 1 describing how sure you are
- Card language hint: {language}
- Return ONLY valid JSON, no markdown or explanation"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        timeout: float = 20.0,
        send_image: bool = False,
        language: str = "zh-TW",
        enabled: bool = True,
    ):
        """
        Initialize the Gemini extractor.

        Args:
            api_key: Google API key (or set GOOGLE_API_KEY / GEMINI_API_KEY env var)
            model: Gemini model name
            timeout: Seconds before a call is abandoned and reported as a network error
            send_image: Also send the card image alongside the OCR text
            language: Language hint included in the prompt
            enabled: Set False to turn the extractor off without removing the key
        """
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
        self.model_name = model
        self.timeout = timeout
        self.send_image = send_image
        self.language = language
        self.enabled = enabled

        if not self.api_key:
            logger.warning("No Gemini API key provided. Set GOOGLE_API_KEY or GEMINI_API_KEY env var")
            return

        logger.info(f"Gemini extractor initialized with model: {self.model_name}")

    def is_available(self) -> bool:
        """Check if Gemini is enabled and configured."""
        return self.enabled and bool(self.api_key)

    def describe(self) -> Dict[str, Any]:
        return {
            "provider": "gemini",
            "model": self.model_name,
            "available": self.is_available(),
            "send_image": self.send_image,
        }

    def _build_contents(self, ocr_text: str, image_bytes: Optional[bytes]) -> types.Content:
        prompt = self.EXTRACTION_PROMPT.replace("{language}", self.language)
        parts = [
            types.Part.from_text(text=prompt),
            types.Part.from_text(text=json.dumps({"ocr_text": ocr_text}, ensure_ascii=False)),
        ]
        if self.send_image and image_bytes:
            parts.append(types.Part.from_bytes(data=image_bytes, mime_type=_sniff_mime_type(image_bytes)))
        return types.Content(role="user", parts=parts)

    async def extract(self, ocr_text: str, image_bytes: Optional[bytes] = None) -> ExtractedCardFields:
        """
        Extract card fields from OCR text with Gemini.

        Args:
            ocr_text: Text recognized on the card
            image_bytes: Encoded card image, sent only when send_image is set

        Returns:
            ExtractedCardFields with source AI

        Raises:
            RemoteExtractionError: one subclass per failure kind
        """
        if not self.is_available():
            raise ServiceUnavailableError("Gemini not configured. Set GOOGLE_API_KEY environment variable.")

        logger.info(f"Calling Gemini API ({self.model_name}) for {len(ocr_text)} chars of OCR text")

        # The async client pools connections on the loop that opened them, and
        # every request may run on a new loop; the client lives for one call.
        client = genai.Client(api_key=self.api_key)
        try:
            async with client.aio as aio:
                response = await asyncio.wait_for(
                    aio.models.generate_content(
                        model=self.model_name,
                        contents=[self._build_contents(ocr_text, image_bytes)],
                        config=types.GenerateContentConfig(
                            temperature=0.1,
                            max_output_tokens=1024,
                            response_mime_type="application/json",
                        ),
                    ),
                    timeout=self.timeout,
                )
        except asyncio.TimeoutError as e:
            raise RemoteNetworkError(f"Gemini call timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise RemoteNetworkError(f"Gemini transport failure: {e}") from e
        except genai_errors.APIError as e:
            raise _map_api_error(e) from e
        except Exception as e:
            logger.error(f"Unexpected Gemini client failure: {type(e).__name__}: {e}", exc_info=True)
            raise RemoteNetworkError(f"Gemini call failed: {type(e).__name__}: {e}") from e

        response_text = response.text
        logger.debug(f"Gemini response: {(response_text or '')[:500]}")
        return parse_extraction_payload(response_text)


def _map_api_error(error: genai_errors.APIError) -> RemoteExtractionError:
    """Translate a Gemini API error into exactly one remote error kind."""
    code = error.code or 0
    status = (error.status or "").upper()
    message = error.message or str(error)

    if code in (401, 403) or "API_KEY_INVALID" in str(error) or "API key not valid" in message:
        return InvalidCredentialError(f"Gemini rejected the API key: {message}")
    if code == 429 or status == "RESOURCE_EXHAUSTED":
        return QuotaExceededError(f"Gemini quota exceeded: {message}")
    if code >= 500:
        return RemoteNetworkError(f"Gemini server error {code}: {message}")
    return InvalidResponseError(f"Gemini request failed with {code}: {message}")


def _sniff_mime_type(image_bytes: bytes) -> str:
    """Determine mime type from the image header."""
    if image_bytes.startswith(b"\x89PNG"):
        return "image/png"
    if image_bytes.startswith(b"GIF8"):
        return "image/gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes.startswith(b"BM"):
        return "image/bmp"
    return "image/jpeg"
