# card_extractor/postprocessing.py
"""
Post-processing helpers for extracted field values.
Cleans phone numbers, addresses, websites and emails after line classification.
"""
import re
from typing import Optional, Tuple

# Leading field labels printed on cards, mapped to the kind of value they announce
LABELS = {
    "phone": ["tel", "phone", "電話", "市話", "公司電話"],
    "mobile": ["mobile", "cell", "mob", "手機", "行動電話", "行動"],
    "fax": ["fax", "傳真"],
    "email": ["e-mail", "email", "mail", "信箱", "電子郵件"],
    "website": ["website", "web", "url", "網址", "網站"],
    "address": ["address", "addr", "add", "地址", "公司地址"],
}

# Longest labels first so "e-mail" wins over "mail"
_LABEL_PATTERN = re.compile(
    r"^\s*(?P<label>"
    + "|".join(
        re.escape(label)
        for label in sorted(
            (label for labels in LABELS.values() for label in labels),
            key=len,
            reverse=True,
        )
    )
    + r")\s*[:：﹕︰.]?\s*(?=\S)",
    re.IGNORECASE,
)

_LABEL_KINDS = {label.lower(): kind for kind, labels in LABELS.items() for label in labels}

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

# Splits "02-1234-5678 #105", "02-1234-5678 ext. 105" and "02-1234-5678 分機105"
_EXTENSION_PATTERN = re.compile(r"\s*(?:#|ext\.?|分機)\s*(\d{1,6})\s*$", re.IGNORECASE)


def strip_label(line: str) -> Tuple[Optional[str], str]:
    """
    Split a leading field label off a card line.

    Args:
        line: One trimmed line of OCR text

    Returns:
        (label kind or None, remaining text)
    """
    m = _LABEL_PATTERN.match(line)
    if not m:
        return None, line.strip()

    # "Add" / "Web" glued to the start of ordinary words ("Addison", "Webster") are not labels
    label = m.group("label")
    rest = line[m.end():]
    if label.isascii() and m.end("label") == m.end() and rest[:1].isalpha():
        return None, line.strip()

    return _LABEL_KINDS[label.lower()], rest.strip()


def format_phone(phone: str) -> str:
    """
    Normalize a Taiwanese phone number into dashed groups.

    Keeps an extension, if any, as " #ext".

    Args:
        phone: Raw phone text as found on the card

    Returns:
        Formatted phone number
    """
    extension = ""
    m = _EXTENSION_PATTERN.search(phone)
    if m:
        extension = m.group(1)
        phone = phone[:m.start()]

    formatted = _format_phone_number(phone)
    return f"{formatted} #{extension}" if extension else formatted


def _format_phone_number(phone: str) -> str:
    cleaned = re.sub(r"[^\d+]", "", phone)

    if cleaned.startswith("+886"):
        rest = cleaned[4:]
        if rest.startswith("0"):
            rest = rest[1:]
        if rest.startswith("9") and len(rest) == 9:
            return f"+886-{rest[:3]}-{rest[3:6]}-{rest[6:]}"
        if not rest.startswith("9") and 8 <= len(rest) <= 9:
            area, number = rest[0], rest[1:]
            return f"+886-{area}-{number[:4]}-{number[4:]}"
        return cleaned

    # Toll-free 0800/0809 and the 4-digit outlying-island area codes
    if cleaned.startswith(("0800", "0809")) and len(cleaned) == 10:
        return f"{cleaned[:4]}-{cleaned[4:7]}-{cleaned[7:]}"
    if cleaned.startswith(("0826", "0836")) and len(cleaned) == 9:
        return f"{cleaned[:4]}-{cleaned[4:]}"

    if cleaned.startswith("09") and len(cleaned) == 10:
        return f"{cleaned[:4]}-{cleaned[4:7]}-{cleaned[7:]}"

    if cleaned.startswith("0"):
        if len(cleaned) == 10:
            return f"{cleaned[:2]}-{cleaned[2:6]}-{cleaned[6:]}"
        if len(cleaned) == 9:
            return f"{cleaned[:2]}-{cleaned[2:5]}-{cleaned[5:]}"
        if len(cleaned) == 11:
            return f"{cleaned[:3]}-{cleaned[3:6]}-{cleaned[6:]}"

    return cleaned


def clean_address(address: str) -> str:
    """Remove list numbering ("1.", "2)") and a leading postal code."""
    cleaned = re.sub(r"^\d{1,2}[.)）、]\s*", "", address.strip())
    cleaned = re.sub(r"^\d{3,5}\s*", "", cleaned)
    return cleaned.strip()


def clean_website(website: str) -> str:
    """Lower-case a URL and drop trailing punctuation."""
    return website.strip().rstrip(".,;，；").lower()


def extract_email(text: str) -> Optional[str]:
    m = EMAIL_PATTERN.search(text)
    return m.group(0) if m else None
