"""
Tests for field value post-processing.
"""

import pytest

from card_extractor.postprocessing import (
    clean_address,
    clean_website,
    extract_email,
    format_phone,
    strip_label,
)


class TestStripLabel:
    """Test cases for label detection."""

    @pytest.mark.parametrize("line, expected", [
        ("Tel: 02-1234-5678", ("phone", "02-1234-5678")),
        ("電話：02-1234-5678", ("phone", "02-1234-5678")),
        ("手機 0912-345-678", ("mobile", "0912-345-678")),
        ("E-mail: wang@abc.com", ("email", "wang@abc.com")),
        ("Fax: 02-8765-4321", ("fax", "02-8765-4321")),
        ("傳真：02-8765-4321", ("fax", "02-8765-4321")),
        ("Web www.abc.com", ("website", "www.abc.com")),
        ("地址：台北市信義區信義路五段7號", ("address", "台北市信義區信義路五段7號")),
    ])
    def test_labels(self, line, expected):
        assert strip_label(line) == expected

    def test_no_label(self):
        assert strip_label("王大明") == (None, "王大明")

    def test_word_starting_with_label_is_not_label(self):
        assert strip_label("Addison Lee") == (None, "Addison Lee")
        assert strip_label("Webster Inc") == (None, "Webster Inc")


class TestFormatPhone:
    """Test cases for Taiwanese phone formatting."""

    @pytest.mark.parametrize("raw, expected", [
        ("0912345678", "0912-345-678"),
        ("0912 345 678", "0912-345-678"),
        ("(02)23456789", "02-2345-6789"),
        ("02-1234-5678", "02-1234-5678"),
        ("037123456", "03-712-3456"),
        ("04912345678", "049-123-45678"),
        ("+886 912 345 678", "+886-912-345-678"),
        ("+886-2-2345-6789", "+886-2-2345-6789"),
        ("+886 (0)2 2345 6789", "+886-2-2345-6789"),
        ("0800-123-456", "0800-123-456"),
        ("0800 123456", "0800-123-456"),
        ("0836-22345", "0836-22345"),
        ("082622345", "0826-22345"),
    ])
    def test_formats(self, raw, expected):
        assert format_phone(raw) == expected

    def test_extension_kept(self):
        assert format_phone("02-1234-5678 #105") == "02-1234-5678 #105"
        assert format_phone("02-1234-5678 ext. 105") == "02-1234-5678 #105"
        assert format_phone("02-1234-5678分機105") == "02-1234-5678 #105"

    def test_unknown_shape_keeps_digits(self):
        assert format_phone("555-1234") == "5551234"


class TestCleaners:
    """Test cases for address, website and email cleanup."""

    def test_clean_address_strips_postal_code(self):
        assert clean_address("110 台北市信義區信義路五段7號") == "台北市信義區信義路五段7號"

    def test_clean_address_strips_numbering(self):
        assert clean_address("1. 台北市大安區") == "台北市大安區"

    def test_clean_website(self):
        assert clean_website("WWW.ABC.COM.") == "www.abc.com"

    def test_extract_email(self):
        assert extract_email("Email: wang@abc.com.tw") == "wang@abc.com.tw"
        assert extract_email("no email") is None
