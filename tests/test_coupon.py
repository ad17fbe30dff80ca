"""Tests for coupon code generation and validation."""
import string
from datetime import datetime, UTC
from zoneinfo import ZoneInfo

import pytest

from coupon_survey.services import coupon as coupon_module
from coupon_survey.services.coupon import (
    COUPON_ALPHABET,
    COUPON_LENGTH,
    generate_coupon_code,
    is_valid_coupon_code,
    normalize_coupon_code,
)
from coupon_survey.utils.datetime_helpers import local_now


def test_alphabet_excludes_ambiguous_characters():
    for char in "0O1IL":
        assert char not in COUPON_ALPHABET
    assert len(set(COUPON_ALPHABET)) == len(COUPON_ALPHABET)
    assert set(COUPON_ALPHABET) == set(string.ascii_uppercase + string.digits) - set("0O1IL")


def test_generated_code_shape():
    for _ in range(200):
        code = generate_coupon_code()
        assert len(code) == COUPON_LENGTH == 12
        assert code[:6].isdigit()
        assert all(char in COUPON_ALPHABET for char in code[6:])
        assert is_valid_coupon_code(code)


def test_date_prefix_uses_given_time():
    code = generate_coupon_code(now=datetime(2024, 1, 15, 9, 30, tzinfo=UTC))
    assert code.startswith("240115")


def test_date_prefix_defaults_to_today_in_timezone():
    before = local_now("Asia/Bangkok").strftime("%y%m%d")
    code = generate_coupon_code(tz_name="Asia/Bangkok")
    after = local_now("Asia/Bangkok").strftime("%y%m%d")
    assert code[:6] in {before, after}


def test_timezone_changes_calendar_day():
    """23:30 UTC is already the next day in Bangkok."""
    late_utc = datetime(2024, 3, 31, 23, 30, tzinfo=UTC)
    assert generate_coupon_code(now=late_utc).startswith("240331")
    assert generate_coupon_code(now=late_utc.astimezone(ZoneInfo("Asia/Bangkok"))).startswith("240401")


def test_suffix_drawn_from_alphabet(monkeypatch):
    picks = iter("ABCDEF")
    monkeypatch.setattr(coupon_module.secrets, "choice", lambda alphabet: next(picks))
    code = generate_coupon_code(now=datetime(2025, 12, 16, tzinfo=UTC))
    assert code == "251216ABCDEF"


@pytest.mark.parametrize(
    "code",
    [
        "",
        "240115ABCDE",        # too short
        "240115ABCDEFG",      # too long
        "24O115ABCDEF",       # letter in date prefix
        "240115ABCDE0",       # zero in suffix
        "240115ABCDEO",       # letter O in suffix
        "240115ABCDE1",       # one in suffix
        "240115ABCDEI",
        "240115ABCDEL",
        "240115abcdef",       # lowercase
        "240115ABC-EF",
    ],
)
def test_invalid_codes_rejected(code):
    assert is_valid_coupon_code(code) is False


def test_non_string_rejected():
    assert is_valid_coupon_code(None) is False
    assert is_valid_coupon_code(240115) is False


def test_normalize_coupon_code():
    assert normalize_coupon_code("  240115ab23cd ") == "240115AB23CD"
    assert is_valid_coupon_code(normalize_coupon_code("240115ab23cd"))
