"""Coupon code generation and format validation.

Codes look like ``241216ABCD23``: a ``YYMMDD`` date prefix followed by six
characters from an alphabet without look-alike glyphs. They are redemption
codes for humans to read out, not security tokens; uniqueness is enforced by
the database, not by construction.
"""
import re
import secrets
from datetime import datetime
from typing import Optional

from coupon_survey.utils.datetime_helpers import local_now

# Uppercase letters and digits without 0, O, 1, I, L
COUPON_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
COUPON_PREFIX_LENGTH = 6
COUPON_SUFFIX_LENGTH = 6
COUPON_LENGTH = COUPON_PREFIX_LENGTH + COUPON_SUFFIX_LENGTH

_COUPON_PATTERN = re.compile(
    rf"^\d{{{COUPON_PREFIX_LENGTH}}}[{COUPON_ALPHABET}]{{{COUPON_SUFFIX_LENGTH}}}$"
)


def generate_coupon_code(now: Optional[datetime] = None, tz_name: str = "UTC") -> str:
    """Generate a coupon code dated ``now`` (defaults to the current time in ``tz_name``)."""
    if now is None:
        now = local_now(tz_name)
    suffix = "".join(secrets.choice(COUPON_ALPHABET) for _ in range(COUPON_SUFFIX_LENGTH))
    return f"{now:%y%m%d}{suffix}"


def is_valid_coupon_code(code: str) -> bool:
    """Check a code has the 6 digits + 6 alphabet characters shape."""
    if not isinstance(code, str):
        return False
    return _COUPON_PATTERN.fullmatch(code) is not None


def normalize_coupon_code(code: str) -> str:
    """Uppercase and trim a code typed in by an operator."""
    return code.strip().upper()
