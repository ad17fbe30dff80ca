"""Datetime utility functions for timezone handling."""
from datetime import datetime, UTC
from zoneinfo import ZoneInfo


def local_now(tz_name: str = "UTC") -> datetime:
    """
    Return the current time in the named IANA timezone.

    Example:
        >>> local_now("Asia/Bangkok").utcoffset().total_seconds()
        25200.0
    """
    return datetime.now(UTC).astimezone(ZoneInfo(tz_name))
