"""Shared validation utilities"""

import re
from datetime import datetime, time
from typing import Optional
from urllib.parse import urlparse

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def validate_time_string(value: str) -> str:
    """
    Validate a wall-clock time in 24h "HH:MM" format.

    Raises:
        ValueError: If the string is not a valid HH:MM time
    """
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        raise ValueError(f"Invalid time format '{value}', expected HH:MM")
    return value.strip()


def parse_time_string(value: str) -> time:
    """Parse a validated "HH:MM" string into a time object"""
    hours, minutes = validate_time_string(value).split(":")
    return time(int(hours), int(minutes))


def to_server_time(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize an incoming datetime to a naive value in server local time.

    Stored timestamps are naive and interpreted in the server's canonical
    timezone; aware input is converted, naive input is taken as-is.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def validate_meeting_url(url: Optional[str]) -> Optional[str]:
    """
    Validate a telehealth meeting link.

    Raises:
        ValueError: If the URL is not an absolute https URL
    """
    if url is None:
        return url

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.netloc:
        raise ValueError("Meeting link must be a valid https URL")
    if len(url) > 2000:
        raise ValueError("Meeting link is too long")
    return url
