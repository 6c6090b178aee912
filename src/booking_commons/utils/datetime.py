"""
DateTime utilities for consistent timezone handling.
"""
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """
    Get the current UTC time with timezone awareness.
    
    Returns:
        datetime: Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime, source_tz: Optional[str] = None) -> datetime:
    """
    Convert a datetime to UTC timezone.
    
    Args:
        dt: Datetime to convert
        source_tz: Source timezone name (e.g., 'Europe/Istanbul').
                   If None and dt is naive, assumes UTC.
    
    Returns:
        datetime: Datetime in UTC timezone
    
    Raises:
        zoneinfo.ZoneInfoNotFoundError: If source_tz is not a known zone
    """
    if dt.tzinfo is None:
        if source_tz:
            dt = dt.replace(tzinfo=ZoneInfo(source_tz))
        else:
            dt = dt.replace(tzinfo=timezone.utc)
    
    if dt.tzinfo != timezone.utc:
        dt = dt.astimezone(timezone.utc)
    
    return dt


def parse_iso8601(date_string: str, source_tz: Optional[str] = None) -> datetime:
    """
    Parse an ISO 8601 date string to UTC datetime.
    
    Naive strings are interpreted in ``source_tz`` (UTC when omitted).
    
    Args:
        date_string: ISO 8601 formatted date string
        source_tz: Timezone used for strings without an offset
    
    Returns:
        datetime: UTC datetime with timezone info
    
    Raises:
        ValueError: If the string is not ISO 8601
    """
    dt = datetime.fromisoformat(date_string.strip().replace('Z', '+00:00'))
    return to_utc(dt, source_tz)
