"""
Timestamp conversion for provider metadata.

RemoteFileInfo.modified_time is always epoch milliseconds.
"""

import calendar
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional


def datetime_to_epoch_ms(value: Optional[datetime]) -> int:
    """Naive datetimes are treated as UTC (the Dropbox SDK returns those)."""
    if value is None:
        return 0
    if value.tzinfo is None:
        return calendar.timegm(value.utctimetuple()) * 1000 + value.microsecond // 1000
    return int(value.timestamp() * 1000)


def iso_to_epoch_ms(value: Optional[str]) -> int:
    """RFC 3339 timestamp as returned by the Drive API ("2024-01-01T10:00:00.000Z")."""
    if not value:
        return 0
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return 0
    return datetime_to_epoch_ms(parsed)


def http_date_to_epoch_ms(value: Optional[str]) -> int:
    """RFC 1123 date as used by WebDAV getlastmodified."""
    if not value:
        return 0
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return datetime_to_epoch_ms(parsed)
