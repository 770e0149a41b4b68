"""
Timestamp normalization
All timestamps sent to the remote store are ISO-8601 UTC with milliseconds
"""

from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser


def format_timestamp(value: datetime) -> str:
    """Format as YYYY-MM-DDTHH:MM:SS.mmmZ (naive values are taken as UTC)"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def now_timestamp() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def ensure_timestamp(value: Any) -> Optional[str]:
    """Normalize value to an ISO timestamp, None when missing or unparseable

    Accepts datetime/date objects, epoch milliseconds and date or datetime
    strings.
    """
    if value is None or value == "":
        return None

    if isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return format_timestamp(value)

    if isinstance(value, date):
        return format_timestamp(datetime(value.year, value.month, value.day))

    if isinstance(value, (int, float)):
        try:
            return format_timestamp(
                datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
            )
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        try:
            return format_timestamp(date_parser.isoparse(value.strip()))
        except (ValueError, OverflowError):
            return None

    return None


def timestamp_or_now(value: Any) -> str:
    """Normalize value, substituting the current time when unusable"""
    return ensure_timestamp(value) or now_timestamp()
