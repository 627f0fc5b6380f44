"""UTC timestamp wire formats used by the platform API.

Calendar queries and slot mutations take millisecond-precision timestamps
(``2025-01-15T14:30:00.000Z``); the upcoming-reviews query takes whole
seconds (``2025-01-15T14:30:00Z``). Naive datetimes are treated as UTC.
"""

from datetime import datetime, timezone


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_millis(value: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ``, truncating to milliseconds."""
    value = _as_utc(value)
    return f"{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond // 1000:03d}Z"


def format_seconds(value: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SSZ``, truncating to whole seconds."""
    return f"{_as_utc(value):%Y-%m-%dT%H:%M:%S}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse either wire format (or any ISO 8601 offset) into an aware UTC datetime.

    Raises:
        ValueError: If the string is not a valid timestamp.
    """
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(value))
