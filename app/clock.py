"""Clock source.

Timestamps are stored as naive UTC datetimes, so everything that compares
against a stored value goes through ``utcnow()``.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time in UTC without tzinfo."""
    return datetime.now(UTC).replace(tzinfo=None)
