"""UTC time helpers.

All persisted timestamps are timezone-aware UTC and stored in
``TIMESTAMP WITH TIME ZONE`` columns.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
