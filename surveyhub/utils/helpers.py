from datetime import datetime, timezone
from typing import Optional

def get_utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)

def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Make a datetime timezone-aware

    SQLite hands back naive datetimes even for timezone=True columns; those
    are stored in UTC, so a naive value is read as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def window_state(start_date: Optional[datetime], end_date: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Where ``now`` falls relative to a survey's response window

    Returns:
        "not_started", "closed" or "open". Missing bounds are unbounded.
    """
    now = as_utc(now) or get_utc_now()
    start_date = as_utc(start_date)
    end_date = as_utc(end_date)
    if start_date and now < start_date:
        return "not_started"
    if end_date and now > end_date:
        return "closed"
    return "open"

