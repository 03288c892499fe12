from __future__ import annotations

from datetime import datetime

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


def now_local() -> datetime:
    """Return the current time as an aware datetime in the system's local timezone."""
    return datetime.now().astimezone()


def format_local(dt: datetime | None = None) -> str:
    """Format a datetime (default: now) using the shared local ISO pattern."""
    if dt is None:
        dt = now_local()
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=now_local().tzinfo)
    else:
        dt = dt.astimezone()
    return dt.strftime(ISO_FORMAT)
