# Overview: UTC timestamp helpers shared by models, sessions and date-range reports.

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time in UTC, stored naive; every timestamp column uses this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime into a naive UTC datetime.

    Blank input gives None. A bare date is midnight UTC, a naive datetime is
    taken as UTC, and an offset (or trailing Z) is converted to UTC.
    Raises ValueError for anything else.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    if len(text) == 10:
        day = date.fromisoformat(text)
        return datetime(day.year, day.month, day.day)

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def inclusive_day_range(start: str, end: str) -> tuple[datetime, datetime]:
    """
    Half-open [start, end + 1 day) bounds for a report window.

    The end date is inclusive: a sale at 23:59 on the end day falls inside.
    """
    lower = parse_iso_datetime(start)
    upper = parse_iso_datetime(end)
    if lower is None or upper is None:
        raise ValueError("both bounds are required")
    return lower, upper + timedelta(days=1)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 seconds with a trailing Z; naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
