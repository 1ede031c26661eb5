# Overview: UTC clock and date-window helpers shared by orders, history and reports.

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

# All stored timestamps are naive UTC; tzinfo is attached only on output.
UTC = timezone.utc


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a date or datetime query value into naive UTC.

    Blank input gives None. A bare date ("2024-06-01") means midnight UTC;
    offsets, including a trailing "Z", are converted to UTC. Raises
    ValueError on anything fromisoformat rejects.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return as_naive_utc(datetime.fromisoformat(text))


def inclusive_range(
    start: Optional[datetime], end: Optional[datetime]
) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn a [from, to] date filter into a half-open [from, to + 1 day) window.

    The "to" bound covers the whole of that day, matching how shop owners pick
    ranges ("1st to 7th" includes sales made on the 7th).
    """
    if end is None:
        return start, None
    return start, end + timedelta(days=1)


def within_range(dt: datetime, start: Optional[datetime], end_limit: Optional[datetime]) -> bool:
    """Half-open window check; timezone-aware values from the database are compared as naive UTC."""
    dt = as_naive_utc(dt)
    after_start = start is None or dt >= start
    before_end = end_limit is None or dt < end_limit
    return after_start and before_end


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 at second precision with a trailing "Z"; naive values are taken as UTC."""
    if dt is None:
        return None
    stamp = as_naive_utc(dt).replace(microsecond=0)
    return stamp.isoformat() + "Z"
