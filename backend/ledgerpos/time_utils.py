from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.utcnow()


def local_now() -> datetime:
    """Wall-clock time of the terminal; business dates follow the shop, not UTC."""
    return datetime.now().replace(microsecond=0)


def local_today() -> date:
    return local_now().date()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_business_date(value: Optional[str | date]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD business date. Datetime strings are truncated to their
    date part, so "2026-01-31T18:45:00" is business date 2026-01-31.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s.split("T")[0])


def days_between(earlier: date | datetime, as_of: date | datetime) -> int:
    """Whole days from earlier to as_of (negative if earlier is in the future)."""
    if isinstance(earlier, datetime):
        earlier = earlier.date()
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    return (as_of - earlier).days


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_local_iso(dt: Optional[datetime]) -> Optional[str]:
    """Business timestamps are stored as local wall-clock time without offset."""
    if dt is None:
        return None
    return dt.replace(microsecond=0).isoformat()
