from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def today_iso(today: Optional[date] = None) -> str:
    """Calendar date as YYYY-MM-DD, the format the backend expects for date_sold."""
    today = today or date.today()
    return f"{today.year:04d}-{today.month:02d}-{today.day:02d}"


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" and "YYYY-MM-DDTHH:MM" (naive) are interpreted as UTC
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

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def display_date(value: Optional[str], placeholder: str = "-") -> str:
    """Render a backend timestamp as YYYY-MM-DD for tables; unparseable input is shown as-is."""
    if not value:
        return placeholder
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        return value
    if dt is None:
        return placeholder
    return dt.strftime("%Y-%m-%d")


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


def utc_now_iso() -> str:
    """Timestamp for date_added on new tools."""
    return to_utc_z(datetime.now(timezone.utc))
