from __future__ import annotations

import calendar
from datetime import date, datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


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
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


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


def get_zone(name: str | None) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def to_local(dt: datetime, zone: tzinfo) -> datetime:
    """UTC-naive -> aware datetime in the given zone."""
    return dt.replace(tzinfo=timezone.utc).astimezone(zone)


def to_utc_naive(dt: datetime) -> datetime:
    """Aware -> UTC-naive; a naive value is returned unchanged (already UTC)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_day_start(now: datetime, zone: tzinfo) -> datetime:
    """Local midnight of the day containing `now`, returned UTC-naive."""
    local = to_local(now, zone)
    midnight = datetime(local.year, local.month, local.day, tzinfo=zone)
    return to_utc_naive(midnight)


def local_month_start(now: datetime, zone: tzinfo) -> datetime:
    """Local midnight on the 1st of the month containing `now`, returned UTC-naive."""
    local = to_local(now, zone)
    first = datetime(local.year, local.month, 1, tzinfo=zone)
    return to_utc_naive(first)


def local_date(dt: datetime, zone: tzinfo) -> date:
    return to_local(dt, zone).date()


def add_months(dt: datetime, months: int) -> datetime:
    """
    Calendar month arithmetic. The day is clamped to the target month's
    length (Jan 31 + 1 month -> Feb 28/29).
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)
