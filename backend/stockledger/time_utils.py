from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
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

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    return to_utc_naive(datetime.fromisoformat(s))


def to_utc_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are already UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def local_date(dt: datetime, zone: tzinfo) -> date:
    """Calendar day of a UTC-naive datetime as seen in `zone`."""
    return dt.replace(tzinfo=timezone.utc).astimezone(zone).date()


def local_midnight_utc(day: date, zone: tzinfo) -> datetime:
    """UTC-naive instant of local midnight at the start of `day`."""
    return to_utc_naive(datetime.combine(day, time.min, tzinfo=zone))


def window_start_for_days(days: int, zone: tzinfo, now: datetime | None = None) -> datetime:
    """
    Start of a `days`-long calendar window that includes today.

    Returns the UTC-naive instant of local midnight `days - 1` days before now.
    """
    now = now or utcnow()
    today = local_date(now, zone)
    return local_midnight_utc(today - timedelta(days=max(days, 1) - 1), zone)
