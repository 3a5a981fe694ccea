"""Calendar keys: the single place that decides which local day an instant belongs to.

Every "today" in the challenge engine comes from here, computed from an explicit
``now`` and timezone so call sites cannot drift apart.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

DAY_KEY_FORMAT = "%Y-%m-%d"


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Map a configured IANA name to a tzinfo; empty means the process-local zone (None)."""
    if not name:
        return None
    return ZoneInfo(name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def key_of(instant: datetime, tz: Optional[tzinfo] = None) -> date:
    """Local calendar day of an instant. Naive instants are read as UTC."""
    aware = instant if instant.tzinfo else instant.replace(tzinfo=timezone.utc)
    return aware.astimezone(tz).date()


def today(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> date:
    return key_of(now or utc_now(), tz)


def add_days(day: date, n: int) -> date:
    return day + timedelta(days=n)


def days_between(a: date, b: date) -> int:
    """Signed number of days from a to b."""
    return (b - a).days


def format_day(day: date) -> str:
    return day.strftime(DAY_KEY_FORMAT)


def parse_day(key: str) -> date:
    """Parse a canonical YYYY-MM-DD key; anything else (e.g. "2024-1-5") is a ValueError."""
    parsed = datetime.strptime(key, DAY_KEY_FORMAT).date()
    if format_day(parsed) != key:
        raise ValueError(f"Non-canonical day key: {key!r}")
    return parsed


def format_instant(moment: datetime) -> str:
    """UTC ISO-8601 with a Z suffix, the format used by stored documents and events."""
    aware = moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
    return aware.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
