from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

from dateutil.parser import isoparse

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_tz(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso(dt: datetime) -> str:
    """Serialize the way the sheet stores timestamps: UTC, millis, trailing Z."""
    dt = ensure_tz(dt).astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_dt(value: Any) -> datetime | None:
    """Best-effort parse of a cell value. Blank or garbage -> None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_tz(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    s = str(value).strip()
    if not s:
        return None
    try:
        return ensure_tz(isoparse(s))
    except (ValueError, OverflowError):
        return None


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=int(days))


def date_part(value: Any) -> date | None:
    dt = parse_dt(value)
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).date()


def fmt_date(value: Any) -> str:
    d = date_part(value)
    if d is None:
        return "—"
    return d.strftime("%d/%m/%Y")
