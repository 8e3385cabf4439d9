"""Pacific local-time helpers (DST-aware via pytz)."""
from __future__ import annotations

from datetime import datetime, timezone

import pytz

PACIFIC = pytz.timezone("America/Los_Angeles")


def to_pacific(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("expected a timezone-aware datetime")
    return dt.astimezone(PACIFIC)


def pacific_hour_of_day(dt: datetime) -> float:
    """Fractional hour of day in Pacific local time, in [0, 24)."""
    local = to_pacific(dt)
    return local.hour + local.minute / 60.0 + local.second / 3600.0


def is_pacific_weekend(dt: datetime) -> bool:
    return to_pacific(dt).weekday() >= 5


def from_pacific(naive_local: datetime) -> datetime:
    """Interpret a naive Pacific wall-clock time and return it in UTC."""
    return PACIFIC.localize(naive_local).astimezone(timezone.utc)
