"""Completion calculator — turns a finished active trip into a CompletedVesselTrip.

Pure functions, no I/O. A trip is only finalized when its start is a real
observed arrival (not the FIRST_TRIP_START sentinel) and its departure was
observed (``left_dock_actual``); otherwise the durations would be fiction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ferrywatch.models.active_vessel_trip import ActiveVesselTrip
from ferrywatch.models.completed_vessel_trip import CompletedVesselTrip

# Placeholder trip_start for a vessel first seen mid-trip (2020-01-01T00:00:00Z).
FIRST_TRIP_START = datetime(2020, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TripDurations:
    left_dock_delay: Optional[float]
    at_dock_duration: float
    at_sea_duration: float
    total_duration: float


def is_first_trip_sentinel(trip_start: Optional[datetime]) -> bool:
    return trip_start is not None and trip_start == FIRST_TRIP_START


def duration_minutes(start: datetime, end: datetime) -> float:
    """Minutes between two instants, rounded half-up to one decimal."""
    minutes = (end - start).total_seconds() / 60.0
    return math.floor(minutes * 10 + 0.5) / 10


def compute_trip_durations(
    trip_start: datetime,
    left_dock_actual: Optional[datetime],
    scheduled_departure: Optional[datetime],
    trip_end: datetime,
) -> Optional[TripDurations]:
    """Return None when the trip cannot be finalized (sentinel start or no departure)."""
    if is_first_trip_sentinel(trip_start) or left_dock_actual is None:
        return None
    delay = (
        duration_minutes(scheduled_departure, left_dock_actual)
        if scheduled_departure is not None
        else None
    )
    return TripDurations(
        left_dock_delay=delay,
        at_dock_duration=duration_minutes(trip_start, left_dock_actual),
        at_sea_duration=duration_minutes(left_dock_actual, trip_end),
        total_duration=duration_minutes(trip_start, trip_end),
    )


def make_trip_key(
    vessel_abbrev: str,
    scheduled_departure: Optional[datetime],
    fallback: datetime,
) -> str:
    """``{vessel_abbrev}_{YYYY-MM-DD_HH:MM}`` in UTC, e.g. ``WEN_2025-03-04_17:05``."""
    when = (scheduled_departure or fallback).astimezone(timezone.utc)
    return f"{vessel_abbrev}_{when.strftime('%Y-%m-%d_%H:%M')}"


def build_completed_trip(
    active: ActiveVesselTrip, trip_end: datetime
) -> Optional[CompletedVesselTrip]:
    """Finalize ``active`` as of ``trip_end`` (the arrival observation time)."""
    durations = compute_trip_durations(
        active.trip_start, active.left_dock_actual, active.scheduled_departure, trip_end
    )
    if durations is None:
        return None

    fields = active.trip_fields()
    fields.update(at_dock=True, left_dock_delay=durations.left_dock_delay)
    return CompletedVesselTrip(
        **fields,
        trip_key=make_trip_key(active.vessel_abbrev, active.scheduled_departure, active.timestamp),
        trip_end=trip_end,
        at_dock_duration=durations.at_dock_duration,
        at_sea_duration=durations.at_sea_duration,
        total_duration=durations.total_duration,
    )
