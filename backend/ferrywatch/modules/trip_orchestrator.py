"""Trip orchestrator — applies each vessel location observation to the trip lifecycle.

One tick:
  1. fetch current locations from the WSF feed
  2. cache each as the vessel's latest location snapshot
  3. classify against the vessel's active trip (first trip / boundary / update)
  4. apply the state change: create, complete-and-replace, or patch

Vessels are processed one at a time, each inside its own SAVEPOINT, so a bad
record rolls back only that vessel's writes.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ferrywatch.models.active_vessel_trip import ActiveVesselTrip
from ferrywatch.modules import trip_store
from ferrywatch.modules.trip_completion import (
    FIRST_TRIP_START,
    build_completed_trip,
    duration_minutes,
)
from ferrywatch.modules.trip_events import TripEventEnum, classify_trip_event
from ferrywatch.schemas.vessel_location import VesselLocation
from ferrywatch.utils.terminals import TerminalLookup

logger = logging.getLogger(__name__)

# Fields copied from the location onto the trip and compared on update.
COMMON_FIELDS: tuple[str, ...] = (
    "vessel_id",
    "vessel_name",
    "departing_terminal_id",
    "departing_terminal_name",
    "departing_terminal_abbrev",
    "arriving_terminal_id",
    "arriving_terminal_name",
    "arriving_terminal_abbrev",
    "in_service",
    "at_dock",
    "scheduled_departure",
    "left_dock",
    "eta",
    "op_route_abbrev",
    "vessel_position_num",
)


class LocationSource(Protocol):
    def fetch_vessel_locations(self) -> list[VesselLocation]: ...


def new_trip_values(location: VesselLocation, lookup: TerminalLookup, trip_start) -> dict:
    values = {name: getattr(location, name) for name in COMMON_FIELDS}
    values.update(
        vessel_abbrev=lookup.vessel_abbrev(location.vessel_name),
        left_dock_actual=None,
        left_dock_delay=None,
        timestamp=location.timestamp,
        trip_start=trip_start,
    )
    return values


def diff_trip_update(trip: ActiveVesselTrip, location: VesselLocation) -> dict:
    """Field changes implied by ``location``; empty when nothing changed.

    Stale observations (not newer than the trip) and observations for another
    vessel produce no changes. A non-empty result always carries the new
    ``timestamp``.
    """
    if location.timestamp <= trip.timestamp or location.vessel_id != trip.vessel_id:
        return {}

    changes = {}
    for name in COMMON_FIELDS:
        value = getattr(location, name)
        if getattr(trip, name) != value:
            changes[name] = value

    if trip.at_dock and not location.at_dock:
        changes["left_dock_actual"] = location.timestamp
        scheduled = location.scheduled_departure or trip.scheduled_departure
        if scheduled is not None:
            changes["left_dock_delay"] = duration_minutes(scheduled, location.timestamp)

    if changes:
        changes["timestamp"] = location.timestamp
    return changes


def process_vessel(
    db: Session,
    active_trip: Optional[ActiveVesselTrip],
    location: VesselLocation,
    lookup: TerminalLookup,
) -> tuple[str, Optional[ActiveVesselTrip]]:
    """Apply one observation. Returns (outcome, resulting active trip)."""
    event = classify_trip_event(active_trip, location)

    if event is TripEventEnum.FIRST_TRIP:
        trip = trip_store.replace_active_trip(db, new_trip_values(location, lookup, FIRST_TRIP_START))
        logger.info("First observation of %s at %s", location.vessel_name, location.departing_terminal_abbrev)
        return "created", trip

    if event is TripEventEnum.TRIP_BOUNDARY:
        completed = build_completed_trip(active_trip, trip_end=location.timestamp)
        if completed is not None:
            trip_store.insert_completed_trip(db, completed)
            logger.info(
                "Completed %s %s->%s (dock %.1f, sea %.1f min)",
                completed.trip_key, completed.departing_terminal_abbrev,
                completed.arriving_terminal_abbrev, completed.at_dock_duration,
                completed.at_sea_duration,
            )
        else:
            logger.debug("Not finalizing %s: unknown trip start or departure", active_trip)
        trip = trip_store.replace_active_trip(
            db, new_trip_values(location, lookup, location.timestamp)
        )
        return ("completed" if completed is not None else "rolled_over"), trip

    changes = diff_trip_update(active_trip, location)
    if not changes:
        return "unchanged", active_trip
    trip_store.update_active_trip(db, active_trip, changes)
    return "updated", active_trip


def _apply_locations(
    db: Session, locations: list[VesselLocation], lookup: TerminalLookup
) -> tuple[Counter, list[dict]]:
    """Apply every location and commit. Safe to re-run after a rollback."""
    active_trips = trip_store.get_active_trips(db)
    counts: Counter = Counter()
    errors: list[dict] = []

    for location in locations:
        try:
            with db.begin_nested():
                trip_store.upsert_location_snapshot(db, location)
                outcome, trip = process_vessel(
                    db, active_trips.get(location.vessel_id), location, lookup
                )
            counts[outcome] += 1
            if trip is not None:
                active_trips[location.vessel_id] = trip
        except Exception as exc:
            logger.exception("Failed to process vessel %s (%s)", location.vessel_name, location.vessel_id)
            counts["failed"] += 1
            errors.append({
                "vessel_id": location.vessel_id,
                "vessel_name": location.vessel_name,
                "error": str(exc),
            })

    db.commit()
    return counts, errors


def run_orchestrator_tick(db: Session, source: LocationSource, lookup: TerminalLookup) -> dict:
    """Fetch locations and apply each to its vessel's trip. Commits once at the end.

    A failed commit rolls the session back and re-applies the same locations.

    Returns:
        {"locations": N, "created": a, "completed": b, "rolled_over": c,
         "updated": d, "unchanged": e, "failed": f, "errors": [...]}
    """
    locations = source.fetch_vessel_locations()
    counts, errors = trip_store.retry_write(
        db, lambda: _apply_locations(db, locations, lookup), "orchestrator tick commit"
    )
    summary = {
        "locations": len(locations),
        **{k: counts.get(k, 0) for k in ("created", "completed", "rolled_over", "updated", "unchanged", "failed")},
        "errors": errors,
    }
    logger.info(
        "Orchestrator tick: %d locations, %d created, %d completed, %d updated, %d failed",
        summary["locations"], summary["created"], summary["completed"],
        summary["updated"], summary["failed"],
    )
    return summary
