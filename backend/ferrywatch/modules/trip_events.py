"""Trip event detector: classify one location observation against the active trip."""
from __future__ import annotations

import enum
from typing import Optional

from ferrywatch.models.active_vessel_trip import ActiveVesselTrip
from ferrywatch.schemas.vessel_location import VesselLocation


class TripEventEnum(str, enum.Enum):
    FIRST_TRIP = "first_trip"
    TRIP_BOUNDARY = "trip_boundary"
    UPDATE = "update"


def classify_trip_event(
    active_trip: Optional[ActiveVesselTrip], location: VesselLocation
) -> TripEventEnum:
    """A change of departing terminal is the only trip boundary; time plays no part."""
    if active_trip is None:
        return TripEventEnum.FIRST_TRIP
    if active_trip.departing_terminal_id != location.departing_terminal_id:
        return TripEventEnum.TRIP_BOUNDARY
    return TripEventEnum.UPDATE
