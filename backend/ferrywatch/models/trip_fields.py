"""Columns shared by active and completed vessel trips."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ferrywatch.models.base import UTCDateTime

# Field names copied verbatim between an ActiveVesselTrip and its
# CompletedVesselTrip successor.
TRIP_FIELD_NAMES: tuple[str, ...] = (
    "vessel_id",
    "vessel_name",
    "vessel_abbrev",
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
    "left_dock_actual",
    "left_dock_delay",
    "eta",
    "op_route_abbrev",
    "vessel_position_num",
    "timestamp",
    "trip_start",
)


class TripFieldsMixin:
    vessel_name: Mapped[str] = mapped_column(String(100))
    vessel_abbrev: Mapped[str] = mapped_column(String(10))
    departing_terminal_id: Mapped[int] = mapped_column(Integer)
    departing_terminal_name: Mapped[str] = mapped_column(String(100))
    departing_terminal_abbrev: Mapped[str] = mapped_column(String(10))
    arriving_terminal_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    arriving_terminal_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    arriving_terminal_abbrev: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    in_service: Mapped[bool] = mapped_column(Boolean, default=True)
    at_dock: Mapped[bool] = mapped_column(Boolean, default=True)
    scheduled_departure: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    # Departure time as reported by the feed
    left_dock: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    # Departure time observed by us on the at-dock -> underway transition
    left_dock_actual: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    # Minutes, positive = late
    left_dock_delay: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    eta: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    op_route_abbrev: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vessel_position_num: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Last observation applied to this trip
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime)
    # Arrival at the departing terminal, or FIRST_TRIP_START when unknown
    trip_start: Mapped[datetime] = mapped_column(UTCDateTime)

    def trip_fields(self) -> dict:
        return {name: getattr(self, name) for name in TRIP_FIELD_NAMES}
