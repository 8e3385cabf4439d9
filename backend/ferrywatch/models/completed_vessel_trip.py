"""CompletedVesselTrip — append-only history of finished legs.

Finalized from an ActiveVesselTrip when the vessel is observed at a new
departing terminal. Rows feed the training pipeline and supply the
previous-leg values used for live predictions.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ferrywatch.models.base import Base, UTCDateTime
from ferrywatch.models.trip_fields import TripFieldsMixin


class CompletedVesselTrip(TripFieldsMixin, Base):
    __tablename__ = "completed_vessel_trips"
    __table_args__ = (
        Index("ix_completed_trips_vessel_sched", "vessel_id", "scheduled_departure"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # {vessel_abbrev}_{YYYY-MM-DD_HH:MM}; informational, not unique
    trip_key: Mapped[str] = mapped_column(String(40), index=True)
    vessel_id: Mapped[int] = mapped_column(Integer, index=True)
    left_dock_actual: Mapped[datetime] = mapped_column(UTCDateTime)
    trip_end: Mapped[datetime] = mapped_column(UTCDateTime)
    # Minutes, one decimal
    at_dock_duration: Mapped[float] = mapped_column(Float)
    at_sea_duration: Mapped[float] = mapped_column(Float)
    total_duration: Mapped[float] = mapped_column(Float)

    def __repr__(self) -> str:
        return f"<CompletedVesselTrip {self.trip_key}>"
