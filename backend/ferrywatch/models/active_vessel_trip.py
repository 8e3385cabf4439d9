from __future__ import annotations

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from ferrywatch.models.base import Base
from ferrywatch.models.trip_fields import TripFieldsMixin


class ActiveVesselTrip(TripFieldsMixin, Base):
    """The in-progress leg of one vessel. At most one row per vessel."""

    __tablename__ = "active_vessel_trips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, unique=True, index=True)

    def __repr__(self) -> str:
        return (
            f"<ActiveVesselTrip {self.vessel_abbrev} "
            f"{self.departing_terminal_abbrev}->{self.arriving_terminal_abbrev}>"
        )
