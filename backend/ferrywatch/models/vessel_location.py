from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ferrywatch.models.base import Base, UTCDateTime


class VesselLocationSnapshot(Base):
    """Latest feed observation per vessel (newest timestamp wins)."""

    __tablename__ = "vessel_location_snapshots"

    vessel_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    vessel_name: Mapped[str] = mapped_column(String(100))
    departing_terminal_id: Mapped[int] = mapped_column(Integer)
    departing_terminal_name: Mapped[str] = mapped_column(String(100))
    departing_terminal_abbrev: Mapped[str] = mapped_column(String(10))
    arriving_terminal_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    arriving_terminal_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    arriving_terminal_abbrev: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    speed: Mapped[float] = mapped_column(Float, default=0.0)
    heading: Mapped[float] = mapped_column(Float, default=0.0)
    in_service: Mapped[bool] = mapped_column(Boolean, default=True)
    at_dock: Mapped[bool] = mapped_column(Boolean, default=True)
    scheduled_departure: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    left_dock: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    eta: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    op_route_abbrev: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vessel_position_num: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime)
