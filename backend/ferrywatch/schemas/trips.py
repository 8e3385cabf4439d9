from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActiveTripRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vessel_id: int
    vessel_name: str
    vessel_abbrev: str
    departing_terminal_abbrev: str
    arriving_terminal_abbrev: Optional[str] = None
    in_service: bool
    at_dock: bool
    scheduled_departure: Optional[datetime] = None
    left_dock: Optional[datetime] = None
    left_dock_actual: Optional[datetime] = None
    left_dock_delay: Optional[float] = None
    eta: Optional[datetime] = None
    op_route_abbrev: Optional[str] = None
    timestamp: datetime
    trip_start: datetime


class CompletedTripRead(ActiveTripRead):
    trip_key: str
    left_dock_actual: datetime
    trip_end: datetime
    at_dock_duration: float
    at_sea_duration: float
    total_duration: float
