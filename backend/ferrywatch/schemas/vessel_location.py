"""Pydantic schema for one vessel observation from the WSF VesselLocations feed."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class VesselLocation(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    vessel_id: int
    vessel_name: str
    departing_terminal_id: int
    departing_terminal_name: str
    departing_terminal_abbrev: str
    arriving_terminal_id: Optional[int] = None
    arriving_terminal_name: Optional[str] = None
    arriving_terminal_abbrev: Optional[str] = None
    latitude: float
    longitude: float
    speed: float = 0.0
    heading: float = 0.0
    in_service: bool = True
    at_dock: bool
    scheduled_departure: Optional[datetime] = None
    left_dock: Optional[datetime] = None
    eta: Optional[datetime] = None
    op_route_abbrev: Optional[str] = None
    vessel_position_num: Optional[int] = None
    timestamp: datetime

    @field_validator("timestamp", "scheduled_departure", "left_dock", "eta")
    @classmethod
    def _require_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            raise ValueError("timestamps must be timezone-aware")
        return v
