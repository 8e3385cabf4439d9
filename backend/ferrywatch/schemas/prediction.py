"""Pydantic schemas for duration predictions."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Prediction(BaseModel):
    """One model's output for a trip. ``value`` is None when no prediction could be made."""

    model_type: str
    terminal_pair: Optional[str] = None
    value: Optional[float] = None
    lower: Optional[float] = None
    upper: Optional[float] = None
    # Absolute time implied by the prediction (left dock or arrival)
    predicted_time: Optional[datetime] = None
    reason: Optional[str] = None
    features: dict[str, float] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.value is None


class TripPredictions(BaseModel):
    vessel_id: int
    vessel_abbrev: Optional[str] = None
    terminal_pair: Optional[str] = None
    at_dock: Optional[Prediction] = None
    at_sea: Optional[Prediction] = None
