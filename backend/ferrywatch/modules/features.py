"""Feature extraction shared by training and live prediction.

Each model type has a closed, ordered feature schema. Training stores the
schema's names alongside the coefficients; prediction rebuilds the vector
from the same schema and refuses to score if the two disagree.

Time of day is encoded as 12 Gaussian radial basis functions centred every
two hours on Pacific local time (sigma = 1 h, distance wraps at midnight), so
23:30 and 00:30 look alike to the model.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ferrywatch.config import settings
from ferrywatch.errors import FeatureSchemaMismatchError
from ferrywatch.models.base import ModelTypeEnum
from ferrywatch.modules.training_data import TrainingDataRecord
from ferrywatch.utils.pacific_time import is_pacific_weekend, pacific_hour_of_day

TIME_CENTER_COUNT = 12
_HOURS_PER_DAY = 24.0
_CENTER_SPACING = _HOURS_PER_DAY / TIME_CENTER_COUNT
_SIGMA = _CENTER_SPACING * 0.5
TIME_CENTERS: tuple[float, ...] = tuple(i * _CENTER_SPACING for i in range(TIME_CENTER_COUNT))

_TIME_FEATURE_NAMES = tuple(f"time_center_{i}" for i in range(TIME_CENTER_COUNT))

FEATURE_SCHEMAS: dict[ModelTypeEnum, tuple[str, ...]] = {
    ModelTypeEnum.AT_DOCK_DURATION: (
        "schedule_delta_clamped",
        *_TIME_FEATURE_NAMES,
        "is_weekend",
        "prev_delay",
        "prev_at_sea_duration",
    ),
    # Departure delay is known once the vessel has left; never use it for at-dock.
    ModelTypeEnum.AT_SEA_DURATION: (
        "schedule_delta_clamped",
        *_TIME_FEATURE_NAMES,
        "is_weekend",
        "delay_minutes",
    ),
}


@dataclass(frozen=True)
class FeatureInput:
    scheduled_departure: datetime
    trip_start: Optional[datetime] = None
    left_dock: Optional[datetime] = None
    prev_delay: Optional[float] = None
    prev_at_sea_duration: Optional[float] = None
    delay_minutes: Optional[float] = None


@dataclass(frozen=True)
class FeatureVector:
    names: tuple[str, ...]
    values: tuple[float, ...]

    def as_dict(self) -> dict[str, float]:
        return dict(zip(self.names, self.values))


def time_of_day_features(when: datetime) -> tuple[float, ...]:
    hour = pacific_hour_of_day(when)
    values = []
    for center in TIME_CENTERS:
        diff = abs(hour - center)
        dist = min(diff, _HOURS_PER_DAY - diff)
        values.append(math.exp(-(dist ** 2) / (2 * _SIGMA ** 2)))
    return tuple(values)


def schedule_delta_clamped(
    scheduled_departure: datetime, anchor: datetime, max_minutes: float | None = None
) -> float:
    """Minutes from ``anchor`` until the scheduled departure, capped above."""
    cap = settings.ML_MAX_SCHEDULE_DELTA_MINUTES if max_minutes is None else max_minutes
    delta = (scheduled_departure - anchor).total_seconds() / 60.0
    return min(delta, cap)


def _require(value: Optional[float], name: str, model_type: ModelTypeEnum):
    if value is None:
        raise ValueError(f"{model_type.value} features need {name}")
    return value


def extract_features(inp: FeatureInput, model_type: ModelTypeEnum) -> FeatureVector:
    """Build the vector for ``model_type`` in FEATURE_SCHEMAS order.

    Raises ValueError when an input the schema needs is missing.
    """
    if model_type is ModelTypeEnum.AT_DOCK_DURATION:
        anchor = _require(inp.trip_start, "trip_start", model_type)
        tail = (
            float(_require(inp.prev_delay, "prev_delay", model_type)),
            float(_require(inp.prev_at_sea_duration, "prev_at_sea_duration", model_type)),
        )
    elif model_type is ModelTypeEnum.AT_SEA_DURATION:
        anchor = _require(inp.left_dock, "left_dock", model_type)
        tail = (float(_require(inp.delay_minutes, "delay_minutes", model_type)),)
    else:
        raise ValueError(f"no feature schema for model type {model_type!r}")

    values = (
        schedule_delta_clamped(inp.scheduled_departure, anchor),
        *time_of_day_features(inp.scheduled_departure),
        1.0 if is_pacific_weekend(inp.scheduled_departure) else 0.0,
        *tail,
    )
    names = FEATURE_SCHEMAS[model_type]
    if len(values) != len(names):
        raise FeatureSchemaMismatchError(
            f"{model_type.value}: built {len(values)} values for {len(names)} names"
        )
    return FeatureVector(names=names, values=values)


def feature_input_from_record(record: TrainingDataRecord) -> FeatureInput:
    return FeatureInput(
        scheduled_departure=record.scheduled_departure,
        trip_start=record.trip_start,
        left_dock=record.left_dock,
        prev_delay=record.prev_delay,
        prev_at_sea_duration=record.prev_at_sea_duration,
        delay_minutes=record.curr_delay,
    )


def target_for(record: TrainingDataRecord, model_type: ModelTypeEnum) -> float:
    if model_type is ModelTypeEnum.AT_DOCK_DURATION:
        return record.curr_at_dock_duration
    return record.curr_at_sea_duration
