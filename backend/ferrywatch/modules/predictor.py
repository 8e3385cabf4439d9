"""Live duration predictions for an active trip.

At-dock model: how long the vessel will sit at the departing terminal,
anchored at trip_start. Needs the vessel's previous leg, which must have
arrived at the terminal the vessel is now departing from.

At-sea model: how long the crossing will take, anchored at the observed
departure (left_dock_actual).

A missing pair, model or input gives an empty Prediction with a reason. A
stored model whose features do not line up with the current schema raises
FeatureSchemaMismatchError.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ferrywatch.errors import FeatureSchemaMismatchError
from ferrywatch.models.active_vessel_trip import ActiveVesselTrip
from ferrywatch.models.base import ModelTypeEnum
from ferrywatch.models.model_parameters import ModelParameters
from ferrywatch.modules import trip_store
from ferrywatch.modules.features import FeatureInput, FeatureVector, extract_features
from ferrywatch.modules.terminal_buckets import terminal_pair_key
from ferrywatch.modules.trip_completion import duration_minutes, is_first_trip_sentinel
from ferrywatch.schemas.prediction import Prediction, TripPredictions

logger = logging.getLogger(__name__)

CONFIDENCE_Z = 1.96
# Predicted times are never earlier than this many minutes after the anchor.
MIN_PREDICTED_MINUTES = 2.0


def _empty(model_type: ModelTypeEnum, pair: Optional[str], reason: str) -> Prediction:
    return Prediction(model_type=model_type.value, terminal_pair=pair, reason=reason)


def apply_model(model: ModelParameters, vector: FeatureVector) -> float:
    """intercept + sum(coefficient_i * feature_i), after checking the schemas agree."""
    coefficients = model.coefficients or []
    names = list(model.feature_names or [])
    if len(coefficients) != len(vector.values) or names != list(vector.names):
        raise FeatureSchemaMismatchError(
            f"{model.terminal_pair_key} {model.model_type.value}: model has "
            f"{len(coefficients)} coefficients for {names}, features are {list(vector.names)}"
        )
    return float(model.intercept or 0.0) + sum(c * x for c, x in zip(coefficients, vector.values))


def _feature_input(
    db: Session, trip: ActiveVesselTrip, model_type: ModelTypeEnum
) -> FeatureInput | str:
    """FeatureInput for ``trip``, or the reason one cannot be built."""
    if trip.scheduled_departure is None:
        return "no_scheduled_departure"

    if model_type is ModelTypeEnum.AT_DOCK_DURATION:
        if is_first_trip_sentinel(trip.trip_start):
            return "unknown_trip_start"
        prev = trip_store.latest_completed_trip(db, trip.vessel_id)
        if prev is None or prev.arriving_terminal_abbrev != trip.departing_terminal_abbrev:
            return "no_previous_leg"
        if prev.left_dock_delay is None:
            return "no_previous_leg"
        return FeatureInput(
            scheduled_departure=trip.scheduled_departure,
            trip_start=trip.trip_start,
            prev_delay=prev.left_dock_delay,
            prev_at_sea_duration=prev.at_sea_duration,
        )

    if trip.left_dock_actual is None:
        return "not_departed"
    delay = trip.left_dock_delay
    if delay is None:
        delay = duration_minutes(trip.scheduled_departure, trip.left_dock_actual)
    return FeatureInput(
        scheduled_departure=trip.scheduled_departure,
        left_dock=trip.left_dock_actual,
        delay_minutes=delay,
    )


def predict(db: Session, trip: ActiveVesselTrip, model_type: ModelTypeEnum) -> Prediction:
    if not trip.arriving_terminal_abbrev:
        return _empty(model_type, None, "no_arriving_terminal")
    pair = terminal_pair_key(trip.departing_terminal_abbrev, trip.arriving_terminal_abbrev)

    model = trip_store.get_model(
        db, trip.departing_terminal_abbrev, trip.arriving_terminal_abbrev, model_type
    )
    if model is None:
        return _empty(model_type, pair, "no_model")
    if model.is_null_model:
        return _empty(model_type, pair, "insufficient_training_data")

    inp = _feature_input(db, trip, model_type)
    if isinstance(inp, str):
        return _empty(model_type, pair, inp)

    vector = extract_features(inp, model_type)
    value = apply_model(model, vector)

    anchor: datetime = inp.trip_start if model_type is ModelTypeEnum.AT_DOCK_DURATION else inp.left_dock
    predicted_time = anchor + timedelta(minutes=max(value, MIN_PREDICTED_MINUTES))
    lower = upper = None
    if model.std_dev is not None:
        lower = value - CONFIDENCE_Z * model.std_dev
        upper = value + CONFIDENCE_Z * model.std_dev

    logger.debug("%s %s %s: %.1f min", trip.vessel_abbrev, pair, model_type.value, value)
    return Prediction(
        model_type=model_type.value,
        terminal_pair=pair,
        value=round(value, 2),
        lower=round(lower, 2) if lower is not None else None,
        upper=round(upper, 2) if upper is not None else None,
        predicted_time=predicted_time,
        features=vector.as_dict(),
    )


def predict_trip(db: Session, trip: ActiveVesselTrip) -> TripPredictions:
    pair = (
        terminal_pair_key(trip.departing_terminal_abbrev, trip.arriving_terminal_abbrev)
        if trip.arriving_terminal_abbrev
        else None
    )
    return TripPredictions(
        vessel_id=trip.vessel_id,
        vessel_abbrev=trip.vessel_abbrev,
        terminal_pair=pair,
        at_dock=predict(db, trip, ModelTypeEnum.AT_DOCK_DURATION),
        at_sea=predict(db, trip, ModelTypeEnum.AT_SEA_DURATION),
    )


def predict_for_vessel(db: Session, vessel_id: int) -> Optional[TripPredictions]:
    """Predictions for the vessel's active trip; None when it has no active trip."""
    trip = trip_store.get_active_trip(db, vessel_id)
    if trip is None:
        return None
    return predict_trip(db, trip)
