"""Storage access for trips, location snapshots and model parameters.

Provides:
  - replace_active_trip(): single upsert keyed by vessel id (create or replace)
  - update_active_trip(): patch selected fields of an existing active trip
  - insert_completed_trip() / latest_completed_trip()
  - upsert_location_snapshot(): latest-wins location cache
  - upsert_model_parameters() / store_models(): whole-row model replacement,
    with retry on transient storage errors
  - delete_all_models(): administrative reset
  - retry_write(): run a write-and-commit callable under retry_call

Functions flush but do not commit, except store_models() and
delete_all_models() which own their transactions.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Iterable, Optional, TypeVar

from sqlalchemy.orm import Session

from ferrywatch.config import settings
from ferrywatch.errors import PipelineError
from ferrywatch.models.active_vessel_trip import ActiveVesselTrip
from ferrywatch.models.base import ModelTypeEnum
from ferrywatch.models.completed_vessel_trip import CompletedVesselTrip
from ferrywatch.models.model_parameters import ModelParameters
from ferrywatch.models.trip_fields import TRIP_FIELD_NAMES
from ferrywatch.models.vessel_location import VesselLocationSnapshot
from ferrywatch.schemas.vessel_location import VesselLocation
from ferrywatch.utils.retry import retry_call

if TYPE_CHECKING:
    from ferrywatch.modules.model_trainer import TrainedModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


def get_active_trips(db: Session) -> dict[int, ActiveVesselTrip]:
    return {t.vessel_id: t for t in db.query(ActiveVesselTrip).all()}


def get_active_trip(db: Session, vessel_id: int) -> Optional[ActiveVesselTrip]:
    return db.query(ActiveVesselTrip).filter(ActiveVesselTrip.vessel_id == vessel_id).first()


def replace_active_trip(db: Session, values: dict) -> ActiveVesselTrip:
    """Create the vessel's active trip, or overwrite every field of the existing one.

    ``values`` must hold all trip fields. Fields absent from it are reset
    to None on an existing row so no state leaks from the previous leg.
    """
    missing = {"vessel_id", "trip_start", "timestamp"} - values.keys()
    if missing:
        raise ValueError(f"active trip missing required fields: {sorted(missing)}")
    unknown = values.keys() - set(TRIP_FIELD_NAMES)
    if unknown:
        raise ValueError(f"unknown active trip fields: {sorted(unknown)}")

    trip = get_active_trip(db, values["vessel_id"])
    if trip is None:
        trip = ActiveVesselTrip(**values)
        db.add(trip)
    else:
        for name in TRIP_FIELD_NAMES:
            setattr(trip, name, values.get(name))
    db.flush()
    return trip


def update_active_trip(db: Session, trip: ActiveVesselTrip, changes: dict) -> ActiveVesselTrip:
    for name, value in changes.items():
        if name not in TRIP_FIELD_NAMES or name == "vessel_id":
            raise ValueError(f"cannot update active trip field {name!r}")
        setattr(trip, name, value)
    db.flush()
    return trip


def insert_completed_trip(db: Session, trip: CompletedVesselTrip) -> CompletedVesselTrip:
    db.add(trip)
    db.flush()
    return trip


def latest_completed_trip(db: Session, vessel_id: int) -> Optional[CompletedVesselTrip]:
    return (
        db.query(CompletedVesselTrip)
        .filter(CompletedVesselTrip.vessel_id == vessel_id)
        .order_by(CompletedVesselTrip.trip_end.desc(), CompletedVesselTrip.id.desc())
        .first()
    )


# ---------------------------------------------------------------------------
# Location snapshots
# ---------------------------------------------------------------------------


def upsert_location_snapshot(db: Session, location: VesselLocation) -> bool:
    """Store ``location`` unless a snapshot with the same or newer timestamp exists."""
    snapshot = db.get(VesselLocationSnapshot, location.vessel_id)
    values = location.model_dump()
    if snapshot is None:
        db.add(VesselLocationSnapshot(**values))
    elif location.timestamp > snapshot.timestamp:
        for name, value in values.items():
            setattr(snapshot, name, value)
    else:
        return False
    db.flush()
    return True


# ---------------------------------------------------------------------------
# Model parameters
# ---------------------------------------------------------------------------


def get_model(
    db: Session, departing: str, arriving: str, model_type: ModelTypeEnum
) -> Optional[ModelParameters]:
    return (
        db.query(ModelParameters)
        .filter(
            ModelParameters.departing_terminal_abbrev == departing,
            ModelParameters.arriving_terminal_abbrev == arriving,
            ModelParameters.model_type == model_type,
        )
        .first()
    )


def list_models(db: Session) -> list[ModelParameters]:
    return (
        db.query(ModelParameters)
        .order_by(
            ModelParameters.departing_terminal_abbrev,
            ModelParameters.arriving_terminal_abbrev,
            ModelParameters.model_type,
        )
        .all()
    )


def upsert_model_parameters(db: Session, model: "TrainedModel") -> ModelParameters:
    """Replace the stored row for (pair, model type) with ``model``. Flushes only."""
    departing, arriving = model.terminal_pair
    row = get_model(db, departing, arriving, model.model_type)
    if row is None:
        row = ModelParameters(
            departing_terminal_abbrev=departing,
            arriving_terminal_abbrev=arriving,
            model_type=model.model_type,
        )
        db.add(row)
    row.feature_names = list(model.feature_names) if model.feature_names is not None else None
    row.coefficients = list(model.coefficients) if model.coefficients is not None else None
    row.intercept = model.intercept
    row.mae = model.mae
    row.rmse = model.rmse
    row.r2 = model.r2
    row.std_dev = model.std_dev
    row.evaluation_json = model.evaluation
    row.bucket_stats_json = model.bucket_stats
    row.created_at = model.created_at or datetime.now(timezone.utc)
    db.flush()
    return row


def retry_write(
    db: Session,
    write: Callable[[], T],
    description: str,
    attempts: int | None = None,
    base_delay: float | None = None,
) -> T:
    """Run ``write`` (which must commit) with bounded retries on storage errors.

    The session is rolled back between attempts, so ``write`` has to redo all
    of its changes each time it is called.
    """
    return retry_call(
        write,
        attempts=attempts if attempts is not None else settings.STORAGE_RETRY_ATTEMPTS,
        base_delay=base_delay if base_delay is not None else settings.STORAGE_RETRY_BASE_DELAY,
        description=description,
        on_retry=lambda exc: db.rollback(),
    )


def store_models(
    db: Session,
    models: Iterable["TrainedModel"],
    attempts: int | None = None,
    base_delay: float | None = None,
) -> tuple[int, list[PipelineError]]:
    """Write each model in its own transaction, retrying transient storage errors.

    A model that still fails after the last attempt is reported in the
    returned error list; the other models are unaffected.
    """
    stored = 0
    errors: list[PipelineError] = []

    for model in models:
        pair_key = f"{model.terminal_pair[0]}->{model.terminal_pair[1]}"

        def _write(model=model) -> None:
            upsert_model_parameters(db, model)
            db.commit()

        try:
            retry_write(
                db,
                _write,
                f"store {pair_key} {model.model_type.value}",
                attempts=attempts,
                base_delay=base_delay,
            )
            stored += 1
        except Exception as exc:
            db.rollback()
            logger.error("Failed to store model %s %s: %s", pair_key, model.model_type.value, exc)
            errors.append(PipelineError(
                str(exc),
                error_type="storage",
                step="store_models",
                terminal_pair=pair_key,
                recoverable=True,
            ))

    logger.info("Stored %d models (%d failed)", stored, len(errors))
    return stored, errors


def delete_all_models(db: Session) -> int:
    deleted = db.query(ModelParameters).delete(synchronize_session=False)
    db.commit()
    logger.info("Deleted %d stored models", deleted)
    return deleted
