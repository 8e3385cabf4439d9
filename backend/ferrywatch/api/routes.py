from __future__ import annotations

import logging
from typing import Generator

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ferrywatch.database import get_db
from ferrywatch.models.base import TrainingSourceEnum
from ferrywatch.modules.wsf_client import WsfClient
from ferrywatch.schemas.prediction import TripPredictions
from ferrywatch.schemas.training import ModelParametersRead, TrainingResponse
from ferrywatch.schemas.trips import ActiveTripRead, CompletedTripRead
from ferrywatch.utils.terminals import TerminalLookup

logger = logging.getLogger(__name__)

router = APIRouter()


def get_wsf_client() -> Generator[WsfClient, None, None]:
    client = WsfClient()
    try:
        yield client
    finally:
        client.close()


def get_terminal_lookup(request: Request) -> TerminalLookup:
    """Lookup built once by the app lifespan."""
    return request.app.state.terminal_lookup


# ---------------------------------------------------------------------------
# Triggers (called by the external scheduler)
# ---------------------------------------------------------------------------


@router.post("/orchestrator/tick")
def orchestrator_tick(
    db: Session = Depends(get_db),
    client: WsfClient = Depends(get_wsf_client),
    lookup: TerminalLookup = Depends(get_terminal_lookup),
) -> dict:
    """Fetch vessel locations once and advance every vessel's trip."""
    from ferrywatch.modules.trip_orchestrator import run_orchestrator_tick

    return run_orchestrator_tick(db, client, lookup)


@router.post("/training/run", response_model=TrainingResponse)
def run_training(
    source: TrainingSourceEnum = Query(TrainingSourceEnum.COMPLETED_TRIPS),
    db: Session = Depends(get_db),
    client: WsfClient = Depends(get_wsf_client),
    lookup: TerminalLookup = Depends(get_terminal_lookup),
):
    """Retrain every terminal-pair model from completed trips or WSF history."""
    from ferrywatch.modules.training_pipeline import run_training_pipeline

    return run_training_pipeline(
        db,
        lookup,
        source=source,
        history_source=client if source is TrainingSourceEnum.WSF_HISTORY else None,
    )


@router.delete("/models")
def delete_models(db: Session = Depends(get_db)) -> dict:
    from ferrywatch.modules.trip_store import delete_all_models

    return {"deleted": delete_all_models(db)}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/models", response_model=list[ModelParametersRead])
def list_models(db: Session = Depends(get_db)):
    from ferrywatch.modules.trip_store import list_models as _list_models

    return _list_models(db)


@router.get("/trips/active", response_model=list[ActiveTripRead])
def active_trips(db: Session = Depends(get_db)):
    from ferrywatch.models.active_vessel_trip import ActiveVesselTrip

    return db.query(ActiveVesselTrip).order_by(ActiveVesselTrip.vessel_name).all()


@router.get("/trips/completed", response_model=list[CompletedTripRead])
def completed_trips(
    vessel_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    from ferrywatch.models.completed_vessel_trip import CompletedVesselTrip

    q = db.query(CompletedVesselTrip)
    if vessel_id is not None:
        q = q.filter(CompletedVesselTrip.vessel_id == vessel_id)
    return q.order_by(CompletedVesselTrip.trip_end.desc()).limit(limit).all()


@router.get("/predictions/{vessel_id}", response_model=TripPredictions)
def vessel_predictions(vessel_id: int, db: Session = Depends(get_db)):
    from ferrywatch.modules.predictor import predict_for_vessel

    result = predict_for_vessel(db, vessel_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No active trip for vessel {vessel_id}")
    return result
