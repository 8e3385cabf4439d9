"""Training pipeline coordinator.

load -> filter/pair -> bucket -> train -> store, recorded as a TrainingRun.
Per-bucket and per-model failures are collected into the response and the
run is marked "partial"; anything else is logged as critical, the run is
marked "failed", and the exception propagates.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ferrywatch.models.base import TrainingRunStatusEnum, TrainingSourceEnum
from ferrywatch.models.training_run import TrainingRun
from ferrywatch.modules.model_trainer import TrainerConfig, TrainedModel, train_all_buckets
from ferrywatch.modules.terminal_buckets import TerminalPairBucket, create_terminal_pair_buckets
from ferrywatch.modules.training_data import (
    FilterThresholds,
    HistorySource,
    build_training_records,
    legs_from_completed_trips,
    legs_from_vessel_histories,
    load_completed_trips,
    load_vessel_histories,
)
from ferrywatch.modules.trip_store import retry_write, store_models
from ferrywatch.schemas.training import (
    DataQualityInfo,
    PipelineErrorInfo,
    TerminalPairSummary,
    TrainingResponse,
)
from ferrywatch.utils.terminals import TerminalLookup

logger = logging.getLogger(__name__)


def _pair_summaries(
    buckets: list[TerminalPairBucket], models: list[TrainedModel]
) -> list[TerminalPairSummary]:
    by_pair: dict[tuple[str, str], list[TrainedModel]] = {}
    for model in models:
        by_pair.setdefault(model.terminal_pair, []).append(model)
    summaries = []
    for bucket in buckets:
        pair_models = by_pair.get(bucket.terminal_pair, [])
        summaries.append(TerminalPairSummary(
            terminal_pair=bucket.key,
            total_records=bucket.bucket_stats.total_records if bucket.bucket_stats else len(bucket.records),
            filtered_records=len(bucket.records),
            trained_models=[m.model_type.value for m in pair_models if not m.is_null_model],
            null_models=[m.model_type.value for m in pair_models if m.is_null_model],
        ))
    return summaries


def run_training_pipeline(
    db: Session,
    lookup: TerminalLookup,
    source: TrainingSourceEnum = TrainingSourceEnum.COMPLETED_TRIPS,
    history_source: Optional[HistorySource] = None,
    config: Optional[TrainerConfig] = None,
    thresholds: Optional[FilterThresholds] = None,
) -> TrainingResponse:
    if source is TrainingSourceEnum.WSF_HISTORY and history_source is None:
        raise ValueError("WSF history training needs a history source")

    run = TrainingRun(
        started_at=datetime.now(timezone.utc),
        source=source.value,
        status=TrainingRunStatusEnum.RUNNING.value,
    )

    def _start() -> None:
        db.add(run)
        db.commit()

    retry_write(db, _start, "record training run start")
    logger.info("Training run %d started (source=%s)", run.run_id, source.value)

    try:
        if source is TrainingSourceEnum.WSF_HISTORY:
            entries = load_vessel_histories(history_source)
            records_loaded = len(entries)
            legs = legs_from_vessel_histories(entries, lookup)
        else:
            trips = load_completed_trips(db)
            records_loaded = len(trips)
            legs = legs_from_completed_trips(trips)

        records, quality = build_training_records(legs, lookup, thresholds)
        buckets = create_terminal_pair_buckets(records)
        models, errors = train_all_buckets(buckets, config)
        stored, store_errors = store_models(db, models)
        errors = errors + store_errors
    except Exception as exc:
        logger.critical("Training run %d failed: %s", run.run_id, exc, exc_info=True)
        db.rollback()
        failure = [{
            "error_type": type(exc).__name__,
            "step": "pipeline",
            "terminal_pair": None,
            "recoverable": False,
            "message": str(exc),
        }]

        def _mark_failed() -> None:
            run.status = TrainingRunStatusEnum.FAILED.value
            run.completed_at = datetime.now(timezone.utc)
            run.errors_json = failure
            db.commit()

        retry_write(db, _mark_failed, f"record training run {run.run_id} failure")
        raise

    status = TrainingRunStatusEnum.PARTIAL if errors else TrainingRunStatusEnum.COMPLETED

    def _finish() -> None:
        run.status = status.value
        run.completed_at = datetime.now(timezone.utc)
        run.records_loaded = records_loaded
        run.training_records = len(records)
        run.buckets = len(buckets)
        run.models_stored = stored
        run.data_quality_json = quality.to_dict()
        run.errors_json = [e.to_dict() for e in errors]
        db.commit()

    retry_write(db, _finish, f"record training run {run.run_id} result")

    trained = sum(1 for m in models if not m.is_null_model)
    logger.info(
        "Training run %d %s: %d records, %d buckets, %d models (%d null), %d stored, %d errors",
        run.run_id, status.value, len(records), len(buckets), trained,
        len(models) - trained, stored, len(errors),
    )
    return TrainingResponse(
        run_id=run.run_id,
        source=source.value,
        status=status.value,
        records_loaded=records_loaded,
        training_records=len(records),
        models_trained=trained,
        null_models=len(models) - trained,
        models_stored=stored,
        terminal_pairs=_pair_summaries(buckets, models),
        data_quality=DataQualityInfo(**quality.to_dict()),
        errors=[PipelineErrorInfo(**e.to_dict()) for e in errors],
    )
