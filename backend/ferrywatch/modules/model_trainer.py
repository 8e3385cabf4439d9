"""Per-bucket model training with chronological holdout evaluation.

For every terminal-pair bucket and every model type:
  - fewer than ML_MIN_TRAINING_EXAMPLES records -> null model placeholder
  - sort by scheduled departure; the most recent ceil(20%) are the holdout
  - train split large enough -> fit on train, score on holdout ("time_split")
  - otherwise score in-sample ("insufficient_data")
  - the stored coefficients are always refit on every record

A failure inside one bucket yields null models plus an error entry for that
bucket; the other buckets are unaffected.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence, TypeVar

from ferrywatch.config import settings
from ferrywatch.errors import PipelineError
from ferrywatch.models.base import ModelTypeEnum
from ferrywatch.modules.features import (
    FEATURE_SCHEMAS,
    extract_features,
    feature_input_from_record,
    target_for,
)
from ferrywatch.modules.regression import compute_metrics, fit_linear_regression
from ferrywatch.modules.terminal_buckets import TerminalPairBucket, terminal_pair_key
from ferrywatch.modules.training_data import TrainingDataRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

STRATEGY_TIME_SPLIT = "time_split"
STRATEGY_INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True)
class TrainerConfig:
    min_examples: int = 25
    train_ratio: float = 0.8
    min_holdout_train_examples: int = 200
    coefficient_epsilon: float = 1e-6

    @classmethod
    def from_settings(cls) -> "TrainerConfig":
        return cls(
            min_examples=settings.ML_MIN_TRAINING_EXAMPLES,
            train_ratio=settings.ML_TRAIN_RATIO,
            min_holdout_train_examples=settings.ML_MIN_HOLDOUT_TRAIN_EXAMPLES,
            coefficient_epsilon=settings.ML_COEFFICIENT_EPSILON,
        )


@dataclass
class TrainedModel:
    terminal_pair: tuple[str, str]
    model_type: ModelTypeEnum
    example_count: int = 0
    feature_names: Optional[tuple[str, ...]] = None
    coefficients: Optional[tuple[float, ...]] = None
    intercept: Optional[float] = None
    mae: Optional[float] = None
    rmse: Optional[float] = None
    r2: Optional[float] = None
    std_dev: Optional[float] = None
    evaluation: Optional[dict] = None
    bucket_stats: Optional[dict] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_null_model(self) -> bool:
        return self.coefficients is None


def chronological_split(
    examples: Sequence[T], train_ratio: float, key=None
) -> tuple[list[T], list[T]]:
    """Oldest examples train, the most recent ceil(N * (1 - train_ratio)) test."""
    if not 0 < train_ratio <= 1:
        raise ValueError(f"train_ratio must be in (0, 1], got {train_ratio}")
    ordered = sorted(examples, key=key) if key is not None else list(examples)
    # round() first so 25 * 0.2 = 5.000000000000001 does not become 6
    test_count = math.ceil(round(len(ordered) * (1 - train_ratio), 6))
    split_at = len(ordered) - test_count
    return ordered[:split_at], ordered[split_at:]


def _record_order(record: TrainingDataRecord) -> float:
    return record.sched_departure_timestamp


def _design_matrix(records: Sequence[TrainingDataRecord], model_type: ModelTypeEnum):
    X = [extract_features(feature_input_from_record(r), model_type).values for r in records]
    y = [target_for(r, model_type) for r in records]
    return X, y


def null_model(bucket: TerminalPairBucket, model_type: ModelTypeEnum) -> TrainedModel:
    return TrainedModel(
        terminal_pair=bucket.terminal_pair,
        model_type=model_type,
        example_count=len(bucket.records),
        bucket_stats=bucket.bucket_stats.to_dict() if bucket.bucket_stats else None,
    )


def train_model(
    bucket: TerminalPairBucket, model_type: ModelTypeEnum, config: TrainerConfig
) -> TrainedModel:
    records = sorted(bucket.records, key=_record_order)
    if len(records) < config.min_examples:
        logger.info(
            "%s %s: %d examples < %d, storing null model",
            bucket.key, model_type.value, len(records), config.min_examples,
        )
        return null_model(bucket, model_type)

    X, y = _design_matrix(records, model_type)
    full_fit = fit_linear_regression(X, y, zero_threshold=config.coefficient_epsilon)
    in_sample = compute_metrics(y, full_fit.predict(X))

    train, test = chronological_split(records, config.train_ratio, key=_record_order)
    holdout = None
    if len(train) >= config.min_holdout_train_examples and test:
        X_train, y_train = _design_matrix(train, model_type)
        X_test, y_test = _design_matrix(test, model_type)
        train_fit = fit_linear_regression(X_train, y_train, zero_threshold=config.coefficient_epsilon)
        holdout = compute_metrics(y_test, train_fit.predict(X_test))
        strategy = STRATEGY_TIME_SPLIT
        reported = holdout
    else:
        strategy = STRATEGY_INSUFFICIENT_DATA
        reported = in_sample

    if holdout is not None and in_sample.mae < 0.5 * holdout.mae:
        logger.warning(
            "%s %s: possible overfitting (in-sample MAE %.2f vs holdout %.2f)",
            bucket.key, model_type.value, in_sample.mae, holdout.mae,
        )
    if reported.mae < 0.1:
        logger.warning("%s %s: suspiciously low MAE %.3f", bucket.key, model_type.value, reported.mae)

    return TrainedModel(
        terminal_pair=bucket.terminal_pair,
        model_type=model_type,
        example_count=len(records),
        feature_names=FEATURE_SCHEMAS[model_type],
        coefficients=full_fit.coefficients,
        intercept=full_fit.intercept,
        mae=reported.mae,
        rmse=reported.rmse,
        r2=reported.r2,
        std_dev=reported.std_dev,
        evaluation={
            "strategy": strategy,
            "train_count": len(train),
            "test_count": len(test),
            "holdout": holdout.to_dict() if holdout else None,
            "in_sample": in_sample.to_dict(),
        },
        bucket_stats=bucket.bucket_stats.to_dict() if bucket.bucket_stats else None,
    )


def train_bucket(
    bucket: TerminalPairBucket, config: TrainerConfig
) -> tuple[list[TrainedModel], list[PipelineError]]:
    models: list[TrainedModel] = []
    errors: list[PipelineError] = []
    for model_type in ModelTypeEnum:
        try:
            models.append(train_model(bucket, model_type, config))
        except Exception as exc:
            logger.exception("Training failed for %s %s", bucket.key, model_type.value)
            models.append(null_model(bucket, model_type))
            errors.append(PipelineError(
                str(exc),
                error_type="training",
                step="train_buckets",
                terminal_pair=terminal_pair_key(*bucket.terminal_pair),
                recoverable=True,
            ))
    return models, errors


def train_all_buckets(
    buckets: Sequence[TerminalPairBucket],
    config: TrainerConfig | None = None,
    workers: int | None = None,
) -> tuple[list[TrainedModel], list[PipelineError]]:
    """Train every bucket, sequentially or across ``workers`` threads."""
    config = config or TrainerConfig.from_settings()
    workers = workers or settings.ML_TRAINING_WORKERS

    if workers > 1 and len(buckets) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda b: train_bucket(b, config), buckets))
    else:
        results = [train_bucket(b, config) for b in buckets]

    models = [m for bucket_models, _ in results for m in bucket_models]
    errors = [e for _, bucket_errors in results for e in bucket_errors]
    trained = sum(1 for m in models if not m.is_null_model)
    logger.info(
        "Trained %d models (%d null) across %d buckets, %d errors",
        trained, len(models) - trained, len(buckets), len(errors),
    )
    return models, errors
