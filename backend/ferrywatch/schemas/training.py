"""Pydantic schemas for training runs and stored models."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ferrywatch.models.base import ModelTypeEnum


class PipelineErrorInfo(BaseModel):
    error_type: str
    step: str
    terminal_pair: Optional[str] = None
    recoverable: bool = True
    message: str


class TerminalPairSummary(BaseModel):
    terminal_pair: str
    total_records: int
    filtered_records: int
    trained_models: list[str] = Field(default_factory=list)
    null_models: list[str] = Field(default_factory=list)


class DataQualityInfo(BaseModel):
    total_legs: int = 0
    accepted: int = 0
    rejected_total: int = 0
    rejected: dict[str, int] = Field(default_factory=dict)


class TrainingResponse(BaseModel):
    run_id: Optional[int] = None
    source: str
    status: str
    records_loaded: int = 0
    training_records: int = 0
    models_trained: int = 0
    null_models: int = 0
    models_stored: int = 0
    terminal_pairs: list[TerminalPairSummary] = Field(default_factory=list)
    data_quality: DataQualityInfo = Field(default_factory=DataQualityInfo)
    errors: list[PipelineErrorInfo] = Field(default_factory=list)


class ModelParametersRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    departing_terminal_abbrev: str
    arriving_terminal_abbrev: str
    model_type: ModelTypeEnum
    feature_names: Optional[list[str]] = None
    coefficients: Optional[list[float]] = None
    intercept: Optional[float] = None
    mae: Optional[float] = None
    rmse: Optional[float] = None
    r2: Optional[float] = None
    std_dev: Optional[float] = None
    evaluation_json: Optional[dict] = None
    bucket_stats_json: Optional[dict] = None
    created_at: Optional[datetime] = None
