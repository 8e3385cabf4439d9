"""TrainingRun entity — audit record for each training pipeline execution.

Records the data source, per-step counts, data-quality rejections and
per-bucket errors so operators can see why a pair ended up with a null
model or why a run came back partial.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, JSON
from sqlalchemy.orm import Mapped, mapped_column
from ferrywatch.models.base import Base, UTCDateTime


class TrainingRun(Base):
    __tablename__ = "training_runs"

    run_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    # "completed" (CompletedVesselTrip rows) or "wsf" (WSF vessel history)
    source: Mapped[str] = mapped_column(String(20))
    records_loaded: Mapped[int] = mapped_column(Integer, default=0)
    training_records: Mapped[int] = mapped_column(Integer, default=0)
    buckets: Mapped[int] = mapped_column(Integer, default=0)
    models_stored: Mapped[int] = mapped_column(Integer, default=0)
    # {"missing_fields": 3, "at_dock_out_of_range": 12, ...}
    data_quality_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    # [{"error_type": ..., "step": ..., "terminal_pair": ..., "message": ...}]
    errors_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    # "running", "completed", "partial", "failed"
    status: Mapped[str] = mapped_column(String(20), default="running")
