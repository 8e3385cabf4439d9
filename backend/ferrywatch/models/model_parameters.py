"""ModelParameters — one trained regression per (terminal pair, model type).

A row with ``coefficients`` of None is a null model: the pair was seen but
had too few usable examples to train. Rows are replaced wholesale on each
training run.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Enum as SAEnum, Float, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ferrywatch.models.base import Base, ModelTypeEnum, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelParameters(Base):
    __tablename__ = "model_parameters"
    __table_args__ = (
        UniqueConstraint(
            "departing_terminal_abbrev", "arriving_terminal_abbrev", "model_type",
            name="uq_model_pair_type",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    departing_terminal_abbrev: Mapped[str] = mapped_column(String(10))
    arriving_terminal_abbrev: Mapped[str] = mapped_column(String(10))
    model_type: Mapped[ModelTypeEnum] = mapped_column(
        SAEnum(ModelTypeEnum, values_callable=lambda e: [m.value for m in e], native_enum=False),
    )
    # Ordered feature names; coefficients[i] multiplies feature_names[i]
    feature_names: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    coefficients: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    intercept: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    mae: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rmse: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    r2: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    std_dev: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # {"strategy": "time_split", "train_count": N, "test_count": M, "holdout": {...}, "in_sample": {...}}
    evaluation_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    bucket_stats_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)

    @property
    def terminal_pair_key(self) -> str:
        return f"{self.departing_terminal_abbrev}->{self.arriving_terminal_abbrev}"

    @property
    def is_null_model(self) -> bool:
        return self.coefficients is None
