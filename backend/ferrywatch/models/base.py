"""Shared declarative base, column types and enums for all models."""
from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """DateTime column that always round-trips timezone-aware UTC values.

    Stored naive (UTC) so SQLite and PostgreSQL behave the same; values are
    re-tagged with UTC on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"naive datetime {value!r} cannot be stored as UTC")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class ModelTypeEnum(str, enum.Enum):
    AT_DOCK_DURATION = "at-dock-duration"
    AT_SEA_DURATION = "at-sea-duration"


class TrainingRunStatusEnum(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    # Some buckets failed or some models could not be stored
    PARTIAL = "partial"
    FAILED = "failed"


class TrainingSourceEnum(str, enum.Enum):
    COMPLETED_TRIPS = "completed"
    WSF_HISTORY = "wsf"
