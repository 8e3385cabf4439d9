"""Group training records by (departing, arriving) terminal pair."""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from statistics import fmean
from typing import Iterable, Optional

from ferrywatch.config import settings
from ferrywatch.modules.training_data import TrainingDataRecord

logger = logging.getLogger(__name__)

_PAIR_SEPARATOR = "->"


def terminal_pair_key(departing: str, arriving: str) -> str:
    return f"{departing}{_PAIR_SEPARATOR}{arriving}"


def parse_terminal_pair_key(key: str) -> tuple[str, str]:
    """``"P52->BBI"`` -> ``("P52", "BBI")``. Raises ValueError on anything else."""
    parts = key.split(_PAIR_SEPARATOR) if isinstance(key, str) else []
    if len(parts) != 2 or not all(p and p == p.strip() for p in parts):
        raise ValueError(f"malformed terminal pair key {key!r}")
    return parts[0], parts[1]


@dataclass
class BucketStats:
    total_records: int
    filtered_records: int
    mean_delay: Optional[float] = None
    mean_at_dock_duration: Optional[float] = None
    mean_at_sea_duration: Optional[float] = None
    mean_arrive_early_minutes: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "total_records": self.total_records,
            "filtered_records": self.filtered_records,
            "mean_delay": self.mean_delay,
            "mean_at_dock_duration": self.mean_at_dock_duration,
            "mean_at_sea_duration": self.mean_at_sea_duration,
            "mean_arrive_early_minutes": self.mean_arrive_early_minutes,
        }


@dataclass
class TerminalPairBucket:
    terminal_pair: tuple[str, str]
    records: list[TrainingDataRecord] = field(default_factory=list)
    bucket_stats: Optional[BucketStats] = None

    @property
    def key(self) -> str:
        return terminal_pair_key(*self.terminal_pair)


def _mean(values: list[float]) -> Optional[float]:
    return round(fmean(values), 2) if values else None


def create_terminal_pair_buckets(
    records: Iterable[TrainingDataRecord],
    max_samples_per_route: int | None = None,
) -> list[TerminalPairBucket]:
    """One bucket per pair seen, holding at most the N most recent records.

    Buckets come back largest first. Records inside a bucket are in
    chronological order.
    """
    max_samples = max_samples_per_route or settings.ML_MAX_SAMPLES_PER_ROUTE
    grouped: dict[tuple[str, str], list[TrainingDataRecord]] = defaultdict(list)
    for record in records:
        grouped[record.terminal_pair].append(record)

    buckets = []
    for pair, pair_records in grouped.items():
        pair_records.sort(key=lambda r: r.sched_departure_timestamp)
        kept = pair_records[-max_samples:]
        early = [r.arrive_early_minutes for r in kept if r.arrive_early_minutes is not None]
        stats = BucketStats(
            total_records=len(pair_records),
            filtered_records=len(kept),
            mean_delay=_mean([r.curr_delay for r in kept]),
            mean_at_dock_duration=_mean([r.curr_at_dock_duration for r in kept]),
            mean_at_sea_duration=_mean([r.curr_at_sea_duration for r in kept]),
            mean_arrive_early_minutes=_mean(early),
        )
        buckets.append(TerminalPairBucket(terminal_pair=pair, records=kept, bucket_stats=stats))
        if len(pair_records) > max_samples:
            logger.debug(
                "%s: kept %d most recent of %d records",
                terminal_pair_key(*pair), max_samples, len(pair_records),
            )

    buckets.sort(key=lambda b: (-len(b.records), b.key))
    logger.info("Created %d terminal-pair buckets", len(buckets))
    return buckets
