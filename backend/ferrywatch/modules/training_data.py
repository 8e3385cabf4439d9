"""Historical loader and quality filter for the training pipeline.

Two sources feed the same path:
  - CompletedVesselTrip rows recorded by the orchestrator
  - WSF VesselHistory records (bootstrap before enough trips are recorded)

Both are normalized to CanonicalLeg, then build_training_records() pairs each
leg with the same vessel's previous leg and applies, in order:
completeness -> validity -> sanity -> outliers -> consecutive-leg integrity.
Rejections are counted per FilterReason; they are never raised.
"""
from __future__ import annotations

import enum
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from ferrywatch.config import settings
from ferrywatch.errors import FeedError
from ferrywatch.models.completed_vessel_trip import CompletedVesselTrip
from ferrywatch.modules.trip_completion import duration_minutes, is_first_trip_sentinel
from ferrywatch.modules.wsf_client import VesselBasic, VesselHistoryEntry
from ferrywatch.utils.pacific_time import is_pacific_weekend
from ferrywatch.utils.terminals import TerminalLookup

logger = logging.getLogger(__name__)


class FilterReason(str, enum.Enum):
    MISSING_FIELDS = "missing_fields"
    UNMAPPED_TERMINAL = "unmapped_terminal"
    INVALID_TERMINAL = "invalid_terminal"
    OUT_OF_ORDER = "out_of_order"
    ARRIVED_AFTER_SCHEDULE = "arrived_after_schedule"
    AT_DOCK_OUT_OF_RANGE = "at_dock_out_of_range"
    AT_SEA_OUT_OF_RANGE = "at_sea_out_of_range"
    TOTAL_OUT_OF_RANGE = "total_out_of_range"
    DELAY_OUT_OF_RANGE = "delay_out_of_range"
    NO_PREVIOUS_LEG = "no_previous_leg"
    NON_CONSECUTIVE = "non_consecutive"


@dataclass(frozen=True)
class FilterThresholds:
    min_at_dock: float = 2.0
    max_at_dock: float = 30.0
    min_at_sea: float = 2.0
    max_at_sea: float = 90.0
    max_total: float = 120.0
    max_abs_delay: float = 60.0
    max_minutes_ahead_of_schedule: float = 20.0
    require_arrival_before_schedule: bool = True

    @classmethod
    def from_settings(cls) -> "FilterThresholds":
        return cls(
            min_at_dock=settings.ML_MIN_AT_DOCK_MINUTES,
            max_at_dock=settings.ML_MAX_AT_DOCK_MINUTES,
            min_at_sea=settings.ML_MIN_AT_SEA_MINUTES,
            max_at_sea=settings.ML_MAX_AT_SEA_MINUTES,
            max_total=settings.ML_MAX_TOTAL_MINUTES,
            max_abs_delay=settings.ML_MAX_ABS_DELAY_MINUTES,
            max_minutes_ahead_of_schedule=settings.ML_MAX_MINUTES_AHEAD_OF_SCHEDULE,
            require_arrival_before_schedule=settings.ML_REQUIRE_ARRIVAL_BEFORE_SCHEDULE,
        )


@dataclass(frozen=True)
class CanonicalLeg:
    """One sailing, whatever its source. Abbrevs are None when the name could not be mapped."""

    vessel_key: str
    departing_abbrev: Optional[str]
    arriving_abbrev: Optional[str]
    trip_start: Optional[datetime]
    left_dock: Optional[datetime]
    trip_end: Optional[datetime]
    scheduled_departure: Optional[datetime]
    source: str = "completed"


@dataclass(frozen=True)
class TrainingDataRecord:
    departing_terminal_abbrev: str
    arriving_terminal_abbrev: str
    vessel_key: str
    trip_start: datetime
    left_dock: datetime
    trip_end: datetime
    scheduled_departure: datetime
    prev_delay: float
    prev_at_sea_duration: float
    curr_at_dock_duration: float
    curr_delay: float
    curr_at_sea_duration: float
    is_weekend: bool
    sched_departure_timestamp: float
    # Minutes between arrival and scheduled departure
    arrive_before_minutes: float
    # Mean dwell for the pair minus arrive_before_minutes; None without a mean
    arrive_early_minutes: Optional[float] = None

    @property
    def terminal_pair(self) -> tuple[str, str]:
        return (self.departing_terminal_abbrev, self.arriving_terminal_abbrev)


@dataclass
class DataQualitySummary:
    total_legs: int = 0
    accepted: int = 0
    rejected: Counter = field(default_factory=Counter)

    def reject(self, reason: FilterReason) -> None:
        self.rejected[reason] += 1

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected.values())

    def to_dict(self) -> dict:
        return {
            "total_legs": self.total_legs,
            "accepted": self.accepted,
            "rejected_total": self.rejected_total,
            "rejected": {reason.value: n for reason, n in sorted(self.rejected.items())},
        }


@dataclass(frozen=True)
class _LegMetrics:
    leg: CanonicalLeg
    at_dock: float
    at_sea: float
    delay: float


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class HistorySource(Protocol):
    def fetch_vessel_basics(self) -> list[VesselBasic]: ...

    def fetch_vessel_history(
        self, vessel_name: str, date_start: date, date_end: date
    ) -> list[VesselHistoryEntry]: ...


def load_completed_trips(
    db: Session,
    batch_size: int | None = None,
    max_batches: int | None = None,
) -> list[CompletedVesselTrip]:
    """Page through completed trips by primary key, stopping at the batch cap."""
    batch_size = batch_size or settings.ML_LOAD_BATCH_SIZE
    max_batches = max_batches or settings.ML_LOAD_MAX_BATCHES
    trips: list[CompletedVesselTrip] = []
    last_id = 0
    for _ in range(max_batches):
        batch = (
            db.query(CompletedVesselTrip)
            .filter(CompletedVesselTrip.id > last_id)
            .order_by(CompletedVesselTrip.id)
            .limit(batch_size)
            .all()
        )
        trips.extend(batch)
        if len(batch) < batch_size:
            break
        last_id = batch[-1].id
    else:
        logger.warning(
            "Stopped loading completed trips at the %d-batch cap (%d trips)", max_batches, len(trips)
        )
    logger.info("Loaded %d completed trips", len(trips))
    return trips


def load_vessel_histories(
    source: HistorySource,
    days_back: int | None = None,
    max_records_per_vessel: int | None = None,
    max_total_records: int | None = None,
    today: date | None = None,
) -> list[VesselHistoryEntry]:
    """Fetch WSF history for every vessel, most recent sailings first.

    A vessel whose fetch fails is logged and skipped. Raises FeedError only
    when the fleet list itself cannot be fetched.
    """
    days_back = days_back or settings.ML_DAYS_BACK
    max_records_per_vessel = max_records_per_vessel or settings.ML_MAX_RECORDS_PER_VESSEL
    max_total_records = max_total_records or settings.ML_MAX_TOTAL_HISTORY_RECORDS
    date_end = today or datetime.now(timezone.utc).date()
    date_start = date_end - timedelta(days=days_back)

    vessels = source.fetch_vessel_basics()
    entries: list[VesselHistoryEntry] = []
    failed: list[str] = []
    for vessel in vessels:
        try:
            history = source.fetch_vessel_history(vessel.vessel_name, date_start, date_end)
        except FeedError as exc:
            logger.warning("History fetch failed for %s: %s", vessel.vessel_name, exc)
            failed.append(vessel.vessel_name)
            continue
        history.sort(key=_history_sort_key, reverse=True)
        entries.extend(history[:max_records_per_vessel])
        if len(entries) >= max_total_records:
            logger.warning("Reached %d-record history cap; remaining vessels skipped", max_total_records)
            entries = entries[:max_total_records]
            break

    logger.info(
        "Loaded %d history records from %d vessels (%d failed)",
        len(entries), len(vessels) - len(failed), len(failed),
    )
    return entries


def _history_sort_key(entry: VesselHistoryEntry) -> datetime:
    return entry.scheduled_depart or datetime.min.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def legs_from_completed_trips(trips: Iterable[CompletedVesselTrip]) -> list[CanonicalLeg]:
    legs = []
    for trip in trips:
        # Sentinel-started trips are never finalized, but guard against stray rows.
        if is_first_trip_sentinel(trip.trip_start):
            continue
        legs.append(CanonicalLeg(
            vessel_key=trip.vessel_abbrev,
            departing_abbrev=trip.departing_terminal_abbrev,
            arriving_abbrev=trip.arriving_terminal_abbrev,
            trip_start=trip.trip_start,
            left_dock=trip.left_dock_actual,
            trip_end=trip.trip_end,
            scheduled_departure=trip.scheduled_departure,
            source="completed",
        ))
    return legs


def legs_from_vessel_histories(
    entries: Iterable[VesselHistoryEntry], lookup: TerminalLookup
) -> list[CanonicalLeg]:
    """History records carry no arrival-at-dock time; use the previous sailing's arrival."""
    by_vessel: dict[str, list[VesselHistoryEntry]] = defaultdict(list)
    for entry in entries:
        by_vessel[entry.vessel_name].append(entry)

    legs = []
    for vessel_name, history in by_vessel.items():
        history.sort(key=_history_sort_key)
        vessel_key = lookup.vessel_abbrev(vessel_name)
        prev: Optional[VesselHistoryEntry] = None
        for entry in history:
            legs.append(CanonicalLeg(
                vessel_key=vessel_key,
                departing_abbrev=lookup.terminal_abbrev(entry.departing),
                arriving_abbrev=lookup.terminal_abbrev(entry.arriving),
                trip_start=prev.est_arrival if prev is not None else None,
                left_dock=entry.actual_depart,
                trip_end=entry.est_arrival,
                scheduled_departure=entry.scheduled_depart,
                source="wsf",
            ))
            prev = entry
    return legs


# ---------------------------------------------------------------------------
# Filtering and pairing
# ---------------------------------------------------------------------------


def _check_leg(leg: CanonicalLeg, lookup: TerminalLookup, t: FilterThresholds) -> FilterReason | _LegMetrics:
    # completeness
    if leg.departing_abbrev is None or leg.arriving_abbrev is None:
        return FilterReason.UNMAPPED_TERMINAL
    if None in (leg.trip_start, leg.left_dock, leg.trip_end, leg.scheduled_departure):
        return FilterReason.MISSING_FIELDS
    # validity
    if (
        not lookup.is_valid_terminal(leg.departing_abbrev)
        or not lookup.is_valid_terminal(leg.arriving_abbrev)
        or leg.departing_abbrev == leg.arriving_abbrev
    ):
        return FilterReason.INVALID_TERMINAL
    if not (leg.trip_start < leg.left_dock < leg.trip_end):
        return FilterReason.OUT_OF_ORDER
    # sanity
    if t.require_arrival_before_schedule:
        if leg.trip_start >= leg.scheduled_departure:
            return FilterReason.ARRIVED_AFTER_SCHEDULE
    elif leg.trip_start - leg.scheduled_departure > timedelta(minutes=t.max_minutes_ahead_of_schedule):
        return FilterReason.ARRIVED_AFTER_SCHEDULE
    # outliers
    at_dock = duration_minutes(leg.trip_start, leg.left_dock)
    at_sea = duration_minutes(leg.left_dock, leg.trip_end)
    total = duration_minutes(leg.trip_start, leg.trip_end)
    delay = duration_minutes(leg.scheduled_departure, leg.left_dock)
    if not (t.min_at_dock <= at_dock <= t.max_at_dock):
        return FilterReason.AT_DOCK_OUT_OF_RANGE
    if not (t.min_at_sea <= at_sea <= t.max_at_sea):
        return FilterReason.AT_SEA_OUT_OF_RANGE
    if total > t.max_total:
        return FilterReason.TOTAL_OUT_OF_RANGE
    if abs(delay) > t.max_abs_delay:
        return FilterReason.DELAY_OUT_OF_RANGE
    return _LegMetrics(leg=leg, at_dock=at_dock, at_sea=at_sea, delay=delay)


def build_training_records(
    legs: Sequence[CanonicalLeg],
    lookup: TerminalLookup,
    thresholds: FilterThresholds | None = None,
) -> tuple[list[TrainingDataRecord], DataQualitySummary]:
    """Pair each usable leg with the vessel's previous usable leg.

    A leg becomes a record only when the previous leg (by scheduled
    departure) also passed every filter and arrived at the terminal this
    leg departs from.
    """
    thresholds = thresholds or FilterThresholds.from_settings()
    summary = DataQualitySummary(total_legs=len(legs))

    by_vessel: dict[str, list[CanonicalLeg]] = defaultdict(list)
    for leg in legs:
        by_vessel[leg.vessel_key].append(leg)

    records: list[TrainingDataRecord] = []
    for vessel_key, vessel_legs in by_vessel.items():
        vessel_legs.sort(key=lambda x: x.scheduled_departure or datetime.max.replace(tzinfo=timezone.utc))
        prev: FilterReason | _LegMetrics | None = None
        for leg in vessel_legs:
            checked = _check_leg(leg, lookup, thresholds)
            if isinstance(checked, FilterReason):
                summary.reject(checked)
                logger.debug("Rejected %s leg %s: %s", vessel_key, leg.scheduled_departure, checked.value)
            elif not isinstance(prev, _LegMetrics):
                summary.reject(FilterReason.NO_PREVIOUS_LEG)
            elif prev.leg.arriving_abbrev != leg.departing_abbrev:
                summary.reject(FilterReason.NON_CONSECUTIVE)
                logger.debug(
                    "Non-consecutive %s: previous leg arrived %s, this leg departs %s",
                    vessel_key, prev.leg.arriving_abbrev, leg.departing_abbrev,
                )
            else:
                records.append(_make_record(prev, checked, lookup))
            prev = checked

    summary.accepted = len(records)
    logger.info(
        "Training records: %d accepted from %d legs (%d rejected)",
        summary.accepted, summary.total_legs, summary.rejected_total,
    )
    return records, summary


def _make_record(prev: _LegMetrics, curr: _LegMetrics, lookup: TerminalLookup) -> TrainingDataRecord:
    leg = curr.leg
    arrive_before = duration_minutes(leg.trip_start, leg.scheduled_departure)
    mean_at_dock = lookup.mean_at_dock(leg.departing_abbrev, leg.arriving_abbrev)
    return TrainingDataRecord(
        departing_terminal_abbrev=leg.departing_abbrev,
        arriving_terminal_abbrev=leg.arriving_abbrev,
        vessel_key=leg.vessel_key,
        trip_start=leg.trip_start,
        left_dock=leg.left_dock,
        trip_end=leg.trip_end,
        scheduled_departure=leg.scheduled_departure,
        prev_delay=prev.delay,
        prev_at_sea_duration=prev.at_sea,
        curr_at_dock_duration=curr.at_dock,
        curr_delay=curr.delay,
        curr_at_sea_duration=curr.at_sea,
        is_weekend=is_pacific_weekend(leg.scheduled_departure),
        sched_departure_timestamp=leg.scheduled_departure.timestamp(),
        arrive_before_minutes=arrive_before,
        arrive_early_minutes=(
            round(mean_at_dock - arrive_before, 2) if mean_at_dock is not None else None
        ),
    )
