"""Tests for terminal-pair bucketing."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ferrywatch.modules.terminal_buckets import (
    create_terminal_pair_buckets,
    parse_terminal_pair_key,
    terminal_pair_key,
)
from ferrywatch.modules.training_data import TrainingDataRecord

T0 = datetime(2025, 3, 4, 17, 0, tzinfo=timezone.utc)


def _record(dep="P52", arr="BBI", minutes=0, at_dock=12.0, delay=2.0, early=None) -> TrainingDataRecord:
    sched = T0 + timedelta(minutes=minutes)
    return TrainingDataRecord(
        departing_terminal_abbrev=dep,
        arriving_terminal_abbrev=arr,
        vessel_key="WEN",
        trip_start=sched - timedelta(minutes=10),
        left_dock=sched + timedelta(minutes=delay),
        trip_end=sched + timedelta(minutes=delay + 35),
        scheduled_departure=sched,
        prev_delay=1.0,
        prev_at_sea_duration=35.0,
        curr_at_dock_duration=at_dock,
        curr_delay=delay,
        curr_at_sea_duration=35.0,
        is_weekend=False,
        sched_departure_timestamp=sched.timestamp(),
        arrive_before_minutes=10.0,
        arrive_early_minutes=early,
    )


class TestPairKeys:
    def test_round_trip(self):
        assert terminal_pair_key("P52", "BBI") == "P52->BBI"
        assert parse_terminal_pair_key("P52->BBI") == ("P52", "BBI")

    @pytest.mark.parametrize("key", ["P52BBI", "P52->", "->BBI", "P52->BBI->EDM", " P52->BBI", ""])
    def test_malformed_key_rejected(self, key):
        with pytest.raises(ValueError):
            parse_terminal_pair_key(key)


class TestCreateBuckets:
    def test_groups_by_pair_largest_first(self):
        records = [_record("P52", "BBI", i) for i in range(3)] + [_record("EDM", "KIN", 5)]
        buckets = create_terminal_pair_buckets(records, max_samples_per_route=100)

        assert [b.key for b in buckets] == ["P52->BBI", "EDM->KIN"]
        assert len(buckets[0].records) == 3

    def test_keeps_most_recent_records_in_order(self):
        records = [_record(minutes=m) for m in (50, 10, 40, 20, 30)]
        bucket = create_terminal_pair_buckets(records, max_samples_per_route=3)[0]

        kept = [r.scheduled_departure for r in bucket.records]
        assert kept == [T0 + timedelta(minutes=m) for m in (30, 40, 50)]
        assert bucket.bucket_stats.total_records == 5
        assert bucket.bucket_stats.filtered_records == 3

    def test_stats_are_means_of_kept_records(self):
        records = [
            _record(minutes=0, at_dock=10.0, delay=1.0, early=11.0),
            _record(minutes=55, at_dock=14.0, delay=3.0, early=None),
        ]
        stats = create_terminal_pair_buckets(records, max_samples_per_route=10)[0].bucket_stats

        assert stats.mean_at_dock_duration == 12.0
        assert stats.mean_delay == 2.0
        assert stats.mean_at_sea_duration == 35.0
        assert stats.mean_arrive_early_minutes == 11.0
        assert stats.to_dict()["filtered_records"] == 2

    def test_empty_input(self):
        assert create_terminal_pair_buckets([], max_samples_per_route=10) == []
