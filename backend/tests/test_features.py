"""Tests for feature extraction: schemas, time-of-day encoding, clamping."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from ferrywatch.errors import FeatureSchemaMismatchError
from ferrywatch.models.base import ModelTypeEnum
from ferrywatch.modules.features import (
    FEATURE_SCHEMAS,
    TIME_CENTERS,
    FeatureInput,
    extract_features,
    schedule_delta_clamped,
    time_of_day_features,
)

AT_DOCK = ModelTypeEnum.AT_DOCK_DURATION
AT_SEA = ModelTypeEnum.AT_SEA_DURATION

# 2025-03-04 is a Tuesday; 17:00 UTC = 09:00 PST
SCHED = datetime(2025, 3, 4, 17, 0, tzinfo=timezone.utc)


def _input(**overrides) -> FeatureInput:
    values = dict(
        scheduled_departure=SCHED,
        trip_start=SCHED - timedelta(minutes=12),
        left_dock=SCHED + timedelta(minutes=3),
        prev_delay=2.5,
        prev_at_sea_duration=36.0,
        delay_minutes=3.0,
    )
    values.update(overrides)
    return FeatureInput(**values)


class TestSchemas:
    def test_at_dock_schema(self):
        names = FEATURE_SCHEMAS[AT_DOCK]
        assert len(names) == 16
        assert names[0] == "schedule_delta_clamped"
        assert names[-2:] == ("prev_delay", "prev_at_sea_duration")
        assert "delay_minutes" not in names

    def test_at_sea_schema(self):
        names = FEATURE_SCHEMAS[AT_SEA]
        assert len(names) == 15
        assert names[-1] == "delay_minutes"

    def test_vector_matches_schema(self):
        for model_type in (AT_DOCK, AT_SEA):
            vector = extract_features(_input(), model_type)
            assert vector.names == FEATURE_SCHEMAS[model_type]
            assert len(vector.values) == len(vector.names)

    def test_schema_shorter_than_vector_raises(self):
        with patch.dict(FEATURE_SCHEMAS, {AT_SEA: FEATURE_SCHEMAS[AT_SEA][:-1]}):
            with pytest.raises(FeatureSchemaMismatchError):
                extract_features(_input(), AT_SEA)


class TestTimeOfDay:
    def test_twelve_centers_every_two_hours(self):
        assert TIME_CENTERS == tuple(float(h) for h in range(0, 24, 2))

    def test_peak_at_matching_center(self):
        # 09:00 PST sits between the 08:00 and 10:00 centres
        values = time_of_day_features(SCHED)
        assert values[4] == pytest.approx(math.exp(-0.5))
        assert values[5] == pytest.approx(math.exp(-0.5))
        assert max(values) == pytest.approx(math.exp(-0.5))

    def test_exact_center(self):
        values = time_of_day_features(datetime(2025, 3, 4, 16, 0, tzinfo=timezone.utc))  # 08:00 PST
        assert values[4] == pytest.approx(1.0)

    def test_wraps_at_midnight(self):
        # 23:30 PST is half an hour from the 00:00 centre, not 23.5 hours
        late = datetime(2025, 3, 5, 7, 30, tzinfo=timezone.utc)
        values = time_of_day_features(late)
        assert values[0] == pytest.approx(math.exp(-(0.5 ** 2) / 2))
        assert values[0] > values[6]

    def test_uses_pacific_daylight_time(self):
        # 15:00 UTC in July is 08:00 PDT
        summer = datetime(2025, 7, 1, 15, 0, tzinfo=timezone.utc)
        assert time_of_day_features(summer)[4] == pytest.approx(1.0)


class TestScheduleDelta:
    def test_minutes_until_departure(self):
        assert schedule_delta_clamped(SCHED, SCHED - timedelta(minutes=12), max_minutes=20) == 12.0

    def test_clamped_above(self):
        assert schedule_delta_clamped(SCHED, SCHED - timedelta(minutes=45), max_minutes=20) == 20.0

    def test_negative_not_clamped(self):
        assert schedule_delta_clamped(SCHED, SCHED + timedelta(minutes=3), max_minutes=20) == -3.0

    def test_at_sea_anchor_is_left_dock(self):
        vector = extract_features(_input(), AT_SEA).as_dict()
        assert vector["schedule_delta_clamped"] == -3.0
        assert vector["delay_minutes"] == 3.0

    def test_at_dock_anchor_is_trip_start(self):
        vector = extract_features(_input(), AT_DOCK).as_dict()
        assert vector["schedule_delta_clamped"] == 12.0
        assert vector["prev_delay"] == 2.5
        assert vector["prev_at_sea_duration"] == 36.0


class TestWeekend:
    def test_weekday(self):
        assert extract_features(_input(), AT_SEA).as_dict()["is_weekend"] == 0.0

    def test_saturday_pacific(self):
        sat = datetime(2025, 3, 8, 18, 0, tzinfo=timezone.utc)
        inp = _input(scheduled_departure=sat, trip_start=sat - timedelta(minutes=10), left_dock=sat)
        assert extract_features(inp, AT_SEA).as_dict()["is_weekend"] == 1.0

    def test_monday_utc_is_sunday_pacific(self):
        # Monday 01:00 UTC is Sunday 17:00 PST
        mon_utc = datetime(2025, 3, 3, 1, 0, tzinfo=timezone.utc)
        inp = _input(scheduled_departure=mon_utc, trip_start=mon_utc - timedelta(minutes=10), left_dock=mon_utc)
        assert extract_features(inp, AT_SEA).as_dict()["is_weekend"] == 1.0


class TestMissingInputs:
    @pytest.mark.parametrize("field", ["trip_start", "prev_delay", "prev_at_sea_duration"])
    def test_at_dock_requires(self, field):
        with pytest.raises(ValueError, match=field):
            extract_features(_input(**{field: None}), AT_DOCK)

    @pytest.mark.parametrize("field", ["left_dock", "delay_minutes"])
    def test_at_sea_requires(self, field):
        with pytest.raises(ValueError, match=field):
            extract_features(_input(**{field: None}), AT_SEA)

    def test_at_sea_ignores_previous_leg(self):
        vector = extract_features(_input(prev_delay=None, prev_at_sea_duration=None), AT_SEA)
        assert len(vector.values) == 15
