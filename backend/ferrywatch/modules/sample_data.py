"""Synthetic completed trips for demos and local development.

Routes and vessels:
  P52 <-> BBI  WENATCHEE, TACOMA   (~35 min crossing, 55 min cycle)
  EDM <-> KIN  PUYALLUP            (~30 min crossing, 50 min cycle)

Each vessel shuttles between its two terminals from early morning to late
evening, Pacific time. Departure delays carry over from one leg to the next
and crossings run a few minutes longer at rush hour, so trained models have
something real to find.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from ferrywatch.modules.trip_completion import duration_minutes, make_trip_key
from ferrywatch.models.completed_vessel_trip import CompletedVesselTrip
from ferrywatch.utils.pacific_time import from_pacific

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Terminal:
    terminal_id: int
    name: str
    abbrev: str


@dataclass(frozen=True)
class _Route:
    a: _Terminal
    b: _Terminal
    op_route_abbrev: str
    crossing_minutes: float
    cycle_minutes: int
    sailings_per_day: int


SEATTLE = _Terminal(7, "Seattle", "P52")
BAINBRIDGE = _Terminal(3, "Bainbridge Island", "BBI")
EDMONDS = _Terminal(8, "Edmonds", "EDM")
KINGSTON = _Terminal(12, "Kingston", "KIN")

SEA_BI = _Route(SEATTLE, BAINBRIDGE, "sea-bi", 35.0, 55, 16)
ED_KING = _Route(EDMONDS, KINGSTON, "ed-king", 30.0, 50, 18)

# (vessel_id, name, abbrev, route, first departure local time)
DEMO_FLEET = (
    (36, "Wenatchee", "WEN", SEA_BI, (5, 30)),
    (68, "Tacoma", "TAC", SEA_BI, (6, 5)),
    (65, "Puyallup", "PUY", ED_KING, (5, 0)),
)


def _rush_hour_extra(local_hour: int) -> float:
    return 4.0 if local_hour in (7, 8, 16, 17, 18) else 0.0


def generate_vessel_trips(
    vessel_id: int,
    vessel_name: str,
    vessel_abbrev: str,
    route: _Route,
    first_departure: tuple[int, int],
    start_day: date,
    days: int,
    rng: random.Random,
) -> list[CompletedVesselTrip]:
    trips = []
    for day_offset in range(days):
        day = start_day + timedelta(days=day_offset)
        local_first = datetime(day.year, day.month, day.day, *first_departure)
        delay = 0.0
        trip_start = None
        for i in range(route.sailings_per_day):
            departing, arriving = (route.a, route.b) if i % 2 == 0 else (route.b, route.a)
            local_sched = local_first + timedelta(minutes=route.cycle_minutes * i)
            sched = from_pacific(local_sched)
            if trip_start is None:
                trip_start = sched - timedelta(minutes=rng.uniform(15, 25))

            # Late arrivals push the departure back; otherwise small random slip.
            late_arrival = max(0.0, (trip_start - sched).total_seconds() / 60 + 8)
            delay = max(-1.0, 0.4 * delay + late_arrival + rng.gauss(1.5, 1.0))
            left_dock = sched + timedelta(minutes=delay)
            crossing = route.crossing_minutes + _rush_hour_extra(local_sched.hour) + rng.gauss(0, 1.5)
            trip_end = left_dock + timedelta(minutes=crossing)

            trips.append(CompletedVesselTrip(
                trip_key=make_trip_key(vessel_abbrev, sched, trip_end),
                vessel_id=vessel_id,
                vessel_name=vessel_name,
                vessel_abbrev=vessel_abbrev,
                departing_terminal_id=departing.terminal_id,
                departing_terminal_name=departing.name,
                departing_terminal_abbrev=departing.abbrev,
                arriving_terminal_id=arriving.terminal_id,
                arriving_terminal_name=arriving.name,
                arriving_terminal_abbrev=arriving.abbrev,
                in_service=True,
                at_dock=True,
                scheduled_departure=sched,
                left_dock=left_dock,
                left_dock_actual=left_dock,
                left_dock_delay=duration_minutes(sched, left_dock),
                eta=trip_end,
                op_route_abbrev=route.op_route_abbrev,
                vessel_position_num=1,
                timestamp=trip_end,
                trip_start=trip_start,
                trip_end=trip_end,
                at_dock_duration=duration_minutes(trip_start, left_dock),
                at_sea_duration=duration_minutes(left_dock, trip_end),
                total_duration=duration_minutes(trip_start, trip_end),
            ))
            trip_start = trip_end
    return trips


def seed_demo_trips(db: Session, days: int = 14, seed: int = 42, end_day: date | None = None) -> dict:
    """Insert ``days`` days of synthetic trips for the demo fleet and commit.

    Returns:
        {"vessels": N, "trips": M}
    """
    rng = random.Random(seed)
    end_day = end_day or date.today()
    start_day = end_day - timedelta(days=days)
    total = 0
    for vessel_id, name, abbrev, route, first_departure in DEMO_FLEET:
        trips = generate_vessel_trips(
            vessel_id, name, abbrev, route, first_departure, start_day, days, rng
        )
        db.add_all(trips)
        total += len(trips)
    db.commit()
    logger.info("Seeded %d demo trips for %d vessels", total, len(DEMO_FLEET))
    return {"vessels": len(DEMO_FLEET), "trips": total}
