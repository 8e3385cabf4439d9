"""Shared test fixtures: in-memory database, API client, and trip/location factories."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ferrywatch.models import Base  # noqa: F401 -- registers all models
from ferrywatch.models.completed_vessel_trip import CompletedVesselTrip
from ferrywatch.modules.trip_completion import duration_minutes, make_trip_key
from ferrywatch.schemas.vessel_location import VesselLocation
from ferrywatch.utils.terminals import build_terminal_lookup

# Terminal ids as used by the WSF feed
TERMINALS = {
    "P52": (7, "Seattle"),
    "BBI": (3, "Bainbridge Island"),
    "EDM": (8, "Edmonds"),
    "KIN": (12, "Kingston"),
}


@pytest.fixture
def db():
    """In-memory SQLite session shared across threads (TestClient runs handlers in a pool)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # pysqlite defers BEGIN on its own; let SQLAlchemy emit it so SAVEPOINTs nest properly
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def lookup():
    return build_terminal_lookup()


@pytest.fixture
def api_client(db):
    """TestClient with get_db overridden to the in-memory session."""
    from ferrywatch.database import get_db
    from ferrywatch.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_location():
    """Factory for VesselLocation observations (WENATCHEE at Seattle by default)."""

    def _make(
        departing: str = "P52",
        arriving: str | None = "BBI",
        timestamp: datetime | None = None,
        **overrides,
    ) -> VesselLocation:
        dep_id, dep_name = TERMINALS[departing]
        arr_id, arr_name = TERMINALS[arriving] if arriving else (None, None)
        values = dict(
            vessel_id=36,
            vessel_name="Wenatchee",
            departing_terminal_id=dep_id,
            departing_terminal_name=dep_name,
            departing_terminal_abbrev=departing,
            arriving_terminal_id=arr_id,
            arriving_terminal_name=arr_name,
            arriving_terminal_abbrev=arriving,
            latitude=47.6026,
            longitude=-122.3393,
            speed=0.0,
            heading=0.0,
            in_service=True,
            at_dock=True,
            scheduled_departure=datetime(2025, 3, 4, 17, 5, tzinfo=timezone.utc),
            left_dock=None,
            eta=None,
            op_route_abbrev="sea-bi",
            vessel_position_num=1,
            timestamp=timestamp or datetime(2025, 3, 4, 16, 50, tzinfo=timezone.utc),
        )
        values.update(overrides)
        return VesselLocation(**values)

    return _make


@pytest.fixture
def make_trip_chain():
    """Factory for a vessel's consecutive completed legs alternating between two terminals.

    Leg i is scheduled ``cycle`` minutes after leg i-1. Arrival-before-schedule
    and departure delay vary deterministically with i so at-dock durations
    depend on the schedule delta.
    """

    def _make(
        count: int,
        first: str = "P52",
        second: str = "BBI",
        start: datetime | None = None,
        vessel_id: int = 36,
        vessel_name: str = "Wenatchee",
        vessel_abbrev: str = "WEN",
        cycle: int = 55,
        crossing: float = 35.0,
    ) -> list[CompletedVesselTrip]:
        start = start or datetime(2025, 3, 3, 14, 0, tzinfo=timezone.utc)
        trips = []
        for i in range(count):
            dep, arr = (first, second) if i % 2 == 0 else (second, first)
            sched = start + timedelta(minutes=cycle * i)
            arrive_before = 6 + (i * 5) % 9           # 6..14 min early
            delay = 1 + (i * 3) % 4                   # 1..4 min late
            trip_start = sched - timedelta(minutes=arrive_before)
            left_dock = sched + timedelta(minutes=delay)
            trip_end = left_dock + timedelta(minutes=crossing + (i % 3))
            dep_id, dep_name = TERMINALS[dep]
            arr_id, arr_name = TERMINALS[arr]
            trips.append(CompletedVesselTrip(
                trip_key=make_trip_key(vessel_abbrev, sched, trip_end),
                vessel_id=vessel_id,
                vessel_name=vessel_name,
                vessel_abbrev=vessel_abbrev,
                departing_terminal_id=dep_id,
                departing_terminal_name=dep_name,
                departing_terminal_abbrev=dep,
                arriving_terminal_id=arr_id,
                arriving_terminal_name=arr_name,
                arriving_terminal_abbrev=arr,
                in_service=True,
                at_dock=True,
                scheduled_departure=sched,
                left_dock=left_dock,
                left_dock_actual=left_dock,
                left_dock_delay=duration_minutes(sched, left_dock),
                eta=trip_end,
                op_route_abbrev="sea-bi",
                vessel_position_num=1,
                timestamp=trip_end,
                trip_start=trip_start,
                trip_end=trip_end,
                at_dock_duration=duration_minutes(trip_start, left_dock),
                at_sea_duration=duration_minutes(left_dock, trip_end),
                total_duration=duration_minutes(trip_start, trip_end),
            ))
        return trips

    return _make
