"""Tests for the HTTP API (health, triggers, reads, error mapping)."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from ferrywatch.api.routes import get_terminal_lookup, get_wsf_client
from ferrywatch.config import settings
from ferrywatch.errors import FeedError
from ferrywatch.main import app
from ferrywatch.models.active_vessel_trip import ActiveVesselTrip
from ferrywatch.utils.terminals import TerminalLookup, build_terminal_lookup


@pytest.fixture
def wsf_client():
    """Stand-in WsfClient injected into the trigger endpoints."""
    client = MagicMock()
    app.dependency_overrides[get_wsf_client] = lambda: client
    yield client
    app.dependency_overrides.pop(get_wsf_client, None)


class TestHealth:
    def test_health(self, api_client):
        resp = api_client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0"}


class TestOrchestratorTick:
    def test_tick_creates_trip(self, api_client, db, wsf_client, make_location):
        wsf_client.fetch_vessel_locations.return_value = [make_location()]

        resp = api_client.post("/api/v1/orchestrator/tick")

        assert resp.status_code == 200
        body = resp.json()
        assert body["locations"] == 1
        assert body["created"] == 1
        assert db.query(ActiveVesselTrip).count() == 1

    def test_feed_error_maps_to_502(self, api_client, wsf_client):
        wsf_client.fetch_vessel_locations.side_effect = FeedError("WSF_API_ACCESS_CODE is not configured")

        resp = api_client.post("/api/v1/orchestrator/tick")

        assert resp.status_code == 502
        assert resp.json()["error"] == "Upstream feed error"
        assert "WSF_API_ACCESS_CODE" in resp.json()["detail"]


class TestTraining:
    def test_run_training(self, api_client, db, wsf_client, make_trip_chain):
        db.add_all(make_trip_chain(61))
        db.commit()

        resp = api_client.post("/api/v1/training/run")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "completed"
        assert body["models_trained"] == 4
        assert body["data_quality"]["accepted"] == 60
        assert {p["terminal_pair"] for p in body["terminal_pairs"]} == {"P52->BBI", "BBI->P52"}

    def test_invalid_source_rejected(self, api_client, wsf_client):
        resp = api_client.post("/api/v1/training/run", params={"source": "magic"})
        assert resp.status_code == 422

    def test_list_and_delete_models(self, api_client, db, wsf_client, make_trip_chain):
        db.add_all(make_trip_chain(21))
        db.commit()
        api_client.post("/api/v1/training/run")

        models = api_client.get("/api/v1/models").json()
        assert len(models) == 4
        assert all(m["coefficients"] is None for m in models)
        assert {m["model_type"] for m in models} == {"at-dock-duration", "at-sea-duration"}

        resp = api_client.delete("/api/v1/models")
        assert resp.json() == {"deleted": 4}
        assert api_client.get("/api/v1/models").json() == []


class TestTripReads:
    def test_completed_trips_filtered_and_limited(self, api_client, db, make_trip_chain):
        db.add_all(make_trip_chain(5))
        db.add_all(make_trip_chain(2, vessel_id=68, vessel_name="Tacoma", vessel_abbrev="TAC"))
        db.commit()

        trips = api_client.get("/api/v1/trips/completed", params={"vessel_id": 36, "limit": 3}).json()

        assert len(trips) == 3
        assert all(t["vessel_id"] == 36 for t in trips)
        ends = [t["trip_end"] for t in trips]
        assert ends == sorted(ends, reverse=True)

    def test_active_trips(self, api_client, db, wsf_client, make_location):
        wsf_client.fetch_vessel_locations.return_value = [make_location()]
        api_client.post("/api/v1/orchestrator/tick")

        trips = api_client.get("/api/v1/trips/active").json()

        assert len(trips) == 1
        assert trips[0]["vessel_abbrev"] == "WEN"
        assert trips[0]["trip_start"].startswith("2020-01-01T00:00:00")


class TestPredictions:
    def test_unknown_vessel_404(self, api_client):
        resp = api_client.get("/api/v1/predictions/999")
        assert resp.status_code == 404

    def test_active_trip_without_models(self, api_client, wsf_client, make_location):
        wsf_client.fetch_vessel_locations.return_value = [make_location()]
        api_client.post("/api/v1/orchestrator/tick")

        body = api_client.get("/api/v1/predictions/36").json()

        assert body["terminal_pair"] == "P52->BBI"
        assert body["at_dock"]["value"] is None
        assert body["at_dock"]["reason"] == "no_model"
        assert body["at_sea"]["reason"] == "no_model"


class TestTerminalLookupInjection:
    def test_lifespan_builds_lookup_from_overrides(self, tmp_path):
        from fastapi.testclient import TestClient

        path = tmp_path / "terminals.yaml"
        path.write_text("terminal_names:\n  Colman Dock: P52\n")
        with patch.object(settings, "TERMINAL_OVERRIDES_CONFIG", str(path)):
            with TestClient(app):
                lookup = app.state.terminal_lookup

        assert isinstance(lookup, TerminalLookup)
        assert lookup.terminal_abbrev("Colman Dock") == "P52"

    def test_tick_uses_injected_lookup(self, api_client, wsf_client, make_location):
        injected = build_terminal_lookup()
        app.dependency_overrides[get_terminal_lookup] = lambda: injected
        wsf_client.fetch_vessel_locations.return_value = [make_location()]

        with patch("ferrywatch.modules.trip_orchestrator.run_orchestrator_tick", return_value={}) as mock_tick:
            api_client.post("/api/v1/orchestrator/tick")

        assert mock_tick.call_args.args[2] is injected

    def test_training_uses_app_state_lookup(self, api_client, wsf_client):
        with patch("ferrywatch.modules.training_pipeline.run_training_pipeline") as mock_run:
            mock_run.side_effect = ValueError("stop")
            api_client.post("/api/v1/training/run")

        assert mock_run.call_args.args[1] is app.state.terminal_lookup
