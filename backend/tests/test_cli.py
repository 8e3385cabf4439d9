"""Tests for FerryWatch CLI commands."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from ferrywatch.cli import app
from ferrywatch.config import settings
from ferrywatch.errors import FeedError
from ferrywatch.models.model_parameters import ModelParameters


runner = CliRunner()


@pytest.fixture
def session(db):
    """Route the CLI's SessionLocal() to the in-memory test session."""
    with patch("ferrywatch.database.SessionLocal", return_value=db):
        yield db


def _tick_summary(**overrides):
    summary = {
        "locations": 3, "created": 1, "completed": 1, "rolled_over": 0,
        "updated": 1, "unchanged": 0, "failed": 0, "errors": [],
    }
    summary.update(overrides)
    return summary


# ---------------------------------------------------------------------------
# init-db / seed-demo
# ---------------------------------------------------------------------------


@patch("ferrywatch.database.init_db")
def test_init_db(mock_init):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    mock_init.assert_called_once()
    assert "Database ready" in result.output


@patch("ferrywatch.database.init_db")
def test_seed_demo(mock_init, session):
    result = runner.invoke(app, ["seed-demo", "--days", "2"])
    assert result.exit_code == 0, result.output
    # two days of 16 + 16 + 18 sailings
    assert "Seeded 100 trips for 3 vessels" in result.output


# ---------------------------------------------------------------------------
# tick
# ---------------------------------------------------------------------------


@patch("ferrywatch.modules.trip_orchestrator.run_orchestrator_tick", return_value=_tick_summary())
@patch("ferrywatch.modules.wsf_client.WsfClient")
def test_tick_once(mock_client, mock_tick, session):
    result = runner.invoke(app, ["tick"])
    assert result.exit_code == 0
    mock_tick.assert_called_once()
    assert "3 locations" in result.output
    assert "1 completed" in result.output


@patch("ferrywatch.modules.trip_orchestrator.run_orchestrator_tick", side_effect=FeedError("WSF down"))
@patch("ferrywatch.modules.wsf_client.WsfClient")
def test_tick_feed_error_exits_1(mock_client, mock_tick, session):
    result = runner.invoke(app, ["tick"])
    assert result.exit_code == 1
    assert "Feed error" in result.output


@patch("ferrywatch.modules.trip_orchestrator.run_orchestrator_tick", return_value=_tick_summary(failed=2))
@patch("ferrywatch.modules.wsf_client.WsfClient")
def test_tick_reports_failures(mock_client, mock_tick, session):
    result = runner.invoke(app, ["tick"])
    assert "2 failed" in result.output


# ---------------------------------------------------------------------------
# train / models / delete-models
# ---------------------------------------------------------------------------


def test_train_from_completed_trips(session, make_trip_chain):
    session.add_all(make_trip_chain(61))
    session.commit()

    result = runner.invoke(app, ["train"])

    assert result.exit_code == 0, result.output
    assert "completed" in result.output
    assert "4 models" in result.output
    assert session.query(ModelParameters).count() == 4


@patch("ferrywatch.modules.training_pipeline.run_training_pipeline", side_effect=RuntimeError("stop"))
@patch("ferrywatch.utils.terminals.build_terminal_lookup")
def test_train_builds_lookup_from_settings(mock_build, mock_run, session, tmp_path):
    path = tmp_path / "terminals.yaml"
    with patch.object(settings, "TERMINAL_OVERRIDES_CONFIG", str(path)):
        runner.invoke(app, ["train"])

    mock_build.assert_called_once_with(str(path))
    assert mock_run.call_args.args[1] is mock_build.return_value


@patch("ferrywatch.modules.training_pipeline.run_training_pipeline", side_effect=RuntimeError("boom"))
def test_train_failure_exits_1(mock_run, session):
    result = runner.invoke(app, ["train"])
    assert result.exit_code == 1
    assert "Training failed" in result.output


def test_models_empty(session):
    result = runner.invoke(app, ["models"])
    assert result.exit_code == 0
    assert "No models stored" in result.output


def test_models_lists_pairs(session, make_trip_chain):
    session.add_all(make_trip_chain(21))
    session.commit()
    runner.invoke(app, ["train"])

    result = runner.invoke(app, ["models"])

    assert result.exit_code == 0
    assert "P52->BBI" in result.output
    assert "null" in result.output


def test_delete_models_with_yes(session, make_trip_chain):
    session.add_all(make_trip_chain(21))
    session.commit()
    runner.invoke(app, ["train"])

    result = runner.invoke(app, ["delete-models", "--yes"])

    assert result.exit_code == 0
    assert "Deleted 4 models" in result.output
    assert session.query(ModelParameters).count() == 0


def test_delete_models_declined(session):
    with patch("ferrywatch.modules.trip_store.delete_all_models") as mock_delete:
        result = runner.invoke(app, ["delete-models"], input="n\n")
    assert result.exit_code == 0
    mock_delete.assert_not_called()


# ---------------------------------------------------------------------------
# predict / status
# ---------------------------------------------------------------------------


def test_predict_without_active_trip(session):
    result = runner.invoke(app, ["predict", "36"])
    assert result.exit_code == 1
    assert "No active trip" in result.output


@patch("ferrywatch.modules.predictor.predict_for_vessel")
def test_predict_prints_both_models(mock_predict, session):
    from ferrywatch.schemas.prediction import Prediction, TripPredictions

    mock_predict.return_value = TripPredictions(
        vessel_id=36,
        vessel_abbrev="WEN",
        terminal_pair="P52->BBI",
        at_dock=Prediction(model_type="at-dock-duration", terminal_pair="P52->BBI", value=14.2, lower=10.1, upper=18.3),
        at_sea=Prediction(model_type="at-sea-duration", terminal_pair="P52->BBI", reason="not_departed"),
    )
    result = runner.invoke(app, ["predict", "36"])

    assert result.exit_code == 0
    assert "14.2 min" in result.output
    assert "not_departed" in result.output


def test_status(session, make_trip_chain):
    session.add_all(make_trip_chain(3))
    session.commit()

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "Completed: 3" in result.output
    assert "never" in result.output
