"""Tests for the periodic Celery tasks (called directly, no broker)."""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest

from app.core.celery_app import celery_app
from app.models.enums import TripAlertType
from app.services.alerts.engine import AlertChanges, SweepReport
from app.services.tasks import reconcile_alerts, run_trip_alert_sweep


@pytest.fixture
def fake_worker_session(mock_session):
    @asynccontextmanager
    async def _session():
        yield mock_session

    with patch("app.services.tasks.worker_session", _session):
        yield mock_session


class TestRunTripAlertSweep:

    def test_returns_summary(self, fake_worker_session):
        report = SweepReport(
            trips_checked=3,
            changes=AlertChanges(
                created=[TripAlertType.DELAY_WARNING],
                resolved=[TripAlertType.TRACKING_LOST],
            ),
        )
        with patch("app.services.tasks.run_alert_sweep", AsyncMock(return_value=report)) as sweep:
            summary = run_trip_alert_sweep()

        sweep.assert_awaited_once_with(fake_worker_session)
        assert summary == {
            "trips_checked": 3,
            "alerts_created": ["delay_warning"],
            "alerts_resolved": ["tracking_lost"],
        }

    def test_failure_propagates(self, fake_worker_session):
        with patch("app.services.tasks.run_alert_sweep", AsyncMock(side_effect=RuntimeError("db down"))):
            with pytest.raises(RuntimeError, match="db down"):
                run_trip_alert_sweep()


class TestReconcileAlerts:

    def test_returns_dismissed_count(self, fake_worker_session):
        with patch("app.services.tasks.reconcile_duplicate_alerts", AsyncMock(return_value=2)):
            assert reconcile_alerts() == {"dismissed": 2}


class TestBeatSchedule:

    def test_both_tasks_scheduled(self):
        tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
        assert tasks == {
            "app.services.tasks.run_trip_alert_sweep",
            "app.services.tasks.reconcile_alerts",
        }

    def test_sweep_interval_from_settings(self):
        assert celery_app.conf.beat_schedule["trip-alert-sweep"]["schedule"] == 300.0
