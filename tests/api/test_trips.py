"""Tests for trip endpoints: alert listing, consent webhook, capacity and sweep."""
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

from app.models.enums import AlertStatus, FreightType, TripAlertType
from tests.api.conftest import empty_result, make_mock_result
from tests.conftest import NOW

BASE = "/api/v1/trips"


class TestTripAlerts:

    async def test_list(self, client, mock_session, make_alert):
        trip_id = uuid4()
        alerts = [
            make_alert(TripAlertType.STOPPAGE, trip_id=trip_id, meta={"stopped_minutes": 42.0}),
            make_alert(trip_id=trip_id, status=AlertStatus.RESOLVED),
        ]
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalars_list=alerts))

        response = await client.get(f"{BASE}/{trip_id}/alerts")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["items"][0]["alert_type"] == "stoppage"
        assert data["items"][0]["metadata"] == {"stopped_minutes": 42.0}

    async def test_status_filter_in_query(self, client, mock_session):
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalars_list=[]))

        response = await client.get(f"{BASE}/{uuid4()}/alerts", params={"status": "active"})

        assert response.status_code == 200
        stmt = mock_session.execute.call_args_list[0].args[0]
        assert "trip_alerts.status" in str(stmt.whereclause)

    async def test_bad_status_filter(self, client):
        response = await client.get(f"{BASE}/{uuid4()}/alerts", params={"status": "snoozed"})
        assert response.status_code == 422


class TestConsentRevoked:

    async def test_creates_alert(self, client, mock_session, make_trip):
        trip = make_trip()
        mock_session.execute = AsyncMock(side_effect=[
            make_mock_result(scalar_value=trip),
            make_mock_result(scalar_value=None),
            empty_result(),
        ])

        response = await client.post(
            f"{BASE}/{trip.id}/consent-revoked",
            json={"driver_name": "Suresh Patil", "driver_mobile": "9123456780"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["alert_created"] is True
        assert data["alert"]["severity"] == "critical"
        assert data["alert"]["metadata"]["driver_name"] == "Suresh Patil"
        assert trip.is_trackable is False

    async def test_duplicate_webhook(self, client, mock_session, make_trip, make_alert):
        trip = make_trip(is_trackable=False)
        mock_session.execute = AsyncMock(side_effect=[
            make_mock_result(scalar_value=trip),
            make_mock_result(scalar_value=make_alert(TripAlertType.CONSENT_REVOKED, trip_id=trip.id)),
        ])

        response = await client.post(f"{BASE}/{trip.id}/consent-revoked", json={})

        assert response.json() == {"trip_id": str(trip.id), "alert_created": False, "alert": None}

    async def test_unknown_trip(self, client, mock_session):
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalar_value=None))

        response = await client.post(f"{BASE}/{uuid4()}/consent-revoked", json={})

        assert response.status_code == 404
        assert response.json()["error"]["message"].startswith("Trip ")


class TestCapacityCheck:

    async def test_over_capacity(self, client, mock_session):
        mock_session.execute = AsyncMock(side_effect=[
            make_mock_result(row=(FreightType.PTL, uuid4(), 1000, 20)),
            make_mock_result(row=(700, 5)),
        ])

        response = await client.post(
            f"{BASE}/{uuid4()}/capacity-check",
            json={"candidate_weight_kg": 400, "candidate_volume_cbm": 0},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert data["checked"] is True
        assert data["weight_utilization"] == 110.0
        assert data["volume_utilization"] == 25.0

    async def test_negative_weight_rejected(self, client):
        response = await client.post(f"{BASE}/{uuid4()}/capacity-check", json={"candidate_weight_kg": -1})
        assert response.status_code == 422


class TestSweep:

    async def test_sweep_with_reconcile(self, client, mock_session, make_trip, make_alert):
        trip = make_trip(last_ping_at=NOW - timedelta(days=1))
        trip_id = uuid4()
        first = make_alert(trip_id=trip_id, triggered_at=NOW - timedelta(minutes=5))
        duplicate = make_alert(trip_id=trip_id, triggered_at=NOW - timedelta(minutes=4))
        mock_session.execute = AsyncMock(side_effect=[
            # sweep: one trip, tracking lost alert created, delay indeterminate, recount
            make_mock_result(scalars_list=[trip]),
            make_mock_result(scalar_value=None),
            empty_result(),
            empty_result(),
            # reconcile
            make_mock_result(scalars_list=[first, duplicate]),
            empty_result(),
        ])

        response = await client.post(f"{BASE}/alerts/sweep", params={"reconcile": "true"})

        assert response.status_code == 200
        assert response.json() == {
            "trips_checked": 1,
            "alerts_created": ["tracking_lost"],
            "alerts_resolved": [],
            "duplicates_dismissed": 1,
        }
        assert trip.is_trackable is False
