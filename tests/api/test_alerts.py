"""Tests for alert status endpoints."""
from unittest.mock import AsyncMock
from uuid import uuid4

from app.models.enums import AlertStatus
from tests.api.conftest import empty_result, make_mock_result

BASE = "/api/v1/alerts"


class TestUpdateAlert:

    async def test_acknowledge(self, client, mock_session, make_alert):
        alert = make_alert()
        mock_session.execute = AsyncMock(side_effect=[make_mock_result(scalar_value=alert), empty_result()])

        response = await client.patch(
            f"{BASE}/{alert.id}",
            json={"status": "acknowledged", "actor": "ops.farhan"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "acknowledged"
        assert data["acknowledged_by"] == "ops.farhan"

    async def test_resolve_with_notes(self, client, mock_session, make_alert):
        alert = make_alert(status=AlertStatus.ACKNOWLEDGED)
        mock_session.execute = AsyncMock(side_effect=[make_mock_result(scalar_value=alert), empty_result()])

        response = await client.patch(
            f"{BASE}/{alert.id}",
            json={"status": "resolved", "actor": "ops.farhan", "notes": "Driver took a diversion"},
        )

        data = response.json()
        assert data["status"] == "resolved"
        assert data["resolved_by"] == "ops.farhan"
        assert data["metadata"]["resolution_notes"] == "Driver took a diversion"
        assert "action_taken_at" in data["metadata"]

    async def test_dismissed_alert_is_final(self, client, mock_session, make_alert):
        alert = make_alert(status=AlertStatus.DISMISSED)
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalar_value=alert))

        response = await client.patch(f"{BASE}/{alert.id}", json={"status": "resolved"})

        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "invalid_alert_status"

    async def test_unknown_alert(self, client, mock_session):
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalar_value=None))

        response = await client.patch(f"{BASE}/{uuid4()}", json={"status": "resolved"})

        assert response.status_code == 404
