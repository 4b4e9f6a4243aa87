"""Tests for tracking point ingestion."""
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.models.enums import TrackingSource
from app.schemas.tracking import TrackingPointIn
from app.services.tracking.ingest import list_tracking_points, record_tracking_points
from tests.api.conftest import make_mock_result
from tests.conftest import NOW


def _ping(lat, lng, minutes, **kwargs):
    return TrackingPointIn(latitude=lat, longitude=lng, event_time=NOW + timedelta(minutes=minutes), **kwargs)


class TestRecordTrackingPoints:

    async def test_first_points_for_trip(self, mock_session):
        trip_id = uuid4()
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalar_value=None))

        points = await record_tracking_points(
            mock_session, trip_id, [_ping(19.0, 72.8, 0, source=TrackingSource.TELENITY)],
        )

        (point,) = points
        assert point.trip_id == trip_id
        assert point.sequence_number == 1
        assert point.heading is None
        assert point.source == TrackingSource.TELENITY
        assert point.location is not None
        mock_session.flush.assert_awaited_once()

    async def test_continues_sequence_and_sorts_by_time(self, mock_session, make_tracking_point):
        trip_id = uuid4()
        last = make_tracking_point(lat=19.0, lng=72.8, sequence_number=7, trip_id=trip_id)
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalar_value=last))

        points = await record_tracking_points(
            mock_session,
            trip_id,
            [_ping(19.02, 72.8, 10), _ping(19.01, 72.8, 5)],
        )

        assert [p.sequence_number for p in points] == [8, 9]
        assert [p.latitude for p in points] == [19.01, 19.02]

    async def test_derives_heading_from_previous_point(self, mock_session, make_tracking_point):
        last = make_tracking_point(lat=19.0, lng=72.8, sequence_number=3)
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalar_value=last))

        points = await record_tracking_points(
            mock_session,
            last.trip_id,
            [_ping(19.01, 72.8, 1), _ping(19.01, 72.81, 2, heading=45.0)],
        )

        assert points[0].heading == pytest.approx(0.0)
        assert points[1].heading == 45.0

    async def test_list_in_sequence_order(self, mock_session, make_tracking_point):
        rows = [make_tracking_point(sequence_number=1), make_tracking_point(sequence_number=2)]
        mock_session.execute = AsyncMock(return_value=make_mock_result(scalars_list=rows))

        assert await list_tracking_points(mock_session, uuid4()) == rows
