"""
Tests for ORM model definitions.

No database required -- inspects mapper metadata and transient instances only.
"""
from sqlalchemy import inspect as sa_inspect

from app.models import (
    AlertStatus,
    ExceptionStatus,
    ShipmentStatus,
    Shipment,
    ShipmentException,
    ShipmentStatusHistory,
    TrackingPoint,
    Trip,
    TripAlert,
)


def _column_names(model_cls) -> set[str]:
    """Return the set of mapped attribute names for an ORM model."""
    mapper = sa_inspect(model_cls)
    return {col.key for col in mapper.column_attrs}


class TestShipmentColumns:

    def test_aggregates(self):
        cols = _column_names(Shipment)
        assert {"exception_count", "has_open_exception", "delay_percentage", "is_delayed"} <= cols

    def test_status_timestamps(self):
        for status in ShipmentStatus:
            if status.timestamp_field:
                assert status.timestamp_field in _column_names(Shipment)

    def test_is_terminal(self, make_shipment):
        assert make_shipment(status=ShipmentStatus.RETURNED).is_terminal is True
        assert make_shipment(status=ShipmentStatus.NDR).is_terminal is False


class TestMetadataColumns:

    def test_stored_as_metadata_column(self):
        for model in (ShipmentStatusHistory, ShipmentException, TripAlert):
            assert "meta" in _column_names(model)
            assert "metadata" in model.__table__.c

    def test_to_dict_uses_attribute_name(self, make_alert):
        data = make_alert(meta={"distance_meters": 700}).to_dict()
        assert data["meta"] == {"distance_meters": 700}
        assert "metadata" not in data


class TestTripAlertModel:

    def test_one_active_per_type_index(self):
        index = next(i for i in TripAlert.__table__.indexes if i.name == "uq_trip_alerts_one_active_per_type")
        assert index.unique is True
        assert [c.name for c in index.columns] == ["trip_id", "alert_type"]
        assert "active" in str(index.dialect_options["postgresql"]["where"])

    def test_is_open(self, make_alert):
        assert make_alert(status=AlertStatus.ACKNOWLEDGED).is_open is True
        assert make_alert(status=AlertStatus.DISMISSED).is_open is False


class TestShipmentExceptionModel:

    def test_escalated_counts_as_open(self, make_exception):
        assert make_exception(status=ExceptionStatus.ESCALATED).is_open is True

    def test_acknowledged_is_not_open(self, make_exception):
        assert make_exception(status=ExceptionStatus.ACKNOWLEDGED).is_open is False


class TestTripModel:

    def test_eta_baseline_prefers_planned_eta(self, make_trip, now):
        trip = make_trip(planned_eta=now, planned_end_time=None)
        assert trip.eta_baseline == now

    def test_eta_baseline_falls_back_to_end_time(self, make_trip, now):
        trip = make_trip(planned_eta=None, planned_end_time=now)
        assert trip.eta_baseline == now

    def test_tracking_aggregates(self):
        assert {"is_trackable", "active_alert_count", "last_ping_at", "current_eta"} <= _column_names(Trip)


class TestTrackingPointModel:

    def test_sequence_unique_per_trip(self):
        names = {c.name for c in TrackingPoint.__table__.constraints}
        assert "uq_tracking_points_trip_sequence" in names
