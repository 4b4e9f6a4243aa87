"""
Tests for the pure alert evaluators in app.services.alerts.detectors.

Every evaluator takes an explicit ``now`` so results are deterministic.
"""
from datetime import timedelta
from types import SimpleNamespace

import pytest

from app.models.enums import Severity, TripAlertType
from app.schemas.metadata import DelayMetadata, DeviationMetadata, IdleMetadata, StoppageMetadata
from app.services.alerts.detectors import (
    calculate_delay_percentage,
    evaluate_delay,
    evaluate_idle_trip,
    evaluate_route_deviation,
    evaluate_stoppage,
    evaluate_tracking_lost,
    should_flag_delay,
)
from app.services.geo.geometry import Coordinate
from tests.conftest import NOW

ROUTE = [Coordinate(19.0760, 72.8777), Coordinate(19.2000, 72.9700)]


def _ping(minutes_ago, speed):
    return SimpleNamespace(event_time=NOW - timedelta(minutes=minutes_ago), speed_kmph=speed)


class TestRouteDeviation:

    def test_on_route(self):
        check = evaluate_route_deviation(19.0765, 72.8777, ROUTE, threshold_meters=500)
        assert check.on_route is True
        assert check.deviated is False
        assert check.distance_meters < 100

    def test_empty_route_gives_no_verdict(self):
        check = evaluate_route_deviation(19.0765, 72.8777, [], threshold_meters=500)
        assert check.distance_meters is None
        assert check.on_route is False
        assert check.deviated is False

    def test_medium_deviation(self):
        # ~667 m north of the first vertex
        check = evaluate_route_deviation(19.0820, 72.8777, ROUTE, threshold_meters=500)
        assert check.deviated is True
        finding = check.finding
        assert finding.alert_type == TripAlertType.ROUTE_DEVIATION
        assert finding.severity == Severity.MEDIUM
        assert finding.threshold_value == 500
        assert finding.actual_value == pytest.approx(667, abs=5)
        assert (finding.latitude, finding.longitude) == (19.0820, 72.8777)
        assert isinstance(finding.metadata, DeviationMetadata)

    def test_high_beyond_twice_threshold(self):
        check = evaluate_route_deviation(19.0860, 72.8777, ROUTE, threshold_meters=500)
        assert check.finding.severity == Severity.HIGH

    def test_exactly_at_threshold_is_on_route(self):
        distance = evaluate_route_deviation(19.0820, 72.8777, ROUTE, threshold_meters=10_000).distance_meters
        check = evaluate_route_deviation(19.0820, 72.8777, ROUTE, threshold_meters=distance)
        assert check.on_route is True

    def test_threshold_defaults_to_settings(self):
        check = evaluate_route_deviation(19.0820, 72.8777, ROUTE)
        assert check.finding.threshold_value == 500.0


class TestStoppage:

    def test_moving_vehicle(self):
        check = evaluate_stoppage(42.0, [_ping(5, 0)], now=NOW)
        assert check.is_stopped is False
        assert check.finding is None

    def test_walk_stops_at_first_moving_point(self):
        history = [_ping(5, 0), _ping(10, 0), _ping(20, None), _ping(40, 35.0), _ping(60, 0)]

        check = evaluate_stoppage(0, history, now=NOW, threshold_minutes=30)

        assert check.is_stopped is False
        assert check.stopped_since == NOW - timedelta(minutes=20)
        assert check.duration_minutes == pytest.approx(20)

    def test_missing_speed_counts_as_stationary(self):
        history = [_ping(m, None) for m in (5, 15, 25, 35, 45)]

        check = evaluate_stoppage(None, history, now=NOW, threshold_minutes=30, high_severity_minutes=60)

        assert check.is_stopped is True
        assert check.finding.severity == Severity.MEDIUM
        assert check.finding.actual_value == 45
        assert isinstance(check.finding.metadata, StoppageMetadata)
        assert check.finding.metadata.stopped_since == NOW - timedelta(minutes=45)

    def test_long_stoppage_is_high(self):
        history = [_ping(m, 0) for m in range(5, 95, 10)]
        check = evaluate_stoppage(0, history, now=NOW, threshold_minutes=30, high_severity_minutes=60)
        assert check.finding.severity == Severity.HIGH
        assert "1h 25m" in check.finding.description

    def test_no_history_means_zero_duration(self):
        check = evaluate_stoppage(0, [], now=NOW, threshold_minutes=30)
        assert check.is_stopped is False
        assert check.duration_minutes == 0


class TestTrackingLost:

    def test_no_ping_ever(self):
        check = evaluate_tracking_lost(None, now=NOW)
        assert check.lost is True
        assert check.finding.severity == Severity.HIGH
        assert check.finding.title == "Tracking Lost - No Data"

    def test_recent_ping(self):
        check = evaluate_tracking_lost(NOW - timedelta(minutes=9), now=NOW, ping_interval_minutes=5)
        assert check.lost is False
        assert check.missed_intervals == 1

    def test_two_missed_intervals_is_high(self):
        check = evaluate_tracking_lost(
            NOW - timedelta(minutes=12),
            now=NOW,
            ping_interval_minutes=5,
            missed_intervals_threshold=2,
            critical_intervals=4,
        )
        assert check.lost is True
        assert check.missed_intervals == 2
        assert check.finding.severity == Severity.HIGH
        assert check.finding.actual_value == 2

    def test_many_missed_intervals_is_critical(self):
        check = evaluate_tracking_lost(
            NOW - timedelta(minutes=26),
            now=NOW,
            ping_interval_minutes=5,
            missed_intervals_threshold=2,
            critical_intervals=4,
        )
        assert check.missed_intervals == 5
        assert check.finding.severity == Severity.CRITICAL
        assert check.finding.metadata.minutes_since_ping == 26


class TestIdleTrip:

    def test_started_without_data(self):
        started = NOW - timedelta(minutes=150)
        check = evaluate_idle_trip(started, None, now=NOW)

        assert check.idle is True
        assert check.running_minutes == 150
        finding = check.finding
        assert finding.alert_type == TripAlertType.IDLE_DETECTED
        assert finding.severity == Severity.HIGH
        assert finding.description == "Trip started 2.5 hours ago but no location data has been received."
        assert finding.threshold_value == 120.0
        assert isinstance(finding.metadata, IdleMetadata)
        assert finding.metadata.start_time == started

    def test_within_threshold(self):
        check = evaluate_idle_trip(NOW - timedelta(minutes=90), None, now=NOW)
        assert check.idle is False
        assert check.running_minutes == 90

    @pytest.mark.parametrize("started_minutes_ago, last_ping_minutes_ago", [
        (None, None),
        (300, 10),
    ])
    def test_not_idle(self, started_minutes_ago, last_ping_minutes_ago):
        started = NOW - timedelta(minutes=started_minutes_ago) if started_minutes_ago else None
        last_ping = NOW - timedelta(minutes=last_ping_minutes_ago) if last_ping_minutes_ago else None

        check = evaluate_idle_trip(started, last_ping, now=NOW)

        assert check.idle is False
        assert check.finding is None

    def test_custom_threshold(self):
        assert evaluate_idle_trip(NOW - timedelta(minutes=45), None, now=NOW, threshold_minutes=30).idle is True


class TestDelay:

    def test_missing_eta_is_indeterminate(self):
        assert evaluate_delay(None, NOW, now=NOW).outcome == "indeterminate"
        assert evaluate_delay(NOW, None, now=NOW).outcome == "indeterminate"

    def test_past_due(self):
        check = evaluate_delay(NOW - timedelta(hours=2), NOW + timedelta(minutes=30), now=NOW)

        assert check.delayed is True
        assert check.delay_minutes == 30
        finding = check.finding
        assert finding.title == "Trip Delayed - Past Due"
        assert finding.actual_value == 30
        assert finding.severity == Severity.MEDIUM
        assert isinstance(finding.metadata, DelayMetadata)
        assert finding.metadata.regime == "past_due"

    def test_past_due_over_an_hour_is_high(self):
        check = evaluate_delay(NOW - timedelta(hours=1), NOW + timedelta(minutes=90), now=NOW)
        assert check.finding.severity == Severity.HIGH

    def test_both_etas_passed_is_indeterminate(self):
        check = evaluate_delay(NOW - timedelta(hours=2), NOW - timedelta(minutes=5), now=NOW)
        assert check.outcome == "indeterminate"

    def test_ahead_of_schedule(self):
        check = evaluate_delay(NOW + timedelta(minutes=100), NOW + timedelta(minutes=90), now=NOW)
        assert check.outcome == "on_schedule"
        assert check.delay_percent == 0.0

    def test_below_threshold_is_on_schedule(self):
        check = evaluate_delay(NOW + timedelta(minutes=100), NOW + timedelta(minutes=110), now=NOW, threshold_percent=15)
        assert check.outcome == "on_schedule"
        assert check.delay_percent == pytest.approx(10)

    @pytest.mark.parametrize("current_minutes, severity", [
        (120, Severity.LOW),
        (140, Severity.MEDIUM),
        (160, Severity.HIGH),
    ])
    def test_percentage_severity(self, current_minutes, severity):
        check = evaluate_delay(
            NOW + timedelta(minutes=100),
            NOW + timedelta(minutes=current_minutes),
            now=NOW,
            threshold_percent=15,
        )
        assert check.delayed is True
        assert check.finding.severity == severity
        assert check.finding.metadata.regime == "percentage"


class TestDelayPercentage:

    def test_with_standard_tat(self):
        assert calculate_delay_percentage(NOW, NOW + timedelta(hours=3), standard_tat_hours=10) == 30.0

    def test_tat_from_remaining_time(self):
        pct = calculate_delay_percentage(NOW, NOW + timedelta(hours=1), now=NOW - timedelta(hours=10))
        assert pct == 10.0

    def test_non_positive_tat_is_zero(self):
        assert calculate_delay_percentage(NOW, NOW + timedelta(hours=1), now=NOW + timedelta(minutes=1)) == 0.0

    def test_early_arrival_is_negative(self):
        assert calculate_delay_percentage(NOW, NOW - timedelta(hours=2), standard_tat_hours=10) == -20.0

    def test_flag_is_strictly_above_threshold(self):
        assert should_flag_delay(15.0, threshold_percent=15) is False
        assert should_flag_delay(15.01, threshold_percent=15) is True
