"""
Pure alert evaluators.

Each evaluator looks at current telemetry (plus recent history where it
needs it) and returns a check result carrying an ``AlertFinding`` when an
alert should exist. Nothing here touches the database; deduplication,
creation and auto-resolution happen in ``app.services.alerts.engine``.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from math import floor
from typing import Any, Iterable, Literal, Optional

from app.core.config import settings
from app.models.enums import Severity, TripAlertType
from app.schemas.metadata import (
    MetadataBag,
    DeviationMetadata,
    StoppageMetadata,
    TrackingLostMetadata,
    DelayMetadata,
    IdleMetadata,
)
from app.services.geo.geometry import HasLatLng, format_distance, min_distance_to_route
from app.services.tracking.clustering import format_duration


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AlertFinding:
    """Everything needed to insert one trip alert."""
    alert_type: TripAlertType
    severity: Severity
    title: str
    description: str
    threshold_value: Optional[float] = None
    actual_value: Optional[float] = None
    metadata: Optional[MetadataBag] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


# =============================================================================
# Route deviation
# =============================================================================

@dataclass(frozen=True)
class DeviationCheck:
    distance_meters: Optional[float]
    finding: Optional[AlertFinding] = None

    @property
    def deviated(self) -> bool:
        return self.finding is not None

    @property
    def on_route(self) -> bool:
        return self.distance_meters is not None and self.finding is None


def evaluate_route_deviation(
    lat: float,
    lng: float,
    route: Iterable[HasLatLng],
    threshold_meters: Optional[float] = None,
) -> DeviationCheck:
    """
    Compare the current position with the nearest planned-route vertex.

    An empty route gives no verdict (``distance_meters`` is None).
    """
    if threshold_meters is None:
        threshold_meters = settings.route_deviation_threshold_meters

    distance = min_distance_to_route(lat, lng, route)
    if distance is None or distance <= threshold_meters:
        return DeviationCheck(distance_meters=distance)

    severity = Severity.HIGH if distance > threshold_meters * 2 else Severity.MEDIUM
    return DeviationCheck(
        distance_meters=distance,
        finding=AlertFinding(
            alert_type=TripAlertType.ROUTE_DEVIATION,
            severity=severity,
            title="Route Deviation Detected",
            description=(
                f"Vehicle has deviated {round(distance)}m from planned route "
                f"(threshold: {round(threshold_meters)}m)"
            ),
            threshold_value=threshold_meters,
            actual_value=round(distance, 2),
            metadata=DeviationMetadata(
                distance_meters=round(distance, 2),
                distance_display=format_distance(distance),
            ),
            latitude=lat,
            longitude=lng,
        ),
    )


# =============================================================================
# Stoppage
# =============================================================================

@dataclass(frozen=True)
class StoppageCheck:
    is_stopped: bool
    stopped_since: Optional[datetime] = None
    duration_minutes: float = 0.0
    finding: Optional[AlertFinding] = None


def evaluate_stoppage(
    current_speed: Optional[float],
    recent_points: Iterable[Any],
    now: Optional[datetime] = None,
    threshold_minutes: Optional[float] = None,
    high_severity_minutes: Optional[float] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> StoppageCheck:
    """
    Work out how long the vehicle has been stationary.

    Args:
        current_speed: Speed of the newest ping (km/h). A missing speed
            counts as stationary.
        recent_points: Location history newest first; each item has
            ``speed_kmph`` and ``event_time``.
        now: Evaluation time (default: current UTC time).

    The walk stops at the first moving point; ``stopped_since`` is the
    time of the oldest stationary point before it.
    """
    if threshold_minutes is None:
        threshold_minutes = settings.stoppage_threshold_minutes
    if high_severity_minutes is None:
        high_severity_minutes = settings.stoppage_high_severity_minutes
    now = now or utcnow()

    if current_speed is not None and current_speed > 0:
        return StoppageCheck(is_stopped=False)

    stopped_since = now
    for point in recent_points:
        if point.speed_kmph is not None and float(point.speed_kmph) > 0:
            break
        stopped_since = point.event_time

    duration = (now - stopped_since).total_seconds() / 60
    if duration < threshold_minutes:
        return StoppageCheck(is_stopped=False, stopped_since=stopped_since, duration_minutes=duration)

    return StoppageCheck(
        is_stopped=True,
        stopped_since=stopped_since,
        duration_minutes=duration,
        finding=AlertFinding(
            alert_type=TripAlertType.STOPPAGE,
            severity=Severity.HIGH if duration > high_severity_minutes else Severity.MEDIUM,
            title="Vehicle Stoppage Detected",
            description=f"Vehicle has been stationary for {format_duration(duration)}",
            threshold_value=threshold_minutes,
            actual_value=round(duration),
            metadata=StoppageMetadata(
                stopped_since=stopped_since,
                stopped_minutes=round(duration, 1),
            ),
            latitude=lat,
            longitude=lng,
        ),
    )


# =============================================================================
# Tracking lost
# =============================================================================

@dataclass(frozen=True)
class TrackingCheck:
    lost: bool
    missed_intervals: Optional[int] = None
    minutes_since_ping: Optional[float] = None
    finding: Optional[AlertFinding] = None


def evaluate_tracking_lost(
    last_ping_at: Optional[datetime],
    now: Optional[datetime] = None,
    ping_interval_minutes: Optional[float] = None,
    missed_intervals_threshold: Optional[int] = None,
    critical_intervals: Optional[int] = None,
) -> TrackingCheck:
    """Count whole ping intervals missed since the last ping."""
    if ping_interval_minutes is None:
        ping_interval_minutes = settings.ping_interval_minutes
    if missed_intervals_threshold is None:
        missed_intervals_threshold = settings.tracking_lost_missed_intervals
    if critical_intervals is None:
        critical_intervals = settings.tracking_lost_critical_intervals
    now = now or utcnow()

    if last_ping_at is None:
        return TrackingCheck(
            lost=True,
            finding=AlertFinding(
                alert_type=TripAlertType.TRACKING_LOST,
                severity=Severity.HIGH,
                title="Tracking Lost - No Data",
                description="No location data has been received for this trip",
                threshold_value=missed_intervals_threshold,
                metadata=TrackingLostMetadata(),
            ),
        )

    minutes = (now - last_ping_at).total_seconds() / 60
    missed = floor(minutes / ping_interval_minutes)
    if missed < missed_intervals_threshold:
        return TrackingCheck(lost=False, missed_intervals=missed, minutes_since_ping=minutes)

    return TrackingCheck(
        lost=True,
        missed_intervals=missed,
        minutes_since_ping=minutes,
        finding=AlertFinding(
            alert_type=TripAlertType.TRACKING_LOST,
            severity=Severity.CRITICAL if missed > critical_intervals else Severity.HIGH,
            title="Tracking Lost",
            description=(
                f"No location data received for {round(minutes)} minutes "
                f"({missed} missed intervals)"
            ),
            threshold_value=missed_intervals_threshold,
            actual_value=missed,
            metadata=TrackingLostMetadata(
                last_ping_at=last_ping_at,
                minutes_since_ping=round(minutes),
                missed_intervals=missed,
            ),
        ),
    )


# =============================================================================
# Idle trip
# =============================================================================

@dataclass(frozen=True)
class IdleCheck:
    idle: bool
    running_minutes: Optional[float] = None
    finding: Optional[AlertFinding] = None


def evaluate_idle_trip(
    started_at: Optional[datetime],
    last_ping_at: Optional[datetime],
    now: Optional[datetime] = None,
    threshold_minutes: Optional[float] = None,
) -> IdleCheck:
    """
    Flag a started trip that has never sent location data.

    Trips that have not started, or that have received any ping, are not
    idle. A trip running for less than ``threshold_minutes`` is not idle yet.
    """
    if threshold_minutes is None:
        threshold_minutes = settings.idle_trip_threshold_minutes
    now = now or utcnow()

    if started_at is None or last_ping_at is not None:
        return IdleCheck(idle=False)

    running = (now - started_at).total_seconds() / 60
    if running < threshold_minutes:
        return IdleCheck(idle=False, running_minutes=running)

    hours = round(running / 60, 1)
    return IdleCheck(
        idle=True,
        running_minutes=running,
        finding=AlertFinding(
            alert_type=TripAlertType.IDLE_DETECTED,
            severity=Severity.HIGH,
            title="Trip Idle - No Activity",
            description=f"Trip started {hours} hours ago but no location data has been received.",
            threshold_value=threshold_minutes,
            actual_value=round(running),
            metadata=IdleMetadata(start_time=started_at, running_minutes=round(running)),
        ),
    )


# =============================================================================
# Delay warning
# =============================================================================

DelayOutcome = Literal["delayed", "on_schedule", "indeterminate"]


@dataclass(frozen=True)
class DelayCheck:
    """
    Outcome of an ETA comparison.

    ``on_schedule`` means any active delay alert should be auto-resolved;
    ``indeterminate`` (missing ETAs, or both ETAs already past) leaves
    existing alerts alone.
    """
    outcome: DelayOutcome
    delay_minutes: Optional[int] = None
    delay_percent: Optional[float] = None
    finding: Optional[AlertFinding] = None

    @property
    def delayed(self) -> bool:
        return self.outcome == "delayed"


def evaluate_delay(
    baseline_eta: Optional[datetime],
    current_eta: Optional[datetime],
    now: Optional[datetime] = None,
    threshold_percent: Optional[float] = None,
) -> DelayCheck:
    """
    Compare the planned baseline ETA with the latest computed ETA.

    Two regimes:
    - Past due: baseline already passed but the vehicle is still en route.
      Delay is the time left to the current ETA, in minutes.
    - Slipping: both ETAs ahead. Delay is the extra remaining time as a
      percentage of the baseline's remaining time.
    """
    if threshold_percent is None:
        threshold_percent = settings.delay_threshold_percent
    now = now or utcnow()

    if baseline_eta is None or current_eta is None:
        return DelayCheck(outcome="indeterminate")

    baseline_remaining = (baseline_eta - now).total_seconds()
    current_remaining = (current_eta - now).total_seconds()

    if baseline_remaining <= 0:
        if current_remaining <= 0:
            return DelayCheck(outcome="indeterminate")

        delay_minutes = round(current_remaining / 60)
        return DelayCheck(
            outcome="delayed",
            delay_minutes=delay_minutes,
            delay_percent=100.0,
            finding=AlertFinding(
                alert_type=TripAlertType.DELAY_WARNING,
                severity=Severity.HIGH if delay_minutes > 60 else Severity.MEDIUM,
                title="Trip Delayed - Past Due",
                description=f"Trip is {delay_minutes} minutes past the planned ETA",
                threshold_value=0,
                actual_value=delay_minutes,
                metadata=DelayMetadata(
                    regime="past_due",
                    baseline_eta=baseline_eta,
                    current_eta=current_eta,
                    delay_minutes=delay_minutes,
                ),
            ),
        )

    delay_seconds = current_remaining - baseline_remaining
    if delay_seconds <= 0:
        return DelayCheck(outcome="on_schedule", delay_minutes=0, delay_percent=0.0)

    delay_percent = delay_seconds / baseline_remaining * 100
    delay_minutes = round(delay_seconds / 60)
    if delay_percent < threshold_percent:
        return DelayCheck(outcome="on_schedule", delay_minutes=delay_minutes, delay_percent=delay_percent)

    if delay_percent > 50:
        severity = Severity.HIGH
    elif delay_percent > 30:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    return DelayCheck(
        outcome="delayed",
        delay_minutes=delay_minutes,
        delay_percent=delay_percent,
        finding=AlertFinding(
            alert_type=TripAlertType.DELAY_WARNING,
            severity=severity,
            title="Delay Warning",
            description=(
                f"Trip is running {delay_minutes} minutes behind schedule "
                f"({round(delay_percent)}% delay)"
            ),
            threshold_value=threshold_percent,
            actual_value=round(delay_percent, 2),
            metadata=DelayMetadata(
                regime="percentage",
                baseline_eta=baseline_eta,
                current_eta=current_eta,
                delay_minutes=delay_minutes,
                delay_percent=round(delay_percent, 2),
            ),
        ),
    )


# =============================================================================
# Shared delay percentage (shipment delay tracking and delay exceptions)
# =============================================================================

def calculate_delay_percentage(
    planned_time: datetime,
    actual_time: datetime,
    standard_tat_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> float:
    """
    Delay of ``actual_time`` past ``planned_time`` as a percentage of TAT.

    TAT is the standard turnaround time when given, otherwise the time
    still remaining until ``planned_time``. A non-positive TAT yields 0.
    Early arrivals give a negative percentage.
    """
    now = now or utcnow()
    if standard_tat_hours:
        tat_seconds = standard_tat_hours * 3600
    else:
        tat_seconds = (planned_time - now).total_seconds()

    if tat_seconds <= 0:
        return 0.0

    delay_seconds = (actual_time - planned_time).total_seconds()
    return round(delay_seconds / tat_seconds * 100, 2)


def should_flag_delay(delay_percentage: float, threshold_percent: Optional[float] = None) -> bool:
    if threshold_percent is None:
        threshold_percent = settings.delay_threshold_percent
    return delay_percentage > threshold_percent
