"""
Trip alert engine.

Runs the pure evaluators in ``detectors`` against stored trip state and
turns their verdicts into alert rows:

- dedup: before inserting, look for an active alert of the same
  (trip, type) and skip if one exists (stoppage uses its own time-window
  rule instead);
- auto-resolve: when a condition clears, resolve its active alerts with
  the reason merged into metadata;
- counts: every create/resolve re-derives ``trips.active_alert_count``.

Dedup is check-then-insert without engine-level locking. Two concurrent
writers can both pass the check; the partial unique index on trip_alerts
rejects the second insert (surfaced as PersistenceError) and
``reconcile_duplicate_alerts`` dismisses any duplicates that still slip in.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from itertools import groupby
from typing import Iterable, Optional, Sequence, Union
from uuid import UUID

from geoalchemy2.elements import WKTElement
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidAlertStatus, NotFoundError, PersistenceError
from app.models import Trip, TripAlert, TrackingPoint
from app.models.enums import (
    AlertStatus,
    OPEN_ALERT_STATUSES,
    Severity,
    TripAlertType,
    TripStatus,
)
from app.schemas.metadata import (
    AutoResolution,
    ConsentMetadata,
    OperatorAction,
    Reconciliation,
    merge_metadata,
)
from app.schemas.tracking import TrackingPointIn
from app.services.alerts.detectors import (
    AlertFinding,
    DelayCheck,
    DeviationCheck,
    IdleCheck,
    StoppageCheck,
    TrackingCheck,
    evaluate_delay,
    evaluate_idle_trip,
    evaluate_route_deviation,
    evaluate_stoppage,
    evaluate_tracking_lost,
    utcnow,
)
from app.services.geo.geometry import HasLatLng, decode_polyline
from app.services.tracking.ingest import record_tracking_points

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


@dataclass
class AlertChanges:
    """Alert types created / resolved during one evaluation."""
    created: list[TripAlertType] = field(default_factory=list)
    resolved: list[TripAlertType] = field(default_factory=list)

    def merge(self, other: "AlertChanges") -> None:
        self.created.extend(other.created)
        self.resolved.extend(other.resolved)


# =============================================================================
# Lookups
# =============================================================================

async def get_trip(session: AsyncSession, trip_id: UUID, for_update: bool = False) -> Trip:
    query = select(Trip).where(Trip.id == trip_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    trip = result.scalar_one_or_none()
    if trip is None:
        raise NotFoundError("Trip", trip_id)
    return trip


async def find_active_alert(
    session: AsyncSession,
    trip_id: UUID,
    alert_type: TripAlertType,
) -> Optional[TripAlert]:
    """Earliest active alert of a type for a trip, if any."""
    result = await session.execute(
        select(TripAlert)
        .where(
            TripAlert.trip_id == trip_id,
            TripAlert.alert_type == alert_type,
            TripAlert.status == AlertStatus.ACTIVE,
        )
        .order_by(TripAlert.triggered_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_trip_alerts(
    session: AsyncSession,
    trip_id: UUID,
    status: Optional[AlertStatus] = None,
) -> list[TripAlert]:
    """Alerts for a trip, newest first."""
    query = select(TripAlert).where(TripAlert.trip_id == trip_id)
    if status:
        query = query.where(TripAlert.status == status)
    result = await session.execute(query.order_by(TripAlert.triggered_at.desc()))
    return list(result.scalars().all())


async def refresh_active_alert_count(session: AsyncSession, trip_id: UUID) -> int:
    """Recount active + acknowledged alerts and store the count on the trip."""
    count = await session.scalar(
        select(func.count(TripAlert.id)).where(
            TripAlert.trip_id == trip_id,
            TripAlert.status.in_(OPEN_ALERT_STATUSES),
        )
    )
    count = count or 0
    await session.execute(update(Trip).where(Trip.id == trip_id).values(active_alert_count=count))
    return count


# =============================================================================
# Create / resolve
# =============================================================================

async def create_trip_alert(
    session: AsyncSession,
    trip_id: UUID,
    finding: AlertFinding,
    now: Optional[datetime] = None,
    dedup: bool = True,
) -> Optional[TripAlert]:
    """
    Insert an alert for a finding.

    Returns None without writing when ``dedup`` is set and an active alert
    of the same type already exists for the trip.

    Raises:
        PersistenceError: The insert failed, including the case where a
            concurrent writer created the same active alert first.
    """
    if dedup and await find_active_alert(session, trip_id, finding.alert_type):
        logger.debug(f"Active {finding.alert_type.value} alert already exists for trip {trip_id}")
        return None

    alert = TripAlert(
        trip_id=trip_id,
        alert_type=finding.alert_type,
        status=AlertStatus.ACTIVE,
        severity=finding.severity or finding.alert_type.default_severity,
        title=finding.title,
        description=finding.description,
        threshold_value=finding.threshold_value,
        actual_value=finding.actual_value,
        meta=merge_metadata({}, finding.metadata),
        triggered_at=now or utcnow(),
    )
    if finding.latitude is not None and finding.longitude is not None:
        alert.latitude = finding.latitude
        alert.longitude = finding.longitude
        alert.location = WKTElement(f"POINT({finding.longitude} {finding.latitude})", srid=4326)
    session.add(alert)

    try:
        await session.flush()
    except IntegrityError as e:
        logger.warning(f"Concurrent {finding.alert_type.value} alert for trip {trip_id}: {e}")
        raise PersistenceError(
            f"An active {finding.alert_type.value} alert was created concurrently",
            trip_id=trip_id,
        ) from e
    except SQLAlchemyError as e:
        logger.error(f"Failed to create alert for trip {trip_id}: {e}")
        raise PersistenceError("Alert could not be saved", trip_id=trip_id) from e

    await refresh_active_alert_count(session, trip_id)
    logger.info(
        f"Created {finding.alert_type.value} alert ({finding.severity.value}) for trip {trip_id}"
    )
    return alert


async def resolve_active_alerts(
    session: AsyncSession,
    trip_id: UUID,
    alert_type: TripAlertType,
    reason: str,
    now: Optional[datetime] = None,
) -> int:
    """Auto-resolve every active alert of a type; returns how many were resolved."""
    result = await session.execute(
        select(TripAlert).where(
            TripAlert.trip_id == trip_id,
            TripAlert.alert_type == alert_type,
            TripAlert.status == AlertStatus.ACTIVE,
        )
    )
    alerts = result.scalars().all()
    if not alerts:
        return 0

    now = now or utcnow()
    for alert in alerts:
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = now
        alert.resolved_by = SYSTEM_ACTOR
        alert.meta = merge_metadata(alert.meta, AutoResolution(reason=reason))
    await session.flush()

    await refresh_active_alert_count(session, trip_id)
    logger.info(f"Auto-resolved {len(alerts)} {alert_type.value} alert(s) for trip {trip_id}: {reason}")
    return len(alerts)


async def update_alert_status(
    session: AsyncSession,
    alert_id: UUID,
    new_status: Union[str, AlertStatus],
    actor: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TripAlert:
    """
    Operator action on an alert: acknowledge, resolve or dismiss.

    Notes are merged into metadata together with the action time.
    """
    result = await session.execute(
        select(TripAlert).where(TripAlert.id == alert_id).with_for_update()
    )
    alert = result.scalar_one_or_none()
    if alert is None:
        raise NotFoundError("Alert", alert_id)

    current = AlertStatus(alert.status)
    try:
        target = AlertStatus(new_status)
    except ValueError:
        raise InvalidAlertStatus(f"Unknown alert status: {new_status}", alert_id=alert_id) from None
    if target not in current.allowed_transitions:
        raise InvalidAlertStatus(
            f"Cannot move alert from {current.value} to {target.value}",
            alert_id=alert_id,
            trip_id=alert.trip_id,
        )

    now = now or utcnow()
    alert.status = target
    if target == AlertStatus.ACKNOWLEDGED:
        alert.acknowledged_at = now
        alert.acknowledged_by = actor
    else:
        alert.resolved_at = now
        alert.resolved_by = actor
    if notes:
        alert.meta = merge_metadata(alert.meta, OperatorAction(resolution_notes=notes, action_taken_at=now))

    try:
        await session.flush()
    except SQLAlchemyError as e:
        logger.error(f"Failed to update alert {alert_id}: {e}")
        raise PersistenceError("Alert update could not be saved", alert_id=alert_id) from e

    await refresh_active_alert_count(session, alert.trip_id)
    logger.info(f"Alert {alert_id}: {current.value} -> {target.value} by {actor or 'unknown'}")
    return alert


async def set_trackable(session: AsyncSession, trip: Trip, trackable: bool) -> None:
    if trip.is_trackable != trackable:
        trip.is_trackable = trackable
        await session.flush()


# =============================================================================
# Detectors against stored state
# =============================================================================

async def check_route_deviation(
    session: AsyncSession,
    trip: Trip,
    lat: float,
    lng: float,
    route: Sequence[HasLatLng],
    threshold_meters: Optional[float] = None,
    now: Optional[datetime] = None,
) -> tuple[DeviationCheck, AlertChanges]:
    """Raise a deviation alert when off route; resolve it once back on route."""
    changes = AlertChanges()
    check = evaluate_route_deviation(lat, lng, route, threshold_meters)
    if check.deviated:
        if await create_trip_alert(session, trip.id, check.finding, now=now):
            changes.created.append(TripAlertType.ROUTE_DEVIATION)
    elif check.on_route:
        if await resolve_active_alerts(session, trip.id, TripAlertType.ROUTE_DEVIATION, "Back on route", now):
            changes.resolved.append(TripAlertType.ROUTE_DEVIATION)
    return check, changes


async def check_stoppage(
    session: AsyncSession,
    trip: Trip,
    current_speed: Optional[float],
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    threshold_minutes: Optional[float] = None,
    now: Optional[datetime] = None,
) -> tuple[StoppageCheck, AlertChanges]:
    """
    Raise a stoppage alert once the vehicle has been stationary long enough.

    An active stoppage alert triggered at or after the computed
    ``stopped_since`` already covers this stop. An older active one belongs
    to an earlier stop and is resolved before the new alert is created.
    """
    changes = AlertChanges()
    now = now or utcnow()

    if current_speed is not None and current_speed > 0:
        if await resolve_active_alerts(session, trip.id, TripAlertType.STOPPAGE, "Vehicle moving again", now):
            changes.resolved.append(TripAlertType.STOPPAGE)
        return StoppageCheck(is_stopped=False), changes

    result = await session.execute(
        select(TrackingPoint)
        .where(TrackingPoint.trip_id == trip.id)
        .order_by(TrackingPoint.event_time.desc())
        .limit(settings.stoppage_history_limit)
    )
    check = evaluate_stoppage(
        current_speed,
        result.scalars().all(),
        now=now,
        threshold_minutes=threshold_minutes,
        lat=lat,
        lng=lng,
    )
    if not check.is_stopped:
        return check, changes

    existing = await find_active_alert(session, trip.id, TripAlertType.STOPPAGE)
    if existing is not None:
        if existing.triggered_at >= check.stopped_since:
            return check, changes
        await resolve_active_alerts(session, trip.id, TripAlertType.STOPPAGE, "Superseded by a new stoppage", now)
        changes.resolved.append(TripAlertType.STOPPAGE)

    if await create_trip_alert(session, trip.id, check.finding, now=now, dedup=False):
        changes.created.append(TripAlertType.STOPPAGE)
    return check, changes


async def _consent_revoked(session: AsyncSession, trip_id: UUID) -> bool:
    return await find_active_alert(session, trip_id, TripAlertType.CONSENT_REVOKED) is not None


async def check_tracking_lost(
    session: AsyncSession,
    trip: Trip,
    now: Optional[datetime] = None,
) -> tuple[TrackingCheck, AlertChanges]:
    """
    Flag lost tracking and mark the trip untrackable; undo both on recovery.

    Recovery does not make the trip trackable again while a
    consent-revoked alert is still active.
    """
    changes = AlertChanges()
    check = evaluate_tracking_lost(trip.last_ping_at, now=now)

    if check.lost:
        if await create_trip_alert(session, trip.id, check.finding, now=now):
            changes.created.append(TripAlertType.TRACKING_LOST)
        await set_trackable(session, trip, False)
        return check, changes

    if await resolve_active_alerts(session, trip.id, TripAlertType.TRACKING_LOST, "Tracking restored", now):
        changes.resolved.append(TripAlertType.TRACKING_LOST)
    if not trip.is_trackable and not await _consent_revoked(session, trip.id):
        await set_trackable(session, trip, True)
    return check, changes


async def check_delay(
    session: AsyncSession,
    trip: Trip,
    threshold_percent: Optional[float] = None,
    now: Optional[datetime] = None,
) -> tuple[DelayCheck, AlertChanges]:
    """Raise a delay warning; auto-resolve it once the trip is back on schedule."""
    changes = AlertChanges()
    check = evaluate_delay(trip.eta_baseline, trip.current_eta, now=now, threshold_percent=threshold_percent)

    if check.delayed:
        if await create_trip_alert(session, trip.id, check.finding, now=now):
            changes.created.append(TripAlertType.DELAY_WARNING)
    elif check.outcome == "on_schedule":
        if await resolve_active_alerts(session, trip.id, TripAlertType.DELAY_WARNING, "Back on schedule", now):
            changes.resolved.append(TripAlertType.DELAY_WARNING)
    return check, changes


async def check_idle_trip(
    session: AsyncSession,
    trip: Trip,
    threshold_minutes: Optional[float] = None,
    now: Optional[datetime] = None,
) -> tuple[IdleCheck, AlertChanges]:
    """Raise an idle alert for a started trip with no location data; resolve it once data arrives."""
    changes = AlertChanges()
    check = evaluate_idle_trip(
        trip.actual_start_time, trip.last_ping_at, now=now, threshold_minutes=threshold_minutes,
    )

    if check.idle:
        if await create_trip_alert(session, trip.id, check.finding, now=now):
            changes.created.append(TripAlertType.IDLE_DETECTED)
    elif trip.actual_start_time is not None and trip.last_ping_at is not None:
        if await resolve_active_alerts(session, trip.id, TripAlertType.IDLE_DETECTED, "Location data received", now):
            changes.resolved.append(TripAlertType.IDLE_DETECTED)
    return check, changes


async def handle_consent_revoked(
    session: AsyncSession,
    trip_id: UUID,
    driver_name: Optional[str] = None,
    driver_mobile: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[TripAlert]:
    """Consent webhook: critical alert and the trip becomes untrackable."""
    trip = await get_trip(session, trip_id, for_update=True)
    driver_name = driver_name or trip.driver_name or "Unknown driver"
    driver_mobile = driver_mobile or trip.driver_mobile or "unknown"

    alert = await create_trip_alert(
        session,
        trip.id,
        AlertFinding(
            alert_type=TripAlertType.CONSENT_REVOKED,
            severity=Severity.CRITICAL,
            title="Driver Consent Revoked",
            description=(
                f"Driver {driver_name} ({driver_mobile}) has revoked SIM tracking consent. "
                f"Trip is now untrackable."
            ),
            metadata=ConsentMetadata(driver_name=driver_name, driver_mobile=driver_mobile),
        ),
        now=now,
    )
    await set_trackable(session, trip, False)
    logger.warning(f"Tracking consent revoked for trip {trip_id}")
    return alert


# =============================================================================
# Orchestration
# =============================================================================

@dataclass
class PingOutcome:
    recorded: int
    changes: AlertChanges
    active_alert_count: int


def resolve_route(
    route: Optional[Sequence[HasLatLng]],
    route_polyline: Optional[str],
    trip: Trip,
) -> Sequence[HasLatLng]:
    """Explicit vertices win, then a supplied polyline, then the trip's stored one."""
    if route:
        return route
    encoded = route_polyline or trip.route_polyline
    return decode_polyline(encoded) if encoded else []


async def process_location_ping(
    session: AsyncSession,
    trip_id: UUID,
    pings: Iterable[TrackingPointIn],
    route: Optional[Sequence[HasLatLng]] = None,
    route_polyline: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PingOutcome:
    """
    Ingest pings for a trip and evaluate the live detectors on the newest one.

    Steps: record points, advance ``last_ping_at``, then run route
    deviation, stoppage, tracking recovery and idle recovery. Trip state is
    re-read at the start of every call.

    A batch whose newest ping is older than ``last_ping_at`` is stored but
    does not describe the vehicle's current position, so route deviation
    and stoppage are not evaluated for it.
    """
    now = now or utcnow()
    trip = await get_trip(session, trip_id, for_update=True)

    points = await record_tracking_points(session, trip.id, pings, vehicle_id=trip.vehicle_id)
    latest = points[-1]
    stale = trip.last_ping_at is not None and latest.event_time < trip.last_ping_at
    if not stale:
        trip.last_ping_at = latest.event_time
    changes = AlertChanges()

    if stale:
        logger.info(
            f"Trip {trip.id}: batch ends at {latest.event_time.isoformat()}, before last ping "
            f"{trip.last_ping_at.isoformat()}; skipping deviation and stoppage checks"
        )
    else:
        lat, lng = float(latest.latitude), float(latest.longitude)
        speed = float(latest.speed_kmph) if latest.speed_kmph is not None else None

        _, deviation_changes = await check_route_deviation(
            session, trip, lat, lng, resolve_route(route, route_polyline, trip), now=now,
        )
        changes.merge(deviation_changes)

        _, stoppage_changes = await check_stoppage(session, trip, speed, lat=lat, lng=lng, now=now)
        changes.merge(stoppage_changes)

    _, tracking_changes = await check_tracking_lost(session, trip, now=now)
    changes.merge(tracking_changes)

    _, idle_changes = await check_idle_trip(session, trip, now=now)
    changes.merge(idle_changes)

    await session.flush()
    count = await refresh_active_alert_count(session, trip.id)
    return PingOutcome(recorded=len(points), changes=changes, active_alert_count=count)


@dataclass
class SweepReport:
    trips_checked: int = 0
    changes: AlertChanges = field(default_factory=AlertChanges)


async def run_alert_sweep(session: AsyncSession, now: Optional[datetime] = None) -> SweepReport:
    """
    Periodic pass over ongoing trips: tracking loss, delay warnings and idle trips.

    Each trip's active alert count is recomputed at the end of its checks.
    """
    now = now or utcnow()
    result = await session.execute(
        select(Trip).where(Trip.status == TripStatus.ONGOING).order_by(Trip.created_at)
    )
    trips = result.scalars().all()

    report = SweepReport()
    for trip in trips:
        _, tracking_changes = await check_tracking_lost(session, trip, now=now)
        report.changes.merge(tracking_changes)

        _, delay_changes = await check_delay(session, trip, now=now)
        report.changes.merge(delay_changes)

        _, idle_changes = await check_idle_trip(session, trip, now=now)
        report.changes.merge(idle_changes)

        await refresh_active_alert_count(session, trip.id)
        report.trips_checked += 1

    logger.info(
        f"Alert sweep: {report.trips_checked} trips, "
        f"{len(report.changes.created)} created, {len(report.changes.resolved)} resolved"
    )
    return report


async def reconcile_duplicate_alerts(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Keep the earliest active alert per (trip, type) and dismiss the rest.

    Returns the number of alerts dismissed.
    """
    now = now or utcnow()
    result = await session.execute(
        select(TripAlert)
        .where(TripAlert.status == AlertStatus.ACTIVE)
        .order_by(TripAlert.trip_id, TripAlert.alert_type, TripAlert.triggered_at, TripAlert.created_at)
    )
    alerts = result.scalars().all()

    dismissed = 0
    touched_trips: set[UUID] = set()
    for (trip_id, _), group in groupby(alerts, key=lambda a: (a.trip_id, a.alert_type)):
        keeper, *duplicates = list(group)
        for alert in duplicates:
            alert.status = AlertStatus.DISMISSED
            alert.resolved_at = now
            alert.resolved_by = SYSTEM_ACTOR
            alert.meta = merge_metadata(alert.meta, Reconciliation(duplicate_of=keeper.id))
            dismissed += 1
            touched_trips.add(trip_id)

    if dismissed:
        await session.flush()
        for trip_id in touched_trips:
            await refresh_active_alert_count(session, trip_id)
        logger.warning(f"Dismissed {dismissed} duplicate active alert(s) across {len(touched_trips)} trip(s)")
    return dismissed
