"""
Shipment exception lifecycle manager.

Logs exceptions against shipments, moves them through
open -> acknowledged | escalated -> resolved, and keeps the shipment's
``exception_count`` / ``has_open_exception`` aggregates in step. The
aggregates are always re-derived from a fresh read of the shipment's
exceptions after the write, never patched incrementally.

Detectors built on top of ``log_exception`` cover duplicate trip mapping,
late vehicle arrival at pickup, capacity overrun and delivery delay.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    EscalationTargetRequired,
    InvalidExceptionStatus,
    NotFoundError,
    PersistenceError,
)
from app.models import Shipment, ShipmentException
from app.models.enums import ExceptionStatus, ExceptionType, Severity
from app.schemas.metadata import (
    MetadataBag,
    CapacityExceededMetadata,
    DelayExceptionMetadata,
    DuplicateMappingMetadata,
    VehicleNotArrivedMetadata,
    merge_metadata,
)
from app.services.alerts.detectors import utcnow
from app.services.capacity import CapacityResult, validate_capacity
from app.services.lifecycle.status_machine import (
    MappingCheck,
    check_unique_mapping,
    get_shipment,
    update_delay_tracking,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Aggregates
# =============================================================================

@dataclass(frozen=True)
class ExceptionAggregates:
    exception_count: int
    has_open_exception: bool


def compute_exception_aggregates(statuses: Iterable[Union[str, ExceptionStatus]]) -> ExceptionAggregates:
    """Derive shipment aggregates from the statuses of all its exceptions."""
    statuses = [ExceptionStatus(s) for s in statuses]
    return ExceptionAggregates(
        exception_count=len(statuses),
        has_open_exception=any(s.counts_as_open for s in statuses),
    )


async def refresh_exception_aggregates(session: AsyncSession, shipment_id: UUID) -> ExceptionAggregates:
    """Recount a shipment's exceptions and store the aggregates on it."""
    result = await session.execute(
        select(ShipmentException.status).where(ShipmentException.shipment_id == shipment_id)
    )
    aggregates = compute_exception_aggregates(result.scalars().all())

    await session.execute(
        update(Shipment)
        .where(Shipment.id == shipment_id)
        .values(
            exception_count=aggregates.exception_count,
            has_open_exception=aggregates.has_open_exception,
        )
    )
    return aggregates


async def _flush(session: AsyncSession, action: str, **ids: Any) -> None:
    try:
        await session.flush()
    except SQLAlchemyError as e:
        logger.error(f"Failed to {action}: {e}")
        raise PersistenceError(f"Could not {action}; retry the operation", **ids) from e


# =============================================================================
# Core lifecycle
# =============================================================================

async def log_exception(
    session: AsyncSession,
    shipment_id: UUID,
    exception_type: Union[str, ExceptionType],
    description: str,
    severity: Union[str, Severity, None] = None,
    metadata: Union[MetadataBag, dict[str, Any], None] = None,
    trip_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> ShipmentException:
    """
    Record a new open exception and refresh the shipment aggregates.

    Severity defaults to the exception type's default severity.
    """
    exception_type = ExceptionType(exception_type)
    if await session.scalar(select(Shipment.id).where(Shipment.id == shipment_id)) is None:
        raise NotFoundError("Shipment", shipment_id)

    exception = ShipmentException(
        shipment_id=shipment_id,
        trip_id=trip_id,
        exception_type=exception_type,
        status=ExceptionStatus.OPEN,
        severity=Severity(severity) if severity else exception_type.default_severity,
        description=description,
        resolution_path=exception_type.resolution_path,
        meta=merge_metadata({}, metadata),
        detected_at=now or utcnow(),
    )
    session.add(exception)
    await _flush(session, "log exception", shipment_id=shipment_id)

    await refresh_exception_aggregates(session, shipment_id)
    logger.info(
        f"Logged {exception_type.value} exception ({exception.severity.value}) "
        f"for shipment {shipment_id}"
    )
    return exception


def apply_exception_status(
    exception: ShipmentException,
    new_status: Union[str, ExceptionStatus],
    notes: Optional[str] = None,
    escalate_to: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Move an exception to ``new_status`` in place.

    Stamps the timestamp belonging to the target status, and only if it
    has not been stamped before.
    """
    ids = {"exception_id": exception.id, "shipment_id": exception.shipment_id}
    current = ExceptionStatus(exception.status)
    try:
        target = ExceptionStatus(new_status)
    except ValueError:
        raise InvalidExceptionStatus(f"Unknown exception status: {new_status}", **ids) from None

    if target not in current.allowed_transitions:
        raise InvalidExceptionStatus(
            f"Cannot move exception from {current.value} to {target.value}",
            **ids,
        )
    if target == ExceptionStatus.ESCALATED and not escalate_to:
        raise EscalationTargetRequired("Escalation requires an escalation target", **ids)

    exception.status = target
    stamp = target.timestamp_field
    if stamp and getattr(exception, stamp) is None:
        setattr(exception, stamp, now or utcnow())

    if target == ExceptionStatus.RESOLVED:
        if notes:
            exception.resolution_notes = notes
    elif target == ExceptionStatus.ESCALATED:
        exception.escalated_to = escalate_to
        if notes:
            exception.meta = merge_metadata(exception.meta, {"escalation_notes": notes})
    elif notes:
        exception.meta = merge_metadata(exception.meta, {"acknowledgement_notes": notes})


async def update_exception_status(
    session: AsyncSession,
    exception_id: UUID,
    new_status: Union[str, ExceptionStatus],
    notes: Optional[str] = None,
    escalate_to: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ShipmentException:
    """
    Transition an exception and refresh its shipment's aggregates.

    Raises:
        NotFoundError: Unknown exception.
        InvalidExceptionStatus: Backwards or repeated move (e.g. out of resolved).
        EscalationTargetRequired: Escalating without ``escalate_to``.
    """
    result = await session.execute(
        select(ShipmentException).where(ShipmentException.id == exception_id).with_for_update()
    )
    exception = result.scalar_one_or_none()
    if exception is None:
        raise NotFoundError("Exception", exception_id)

    previous = ExceptionStatus(exception.status)
    apply_exception_status(exception, new_status, notes=notes, escalate_to=escalate_to, now=now)
    await _flush(session, "update exception", exception_id=exception_id)

    await refresh_exception_aggregates(session, exception.shipment_id)
    logger.info(f"Exception {exception_id}: {previous.value} -> {ExceptionStatus(exception.status).value}")
    return exception


async def list_exceptions(session: AsyncSession, shipment_id: UUID) -> list[ShipmentException]:
    """Exceptions for a shipment, most recently detected first."""
    result = await session.execute(
        select(ShipmentException)
        .where(ShipmentException.shipment_id == shipment_id)
        .order_by(ShipmentException.detected_at.desc())
    )
    return list(result.scalars().all())


async def find_unresolved_exception(
    session: AsyncSession,
    shipment_id: UUID,
    exception_type: ExceptionType,
) -> Optional[ShipmentException]:
    result = await session.execute(
        select(ShipmentException)
        .where(
            ShipmentException.shipment_id == shipment_id,
            ShipmentException.exception_type == exception_type,
            ShipmentException.status != ExceptionStatus.RESOLVED,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


# =============================================================================
# Detectors
# =============================================================================

@dataclass(frozen=True)
class LateArrival:
    overdue_minutes: float
    severity: Severity


def evaluate_vehicle_not_arrived(
    planned_pickup_time: datetime,
    now: Optional[datetime] = None,
    threshold_minutes: Optional[float] = None,
    high_minutes: Optional[float] = None,
) -> Optional[LateArrival]:
    """Overdue pickup verdict, or None if still within the grace period."""
    if threshold_minutes is None:
        threshold_minutes = settings.vehicle_not_arrived_threshold_minutes
    if high_minutes is None:
        high_minutes = settings.vehicle_not_arrived_high_minutes
    now = now or utcnow()

    overdue = (now - planned_pickup_time).total_seconds() / 60
    if overdue <= threshold_minutes:
        return None
    return LateArrival(
        overdue_minutes=overdue,
        severity=Severity.HIGH if overdue > high_minutes else Severity.MEDIUM,
    )


async def check_vehicle_not_arrived(
    session: AsyncSession,
    shipment_id: UUID,
    now: Optional[datetime] = None,
    threshold_minutes: Optional[float] = None,
) -> Optional[ShipmentException]:
    """
    Raise ``vehicle_not_arrived`` when pickup is overdue.

    Skipped once the shipment has reached pickup, when it has no planned
    pickup time, or while an unresolved exception of this type exists.
    """
    now = now or utcnow()
    shipment = await get_shipment(session, shipment_id)
    if shipment.planned_pickup_time is None or shipment.in_pickup_at is not None:
        return None

    late = evaluate_vehicle_not_arrived(shipment.planned_pickup_time, now, threshold_minutes)
    if late is None:
        return None
    if await find_unresolved_exception(session, shipment_id, ExceptionType.VEHICLE_NOT_ARRIVED):
        return None

    planned = shipment.planned_pickup_time
    return await log_exception(
        session,
        shipment_id,
        ExceptionType.VEHICLE_NOT_ARRIVED,
        (
            f"Vehicle has not arrived at pickup point. Planned time was "
            f"{planned:%Y-%m-%d %H:%M}, now {round(late.overdue_minutes)} minutes overdue."
        ),
        severity=late.severity,
        metadata=VehicleNotArrivedMetadata(
            planned_time=planned,
            overdue_minutes=round(late.overdue_minutes),
        ),
        trip_id=shipment.trip_id,
        now=now,
    )


async def check_duplicate_mapping(
    session: AsyncSession,
    shipment_id: UUID,
    trip_id: UUID,
) -> MappingCheck:
    """Log ``duplicate_mapping`` if the shipment is held by another active trip."""
    mapping = await check_unique_mapping(session, shipment_id, trip_id)
    if not mapping.valid:
        await log_exception(
            session,
            shipment_id,
            ExceptionType.DUPLICATE_MAPPING,
            (
                f"Shipment already mapped to trip {mapping.existing_trip_code}. "
                f"Rejected mapping to trip {trip_id}."
            ),
            metadata=DuplicateMappingMetadata(
                attempted_trip_id=trip_id,
                existing_trip_id=mapping.existing_trip_id,
                existing_trip_code=mapping.existing_trip_code,
            ),
            trip_id=trip_id,
        )
    return mapping


async def check_capacity_exceeded(
    session: AsyncSession,
    shipment_id: UUID,
    trip_id: UUID,
    weight_kg: float,
    volume_cbm: float,
) -> CapacityResult:
    """Log ``capacity_exceeded`` if adding the shipment overloads the trip's vehicle."""
    verdict = await validate_capacity(session, trip_id, weight_kg, volume_cbm)
    if not verdict.valid:
        await log_exception(
            session,
            shipment_id,
            ExceptionType.CAPACITY_EXCEEDED,
            "; ".join(verdict.messages),
            metadata=CapacityExceededMetadata(
                trip_id=trip_id,
                weight_utilization=verdict.weight_utilization,
                volume_utilization=verdict.volume_utilization,
                messages=verdict.messages,
            ),
            trip_id=trip_id,
        )
    return verdict


async def check_delay_exceeded(
    session: AsyncSession,
    shipment_id: UUID,
    actual_time: datetime,
    standard_tat_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Optional[ShipmentException]:
    """
    Update the shipment's delay tracking and log ``delay_exceeded`` when flagged.

    Severity is HIGH above ``delay_exception_high_percent``.
    """
    tracking = await update_delay_tracking(
        session, shipment_id, actual_time, standard_tat_hours=standard_tat_hours, now=now,
    )
    if not tracking.is_delayed:
        return None

    pct = tracking.delay_percentage
    return await log_exception(
        session,
        shipment_id,
        ExceptionType.DELAY_EXCEEDED,
        f"Shipment delayed by {pct:.1f}%. Actual time: {actual_time:%Y-%m-%d %H:%M}",
        severity=Severity.HIGH if pct > settings.delay_exception_high_percent else Severity.MEDIUM,
        metadata=DelayExceptionMetadata(
            delay_percentage=pct,
            threshold_percent=settings.delay_threshold_percent,
        ),
        now=now,
    )


async def log_tracking_unavailable(
    session: AsyncSession,
    shipment_id: UUID,
    reason: str,
    trip_id: Optional[UUID] = None,
) -> ShipmentException:
    """Log that GPS/SIM tracking could not be set up for a shipment's trip."""
    return await log_exception(
        session,
        shipment_id,
        ExceptionType.TRACKING_UNAVAILABLE,
        f"GPS/SIM tracking not available: {reason}. Trip is untracked.",
        metadata={"reason": reason},
        trip_id=trip_id,
    )


async def log_ndr_exception(session: AsyncSession, shipment_id: UUID, ndr_reason: str) -> ShipmentException:
    return await log_exception(
        session,
        shipment_id,
        ExceptionType.NDR_CONSIGNEE_UNAVAILABLE,
        f"Delivery attempted but failed: {ndr_reason}",
        severity=Severity.MEDIUM,
        metadata={"ndr_reason": ndr_reason},
    )
