"""
Shipment status state machine.

Validates main-status and sub-status transitions against the static
graphs in ``app.models.enums``, applies them with timestamp bookkeeping,
and appends one ShipmentStatusHistory row per accepted transition. The
shipment update and its history row are flushed together, so either both
land in the unit of work or neither does.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    InvalidSubStatus,
    InvalidTransition,
    MissingRequiredFields,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.models import Shipment, ShipmentStatusHistory, Trip, TripShipmentMap
from app.models.enums import (
    ChangeSource,
    MANDATORY_CONFIRMATION_FIELDS,
    ShipmentStatus,
    ShipmentSubStatus,
    TripStatus,
)
from app.schemas.metadata import MetadataBag
from app.services.alerts.detectors import calculate_delay_percentage, should_flag_delay, utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# Pure validation
# =============================================================================

@dataclass
class TransitionPlan:
    """Validated change, ready to apply to a shipment."""
    previous_status: ShipmentStatus
    new_status: ShipmentStatus
    previous_sub_status: Optional[ShipmentSubStatus]
    new_sub_status: Optional[ShipmentSubStatus]
    updates: dict[str, Any] = field(default_factory=dict)

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.new_status


def _as_sub_status(value: Union[str, ShipmentSubStatus, None], **ids: Any) -> Optional[ShipmentSubStatus]:
    if value is None:
        return None
    try:
        return ShipmentSubStatus(value)
    except ValueError:
        raise InvalidSubStatus(f"Invalid sub-status: {value}", **ids) from None


def validate_mandatory_fields(shipment: Any) -> list[str]:
    """Fields still empty that are required before confirmation."""
    return [name for name in MANDATORY_CONFIRMATION_FIELDS if not getattr(shipment, name, None)]


def validate_sub_status(
    status: ShipmentStatus,
    current_sub_status: Optional[ShipmentSubStatus],
    new_sub_status: ShipmentSubStatus,
    **ids: Any,
) -> None:
    """
    Check a sub-status against the progression of ``status``.

    Staying at the current position is allowed; moving backwards is not.
    A current sub-status from another progression counts as "not started".
    """
    progression = status.sub_statuses
    if new_sub_status not in progression:
        raise InvalidSubStatus(
            f"Invalid sub-status for {status.label}: {new_sub_status.value}",
            **ids,
        )

    current_index = progression.index(current_sub_status) if current_sub_status in progression else -1
    if progression.index(new_sub_status) < current_index:
        raise InvalidSubStatus(
            f"Cannot go back from {current_sub_status.label} to {new_sub_status.label}",
            **ids,
        )


def plan_transition(
    shipment: Any,
    new_status: Union[str, ShipmentStatus],
    new_sub_status: Union[str, ShipmentSubStatus, None] = None,
    now: Optional[datetime] = None,
) -> TransitionPlan:
    """
    Validate a requested transition and compute the field updates.

    Raises:
        InvalidTransition: Edge not in the graph (or a same-status request
            without a sub-status).
        InvalidSubStatus: Unknown sub-status, wrong progression or regression.
        MissingRequiredFields: Confirming a shipment with empty mandatory fields.
        ValidationError: Mapping a shipment with no trip, or closing a
            delivered shipment before its POD reached ``paid``.
    """
    now = now or utcnow()
    ids = {"shipment_id": getattr(shipment, "id", None)}

    current = ShipmentStatus(shipment.status)
    current_sub = _as_sub_status(shipment.sub_status, **ids)
    try:
        target = ShipmentStatus(new_status)
    except ValueError:
        raise InvalidTransition(f"Unknown status: {new_status}", **ids) from None
    target_sub = _as_sub_status(new_sub_status, **ids)

    if target == current:
        if target_sub is None:
            raise InvalidTransition(f"Shipment is already {current.label}", **ids)
        validate_sub_status(current, current_sub, target_sub, **ids)
    else:
        if target not in current.allowed_transitions:
            raise InvalidTransition(
                f"Cannot transition from {current.label} to {target.label}",
                **ids,
            )
        if target_sub is not None:
            validate_sub_status(target, None, target_sub, **ids)
        if target == ShipmentStatus.MAPPED and not getattr(shipment, "trip_id", None):
            raise ValidationError("Shipment must be linked to a trip before mapping", **ids)
        pod_open = current_sub != ShipmentSubStatus.PAID
        if current == ShipmentStatus.DELIVERED and target == ShipmentStatus.SUCCESS and pod_open:
            raise ValidationError(
                "All POD sub-statuses (POD Cleaned, Billed, Paid) must be completed before Success",
                **ids,
            )

    if current == ShipmentStatus.CREATED and target == ShipmentStatus.CONFIRMED:
        missing = validate_mandatory_fields(shipment)
        if missing:
            raise MissingRequiredFields(missing, **ids)

    updates: dict[str, Any] = {"status": target, "sub_status": target_sub}
    if target.timestamp_field:
        updates[target.timestamp_field] = now
    if target_sub is not None and target_sub.timestamp_field:
        updates[target_sub.timestamp_field] = now

    return TransitionPlan(
        previous_status=current,
        new_status=target,
        previous_sub_status=current_sub,
        new_sub_status=target_sub,
        updates=updates,
    )


# =============================================================================
# Persistence
# =============================================================================

@dataclass
class TransitionResult:
    shipment: Shipment
    history: ShipmentStatusHistory


@dataclass(frozen=True)
class MappingCheck:
    """Whether a shipment may be mapped to a trip."""
    valid: bool
    existing_trip_id: Optional[UUID] = None
    existing_trip_code: Optional[str] = None


async def get_shipment(session: AsyncSession, shipment_id: UUID, for_update: bool = False) -> Shipment:
    query = select(Shipment).where(Shipment.id == shipment_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    shipment = result.scalar_one_or_none()
    if shipment is None:
        raise NotFoundError("Shipment", shipment_id)
    return shipment


async def check_trip_vehicle_linkage(session: AsyncSession, trip_id: UUID) -> bool:
    """True if the trip exists and has a vehicle assigned."""
    result = await session.execute(select(Trip.vehicle_id).where(Trip.id == trip_id))
    return result.scalar_one_or_none() is not None


async def transition(
    session: AsyncSession,
    shipment_id: UUID,
    new_status: Union[str, ShipmentStatus],
    new_sub_status: Union[str, ShipmentSubStatus, None] = None,
    source: ChangeSource = ChangeSource.MANUAL,
    notes: Optional[str] = None,
    metadata: Union[MetadataBag, dict[str, Any], None] = None,
    changed_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Apply a status / sub-status transition to a shipment.

    The shipment row is re-read (and locked) first; on any validation
    failure nothing is modified. Moving from ``mapped`` into ``in_pickup``
    additionally requires the shipment's trip to have a vehicle.

    Raises:
        NotFoundError: Unknown shipment.
        ValidationError: Any rule violation (see ``plan_transition``).
        PersistenceError: The update or its history row could not be written.
    """
    now = now or utcnow()
    shipment = await get_shipment(session, shipment_id, for_update=True)
    plan = plan_transition(shipment, new_status, new_sub_status, now=now)

    if plan.previous_status == ShipmentStatus.MAPPED and plan.new_status == ShipmentStatus.IN_PICKUP:
        if shipment.trip_id is None or not await check_trip_vehicle_linkage(session, shipment.trip_id):
            raise ValidationError(
                "Trip must have a vehicle assigned before pickup",
                shipment_id=shipment_id,
                trip_id=shipment.trip_id,
            )

    if isinstance(metadata, MetadataBag):
        metadata = metadata.dump()

    for name, value in plan.updates.items():
        setattr(shipment, name, value)

    history = ShipmentStatusHistory(
        shipment_id=shipment.id,
        previous_status=plan.previous_status,
        new_status=plan.new_status,
        previous_sub_status=plan.previous_sub_status,
        new_sub_status=plan.new_sub_status,
        change_source=ChangeSource(source),
        changed_by=changed_by,
        notes=notes,
        meta=metadata or {},
        created_at=now,
    )
    session.add(history)

    try:
        await session.flush()
    except SQLAlchemyError as e:
        logger.error(f"Failed to persist transition for shipment {shipment_id}: {e}")
        raise PersistenceError(
            "Status change could not be saved; retry the transition",
            shipment_id=shipment_id,
        ) from e

    logger.info(
        f"Shipment {shipment_id}: {plan.previous_status.value}"
        f"{'/' + plan.previous_sub_status.value if plan.previous_sub_status else ''} -> "
        f"{plan.new_status.value}"
        f"{'/' + plan.new_sub_status.value if plan.new_sub_status else ''} ({ChangeSource(source).value})"
    )
    return TransitionResult(shipment=shipment, history=history)


async def get_status_history(session: AsyncSession, shipment_id: UUID) -> list[ShipmentStatusHistory]:
    """History rows for a shipment, newest first."""
    result = await session.execute(
        select(ShipmentStatusHistory)
        .where(ShipmentStatusHistory.shipment_id == shipment_id)
        .order_by(ShipmentStatusHistory.created_at.desc())
    )
    return list(result.scalars().all())


async def check_unique_mapping(
    session: AsyncSession,
    shipment_id: UUID,
    trip_id: Optional[UUID] = None,
) -> MappingCheck:
    """
    Check that a shipment is not held by another non-terminal trip.

    A mapping to ``trip_id`` itself is fine.
    """
    terminal = [s for s in TripStatus if s.is_terminal]
    result = await session.execute(
        select(TripShipmentMap.trip_id, Trip.trip_code)
        .join(Trip, Trip.id == TripShipmentMap.trip_id)
        .where(
            TripShipmentMap.shipment_id == shipment_id,
            Trip.status.not_in(terminal),
        )
        .order_by(TripShipmentMap.created_at)
    )
    for existing_trip_id, trip_code in result.all():
        if existing_trip_id != trip_id:
            return MappingCheck(
                valid=False,
                existing_trip_id=existing_trip_id,
                existing_trip_code=trip_code,
            )
    return MappingCheck(valid=True)


@dataclass(frozen=True)
class DelayTracking:
    delay_percentage: float
    is_delayed: bool


async def update_delay_tracking(
    session: AsyncSession,
    shipment_id: UUID,
    actual_time: datetime,
    standard_tat_hours: Optional[float] = None,
    threshold_percent: Optional[float] = None,
    now: Optional[datetime] = None,
) -> DelayTracking:
    """
    Recompute ``delay_percentage`` / ``is_delayed`` against planned delivery.

    Shipments without a planned delivery time are left untouched.
    """
    if threshold_percent is None:
        threshold_percent = settings.delay_threshold_percent
    shipment = await get_shipment(session, shipment_id)

    if shipment.planned_delivery_time is None:
        return DelayTracking(delay_percentage=0.0, is_delayed=False)

    percentage = calculate_delay_percentage(
        shipment.planned_delivery_time,
        actual_time,
        standard_tat_hours=standard_tat_hours,
        now=now,
    )
    tracking = DelayTracking(
        delay_percentage=percentage,
        is_delayed=should_flag_delay(percentage, threshold_percent),
    )
    shipment.delay_percentage = percentage
    shipment.is_delayed = tracking.is_delayed
    await session.flush()
    return tracking
