"""
Vehicle capacity validation for part-load (PTL) trips.

Sums the weight and volume of every shipment mapped to a trip, adds the
candidate shipment, and compares the totals with the capacity of the
trip's vehicle type. A missing or zero capacity means "no limit".
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models import Shipment, Trip, TripShipmentMap, Vehicle, VehicleType
from app.models.enums import FreightType

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class CapacityResult:
    """
    Capacity verdict with per-dimension utilization.

    Utilization is reported whether or not the check passed so callers can
    show near-capacity warnings. ``checked`` is False when the check was
    skipped (full-load trip, unknown trip, no vehicle type).
    """
    valid: bool
    checked: bool = True
    weight_utilization: float = 0.0
    volume_utilization: float = 0.0
    total_weight_kg: float = 0.0
    total_volume_cbm: float = 0.0
    weight_capacity_kg: Optional[float] = None
    volume_capacity_cbm: Optional[float] = None
    messages: list[str] = field(default_factory=list)
    skip_reason: Optional[str] = None

    @property
    def near_capacity(self) -> bool:
        """At or above the warning level on either dimension."""
        warn = settings.capacity_warning_percent
        return self.weight_utilization >= warn or self.volume_utilization >= warn

    @property
    def utilization(self) -> dict[str, float]:
        return {"weight": self.weight_utilization, "volume": self.volume_utilization}


def _skipped(reason: str) -> CapacityResult:
    return CapacityResult(valid=True, checked=False, skip_reason=reason)


def _capacity(value: Optional[Number]) -> Optional[float]:
    # NULL and 0 both mean the vehicle type has no configured limit
    return float(value) if value else None


def compute_capacity(
    total_weight_kg: Number,
    total_volume_cbm: Number,
    weight_capacity_kg: Optional[Number],
    volume_capacity_cbm: Optional[Number],
) -> CapacityResult:
    """Compare load totals (existing + candidate) with vehicle capacity."""
    weight = float(total_weight_kg or 0)
    volume = float(total_volume_cbm or 0)
    weight_cap = _capacity(weight_capacity_kg)
    volume_cap = _capacity(volume_capacity_cbm)

    weight_util = weight / weight_cap * 100 if weight_cap else 0.0
    volume_util = volume / volume_cap * 100 if volume_cap else 0.0

    messages = []
    if weight_cap is not None and weight > weight_cap:
        messages.append(f"Weight capacity exceeded: {weight:.1f}kg / {weight_cap:g}kg")
    if volume_cap is not None and volume > volume_cap:
        messages.append(f"Volume capacity exceeded: {volume:.3f}CBM / {volume_cap:g}CBM")

    return CapacityResult(
        valid=not messages,
        weight_utilization=round(weight_util, 2),
        volume_utilization=round(volume_util, 2),
        total_weight_kg=weight,
        total_volume_cbm=volume,
        weight_capacity_kg=weight_cap,
        volume_capacity_cbm=volume_cap,
        messages=messages,
    )


async def validate_capacity(
    session: AsyncSession,
    trip_id: UUID,
    candidate_weight_kg: Number = 0,
    candidate_volume_cbm: Number = 0,
) -> CapacityResult:
    """
    Check whether a candidate shipment still fits on a trip's vehicle.

    Only PTL trips are checked. Missing trip or vehicle-type data skips
    the check and reports valid rather than blocking the mapping.
    """
    result = await session.execute(
        select(
            Trip.freight_type,
            VehicleType.id,
            VehicleType.weight_capacity_kg,
            VehicleType.volume_capacity_cbm,
        )
        .select_from(Trip)
        .outerjoin(Vehicle, Vehicle.id == Trip.vehicle_id)
        .outerjoin(VehicleType, VehicleType.id == Vehicle.vehicle_type_id)
        .where(Trip.id == trip_id)
    )
    row = result.one_or_none()

    if row is None:
        logger.warning(f"Capacity check skipped: trip {trip_id} not found")
        return _skipped("trip not found")

    freight_type, vehicle_type_id, weight_capacity, volume_capacity = row
    if not FreightType(freight_type).requires_capacity_check:
        return _skipped(f"{FreightType(freight_type).value} trips are not capacity-checked")

    if vehicle_type_id is None:
        logger.warning(f"Capacity check skipped: trip {trip_id} has no vehicle type")
        return _skipped("no vehicle type")

    totals = await session.execute(
        select(
            func.coalesce(func.sum(Shipment.weight_kg), 0),
            func.coalesce(func.sum(Shipment.volume_cbm), 0),
        )
        .select_from(TripShipmentMap)
        .join(Shipment, Shipment.id == TripShipmentMap.shipment_id)
        .where(TripShipmentMap.trip_id == trip_id)
    )
    mapped_weight, mapped_volume = totals.one()

    verdict = compute_capacity(
        float(mapped_weight or 0) + float(candidate_weight_kg or 0),
        float(mapped_volume or 0) + float(candidate_volume_cbm or 0),
        weight_capacity,
        volume_capacity,
    )
    if not verdict.valid:
        logger.info(f"Capacity exceeded on trip {trip_id}: {'; '.join(verdict.messages)}")
    return verdict
