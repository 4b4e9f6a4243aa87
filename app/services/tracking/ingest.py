"""
Tracking point ingestion.

Stores a ping batch for a trip, continuing the trip's sequence numbers
and deriving a heading from the previous point where the provider did
not send one.
"""
import logging
from typing import Iterable, Optional
from uuid import UUID

from geoalchemy2.elements import WKTElement
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import TrackingPoint
from app.schemas.tracking import TrackingPointIn
from app.services.geo.geometry import calculate_bearing

logger = logging.getLogger(__name__)


async def get_last_point(session: AsyncSession, trip_id: UUID) -> Optional[TrackingPoint]:
    """Most recent recorded point for a trip, by sequence number."""
    result = await session.execute(
        select(TrackingPoint)
        .where(TrackingPoint.trip_id == trip_id)
        .order_by(TrackingPoint.sequence_number.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def record_tracking_points(
    session: AsyncSession,
    trip_id: UUID,
    pings: Iterable[TrackingPointIn],
    vehicle_id: Optional[UUID] = None,
) -> list[TrackingPoint]:
    """
    Persist pings for a trip in event-time order.

    Sequence numbers continue strictly after the trip's current maximum.

    Returns:
        The new TrackingPoint rows (flushed, not committed).
    """
    last = await get_last_point(session, trip_id)
    next_sequence = (last.sequence_number + 1) if last else 1
    prev = (float(last.latitude), float(last.longitude)) if last else None

    recorded: list[TrackingPoint] = []
    for ping in sorted(pings, key=lambda p: p.event_time):
        heading = ping.heading
        if heading is None and prev is not None:
            heading = round(calculate_bearing(prev[0], prev[1], ping.latitude, ping.longitude), 2)

        point = TrackingPoint(
            trip_id=trip_id,
            vehicle_id=vehicle_id,
            sequence_number=next_sequence,
            location=WKTElement(f"POINT({ping.longitude} {ping.latitude})", srid=4326),
            latitude=ping.latitude,
            longitude=ping.longitude,
            speed_kmph=ping.speed_kmph,
            heading=heading,
            event_time=ping.event_time,
            detailed_address=ping.detailed_address,
            source=ping.source,
        )
        session.add(point)
        recorded.append(point)

        next_sequence += 1
        prev = (ping.latitude, ping.longitude)

    await session.flush()
    logger.info(f"Recorded {len(recorded)} tracking points for trip {trip_id}")
    return recorded


async def list_tracking_points(session: AsyncSession, trip_id: UUID) -> list[TrackingPoint]:
    """All points for a trip in sequence order."""
    result = await session.execute(
        select(TrackingPoint)
        .where(TrackingPoint.trip_id == trip_id)
        .order_by(TrackingPoint.sequence_number)
    )
    return list(result.scalars().all())
