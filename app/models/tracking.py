"""
Tracking point model for TCT.

High-frequency location pings delivered by GPS/SIM providers. Rows are
immutable once recorded.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from geoalchemy2 import Geometry
from sqlalchemy import String, Text, Integer, Numeric, Enum, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel
from app.models.enums import TrackingSource


class TrackingPoint(BaseModel):
    """
    One location ping for a trip.

    ``sequence_number`` is strictly increasing per trip; clustering and
    stoppage detection order by it (or by ``event_time``).
    """
    __tablename__ = "tracking_points"
    __table_args__ = (
        UniqueConstraint("trip_id", "sequence_number", name="uq_tracking_points_trip_sequence"),
    )

    trip_id: Mapped[UUID] = mapped_column(
        ForeignKey("trips.id"),
        nullable=False,
        index=True,
    )

    vehicle_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("vehicles.id"),
        nullable=True,
    )

    sequence_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # =========================================================================
    # Position
    # =========================================================================
    location: Mapped[Optional[str]] = mapped_column(
        Geometry("POINT", srid=4326),
        nullable=True,
    )

    # Denormalized for quick access
    latitude: Mapped[Decimal] = mapped_column(
        Numeric(10, 7),
        nullable=False,
    )

    longitude: Mapped[Decimal] = mapped_column(
        Numeric(10, 7),
        nullable=False,
    )

    speed_kmph: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 2),
        nullable=True,
    )

    heading: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
        comment="Compass heading in degrees (0-360)",
    )

    # =========================================================================
    # Context
    # =========================================================================
    event_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    detailed_address: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    source: Mapped[TrackingSource] = mapped_column(
        Enum(TrackingSource, name="tracking_source", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TrackingSource.MANUAL,
    )

    def __repr__(self) -> str:
        return (
            f"<TrackingPoint(trip={self.trip_id}, seq={self.sequence_number}, "
            f"at={self.event_time})>"
        )
