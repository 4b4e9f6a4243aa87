"""
Trip and trip-shipment mapping models for TCT.

Trips are owned by the dispatch system; the engine reads their planning
fields and maintains the tracking aggregates (``is_trackable``,
``active_alert_count``, ``last_ping_at``, ``current_eta``).
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import String, Integer, Boolean, Enum, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel
from app.models.enums import TripStatus, FreightType, TrackingType


class Trip(BaseModel):
    """
    One vehicle movement carrying one or more shipments.

    Attributes:
        trip_code: Human-facing trip reference
        vehicle_id: Assigned vehicle (capacity comes from its type)
        driver_id: Assigned driver (collaborator-owned)
        freight_type: FTL / PTL / EXPRESS; only PTL is capacity-checked
        planned_eta / planned_end_time: Delay baselines
        current_eta: Latest computed ETA, set by the ETA collaborator
        last_ping_at: Time of the most recent location ping
        is_trackable: False while tracking is lost or consent is revoked
        active_alert_count: Derived count of active + acknowledged alerts
        route_polyline: Encoded planned route, if supplied
    """
    __tablename__ = "trips"

    trip_code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    status: Mapped[TripStatus] = mapped_column(
        Enum(TripStatus, name="trip_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TripStatus.CREATED,
        index=True,
    )

    freight_type: Mapped[FreightType] = mapped_column(
        Enum(FreightType, name="freight_type", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=FreightType.FTL,
    )

    # =========================================================================
    # Assignment
    # =========================================================================
    vehicle_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("vehicles.id"),
        nullable=True,
    )

    driver_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    driver_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    driver_mobile: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    lane_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    # =========================================================================
    # Planning
    # =========================================================================
    planned_start_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    planned_end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    planned_eta: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    current_eta: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    actual_start_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    route_polyline: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
        comment="Encoded polyline of the planned route",
    )

    # =========================================================================
    # Tracking State
    # =========================================================================
    tracking_type: Mapped[Optional[TrackingType]] = mapped_column(
        Enum(TrackingType, name="tracking_type", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )

    last_ping_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    is_trackable: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    active_alert_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    @property
    def eta_baseline(self) -> Optional[datetime]:
        """Planned ETA, falling back to the planned end time."""
        return self.planned_eta or self.planned_end_time

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, code={self.trip_code}, status={self.status})>"


class TripShipmentMap(BaseModel):
    """Shipment loaded on a trip, in stop order."""
    __tablename__ = "trip_shipment_map"
    __table_args__ = (
        UniqueConstraint("trip_id", "shipment_id", name="uq_trip_shipment_map_trip_shipment"),
    )

    trip_id: Mapped[UUID] = mapped_column(
        ForeignKey("trips.id"),
        nullable=False,
        index=True,
    )

    shipment_id: Mapped[UUID] = mapped_column(
        ForeignKey("shipments.id"),
        nullable=False,
        index=True,
    )

    sequence_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    mapped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TripShipmentMap(trip={self.trip_id}, shipment={self.shipment_id})>"
