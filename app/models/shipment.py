"""
Shipment and shipment status history models for TCT.

A shipment moves through a fixed status graph; every accepted transition
stamps a timestamp column and appends one immutable history row.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import String, Text, Integer, Boolean, Numeric, Enum, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, MetadataMixin
from app.models.enums import ShipmentStatus, ShipmentSubStatus, ChangeSource


class Shipment(BaseModel):
    """
    Unit of cargo tracked through the delivery lifecycle.

    Status flow:
        created -> confirmed -> mapped -> in_pickup -> in_transit
        -> out_for_delivery -> delivered -> success

    with NDR branching to a re-attempt or a return. ``sub_status`` is only
    set for statuses that define a progression (in_pickup, in_transit,
    delivered) and never moves backwards within it.

    Aggregates (``exception_count``, ``has_open_exception``) are derived
    from the shipment_exceptions rows and recomputed after every write.
    """
    __tablename__ = "shipments"

    # =========================================================================
    # Identification
    # =========================================================================
    shipment_code: Mapped[Optional[str]] = mapped_column(
        String(50),
        unique=True,
        nullable=True,
        index=True,
    )

    consignee_code: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    # Master data references (owned by the surrounding system)
    material_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    pickup_location_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    drop_location_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    trip_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("trips.id"),
        nullable=True,
        index=True,
    )

    # =========================================================================
    # Lifecycle
    # =========================================================================
    status: Mapped[ShipmentStatus] = mapped_column(
        Enum(ShipmentStatus, name="shipment_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ShipmentStatus.CREATED,
        index=True,
    )

    sub_status: Mapped[Optional[ShipmentSubStatus]] = mapped_column(
        Enum(ShipmentSubStatus, name="shipment_sub_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )

    # =========================================================================
    # Cargo
    # =========================================================================
    weight_kg: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Gross weight in kg",
    )

    volume_cbm: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 3),
        nullable=True,
        comment="Volume in cubic metres",
    )

    # =========================================================================
    # Planning & Delay
    # =========================================================================
    planned_pickup_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    planned_delivery_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    delay_percentage: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(7, 2),
        nullable=True,
    )

    is_delayed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # =========================================================================
    # Exception Aggregates (derived)
    # =========================================================================
    exception_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    has_open_exception: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # =========================================================================
    # Status Timestamps
    # =========================================================================
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    mapped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    in_pickup_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    in_transit_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    out_for_delivery_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ndr_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    returned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    success_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Sub-status timestamps
    loading_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    loading_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pod_cleaned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    billed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return ShipmentStatus(self.status).is_terminal

    def __repr__(self) -> str:
        return (
            f"<Shipment(id={self.id}, code={self.shipment_code}, "
            f"status={self.status}, sub_status={self.sub_status})>"
        )


class ShipmentStatusHistory(MetadataMixin, BaseModel):
    """
    Append-only record of one shipment status transition.

    Rows are written by the status machine in the same unit of work as the
    shipment update and are never modified afterwards.
    """
    __tablename__ = "shipment_status_history"

    shipment_id: Mapped[UUID] = mapped_column(
        ForeignKey("shipments.id"),
        nullable=False,
        index=True,
    )

    previous_status: Mapped[Optional[ShipmentStatus]] = mapped_column(
        Enum(ShipmentStatus, name="shipment_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )

    new_status: Mapped[ShipmentStatus] = mapped_column(
        Enum(ShipmentStatus, name="shipment_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    previous_sub_status: Mapped[Optional[ShipmentSubStatus]] = mapped_column(
        Enum(ShipmentSubStatus, name="shipment_sub_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )

    new_sub_status: Mapped[Optional[ShipmentSubStatus]] = mapped_column(
        Enum(ShipmentSubStatus, name="shipment_sub_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )

    change_source: Mapped[ChangeSource] = mapped_column(
        Enum(ChangeSource, name="change_source", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ChangeSource.MANUAL,
    )

    changed_by: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ShipmentStatusHistory(shipment={self.shipment_id}, "
            f"{self.previous_status} -> {self.new_status})>"
        )
