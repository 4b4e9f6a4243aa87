"""
Shipment exception model for TCT.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import String, Text, Enum, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, MetadataMixin
from app.models.enums import ExceptionType, ExceptionStatus, Severity


class ShipmentException(MetadataMixin, BaseModel):
    """
    Operational problem raised against one shipment.

    Lifecycle:
    - OPEN: Logged by a detector or an operator
    - ACKNOWLEDGED: Someone is looking at it
    - ESCALATED: Handed to a named party (escalated_to)
    - RESOLVED: Closed with resolution notes (terminal)

    Each status timestamp is stamped once, when that status is entered.
    Exceptions are historical record and are never deleted.
    """
    __tablename__ = "shipment_exceptions"

    shipment_id: Mapped[UUID] = mapped_column(
        ForeignKey("shipments.id"),
        nullable=False,
        index=True,
    )

    trip_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("trips.id"),
        nullable=True,
    )

    # =========================================================================
    # Classification
    # =========================================================================
    exception_type: Mapped[ExceptionType] = mapped_column(
        Enum(ExceptionType, name="exception_type", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )

    status: Mapped[ExceptionStatus] = mapped_column(
        Enum(ExceptionStatus, name="exception_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ExceptionStatus.OPEN,
        index=True,
    )

    severity: Mapped[Severity] = mapped_column(
        Enum(Severity, name="severity_level", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Severity.MEDIUM,
    )

    # =========================================================================
    # Content
    # =========================================================================
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    resolution_path: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    resolution_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    escalated_to: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    # =========================================================================
    # Lifecycle Timestamps
    # =========================================================================
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    escalated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_open(self) -> bool:
        """Open or escalated exceptions keep the shipment flagged."""
        return ExceptionStatus(self.status).counts_as_open

    def __repr__(self) -> str:
        return (
            f"<ShipmentException(id={self.id}, type={self.exception_type}, "
            f"status={self.status}, severity={self.severity})>"
        )
