"""
Trip alert model for TCT.

Detectors check for an existing active alert before inserting; the
partial unique index below makes the store reject the duplicate that a
concurrent check-then-insert can still produce.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from geoalchemy2 import Geometry
from sqlalchemy import String, Text, Numeric, Enum, ForeignKey, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, MetadataMixin
from app.models.enums import TripAlertType, AlertStatus, Severity


class TripAlert(MetadataMixin, BaseModel):
    """
    Telemetry alert raised against a trip.

    Alert Types:
    - ROUTE_DEVIATION: Vehicle off the planned route
    - STOPPAGE: Vehicle stationary beyond threshold
    - TRACKING_LOST: Missed consecutive ping intervals
    - CONSENT_REVOKED: Driver withdrew SIM tracking consent
    - DELAY_WARNING: ETA slipped beyond tolerance

    Status:
    - ACTIVE -> ACKNOWLEDGED -> RESOLVED | DISMISSED
    """
    __tablename__ = "trip_alerts"
    __table_args__ = (
        Index(
            "uq_trip_alerts_one_active_per_type",
            "trip_id",
            "alert_type",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
    )

    trip_id: Mapped[UUID] = mapped_column(
        ForeignKey("trips.id"),
        nullable=False,
        index=True,
    )

    # =========================================================================
    # Classification
    # =========================================================================
    alert_type: Mapped[TripAlertType] = mapped_column(
        Enum(TripAlertType, name="trip_alert_type", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )

    status: Mapped[AlertStatus] = mapped_column(
        Enum(AlertStatus, name="alert_status", create_type=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AlertStatus.ACTIVE,
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
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    threshold_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    actual_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    # =========================================================================
    # Location of the triggering event
    # =========================================================================
    location: Mapped[Optional[str]] = mapped_column(
        Geometry("POINT", srid=4326),
        nullable=True,
    )

    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================
    triggered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    acknowledged_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    @property
    def is_open(self) -> bool:
        return AlertStatus(self.status).is_open

    def __repr__(self) -> str:
        return (
            f"<TripAlert(id={self.id}, trip={self.trip_id}, "
            f"type={self.alert_type}, status={self.status})>"
        )
