"""
Trip alert schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Any
from uuid import UUID

from pydantic import Field

from app.models.enums import TripAlertType, AlertStatus, Severity
from app.schemas.base import BaseSchema, IDSchema


class AlertResponse(IDSchema):
    trip_id: UUID
    alert_type: TripAlertType
    status: AlertStatus
    severity: Severity
    title: str
    description: Optional[str] = None
    threshold_value: Optional[Decimal] = None
    actual_value: Optional[Decimal] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    triggered_at: datetime
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


class AlertStatusUpdate(BaseSchema):
    status: AlertStatus
    actor: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ConsentRevokedRequest(BaseSchema):
    """Payload from the consent webhook; driver details default to the trip's."""
    driver_name: Optional[str] = None
    driver_mobile: Optional[str] = None


class ConsentRevokedResponse(BaseSchema):
    trip_id: UUID
    alert_created: bool
    alert: Optional[AlertResponse] = None


class SweepResponse(BaseSchema):
    trips_checked: int
    alerts_created: list[TripAlertType]
    alerts_resolved: list[TripAlertType]
    duplicates_dismissed: int = 0
