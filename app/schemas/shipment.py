"""
Shipment lifecycle schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Any
from uuid import UUID

from pydantic import Field

from app.models.enums import ShipmentStatus, ShipmentSubStatus, ChangeSource
from app.schemas.base import BaseSchema, IDSchema, TimestampSchema
from app.schemas.capacity import CapacityCheckResponse
from app.schemas.exception import ExceptionResponse


class TransitionRequest(BaseSchema):
    """
    Request a status and/or sub-status change.

    To advance only the sub-status, repeat the current status as
    ``new_status``.
    """
    new_status: ShipmentStatus
    new_sub_status: Optional[ShipmentSubStatus] = None
    source: ChangeSource = ChangeSource.MANUAL
    notes: Optional[str] = Field(None, max_length=2000)
    changed_by: Optional[str] = Field(None, max_length=100)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ShipmentResponse(IDSchema, TimestampSchema):
    shipment_code: Optional[str] = None
    consignee_code: Optional[str] = None
    trip_id: Optional[UUID] = None
    status: ShipmentStatus
    sub_status: Optional[ShipmentSubStatus] = None
    weight_kg: Optional[Decimal] = None
    volume_cbm: Optional[Decimal] = None
    delay_percentage: Optional[Decimal] = None
    is_delayed: bool = False
    exception_count: int = 0
    has_open_exception: bool = False

    confirmed_at: Optional[datetime] = None
    mapped_at: Optional[datetime] = None
    in_pickup_at: Optional[datetime] = None
    in_transit_at: Optional[datetime] = None
    out_for_delivery_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    ndr_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    success_at: Optional[datetime] = None
    loading_started_at: Optional[datetime] = None
    loading_completed_at: Optional[datetime] = None
    pod_cleaned_at: Optional[datetime] = None
    billed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class StatusHistoryResponse(IDSchema):
    shipment_id: UUID
    previous_status: Optional[ShipmentStatus] = None
    new_status: ShipmentStatus
    previous_sub_status: Optional[ShipmentSubStatus] = None
    new_sub_status: Optional[ShipmentSubStatus] = None
    change_source: ChangeSource
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime


class TransitionResponse(BaseSchema):
    shipment: ShipmentResponse
    history: StatusHistoryResponse


class MandatoryFieldsResponse(BaseSchema):
    shipment_id: UUID
    valid: bool
    missing_fields: list[str]


class MappingCheckRequest(BaseSchema):
    trip_id: UUID


class MappingCheckResponse(BaseSchema):
    valid: bool
    existing_trip_id: Optional[UUID] = None
    existing_trip_code: Optional[str] = None
    capacity: Optional[CapacityCheckResponse] = None


class DelayCheckRequest(BaseSchema):
    actual_time: datetime
    standard_tat_hours: Optional[float] = Field(None, gt=0)


class DelayCheckResponse(BaseSchema):
    delay_percentage: float
    is_delayed: bool
    exception: Optional[ExceptionResponse] = None
