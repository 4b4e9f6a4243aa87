"""
Shipment exception schemas.
"""
from datetime import datetime
from typing import Optional, Any
from uuid import UUID

from pydantic import Field, model_validator

from app.models.enums import ExceptionType, ExceptionStatus, Severity
from app.schemas.base import BaseSchema, IDSchema


class ExceptionCreate(BaseSchema):
    """Log an exception; severity defaults to the type's default."""
    exception_type: ExceptionType
    description: str = Field(..., min_length=1)
    severity: Optional[Severity] = None
    trip_id: Optional[UUID] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ExceptionStatusUpdate(BaseSchema):
    status: ExceptionStatus
    notes: Optional[str] = None
    escalate_to: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def validate_escalation(self) -> "ExceptionStatusUpdate":
        if self.status == ExceptionStatus.ESCALATED and not self.escalate_to:
            raise ValueError("escalate_to is required when escalating")
        return self


class ExceptionResponse(IDSchema):
    shipment_id: UUID
    trip_id: Optional[UUID] = None
    exception_type: ExceptionType
    status: ExceptionStatus
    severity: Severity
    description: str
    resolution_path: Optional[str] = None
    resolution_notes: Optional[str] = None
    escalated_to: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    detected_at: datetime
    acknowledged_at: Optional[datetime] = None
    escalated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
