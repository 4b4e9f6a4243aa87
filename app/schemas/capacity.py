"""
Capacity check schemas.
"""
from typing import Optional

from pydantic import Field

from app.schemas.base import BaseSchema


class CapacityCheckRequest(BaseSchema):
    candidate_weight_kg: float = Field(0, ge=0)
    candidate_volume_cbm: float = Field(0, ge=0)


class CapacityCheckResponse(BaseSchema):
    valid: bool
    checked: bool
    near_capacity: bool
    weight_utilization: float
    volume_utilization: float
    total_weight_kg: float
    total_volume_cbm: float
    weight_capacity_kg: Optional[float] = None
    volume_capacity_cbm: Optional[float] = None
    messages: list[str] = Field(default_factory=list)
    skip_reason: Optional[str] = None
