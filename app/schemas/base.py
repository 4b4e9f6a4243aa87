"""
Base Pydantic schemas and common types.
"""
from datetime import datetime
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
        json_encoders={
            datetime: lambda v: v.isoformat(),
            UUID: lambda v: str(v),
        },
    )


class TimestampSchema(BaseSchema):
    """Schema mixin for timestamp fields."""
    created_at: datetime
    updated_at: datetime


class IDSchema(BaseSchema):
    """Schema mixin for ID field."""
    id: UUID


T = TypeVar("T")


class ListResponse(BaseSchema, Generic[T]):
    """Generic list wrapper."""
    items: list[T]
    total: int


class GeoLocation(BaseSchema):
    """Geographic location schema."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_wkt(self) -> str:
        """Convert to Well-Known Text format for PostGIS."""
        return f"POINT({self.longitude} {self.latitude})"


class ErrorDetail(BaseSchema):
    """Body of a structured engine error response."""
    kind: str
    message: str
    ids: dict[str, str] = Field(default_factory=dict)
    missing_fields: Optional[list[str]] = None


class ErrorResponse(BaseSchema):
    error: ErrorDetail
