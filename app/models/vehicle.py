"""
Vehicle and vehicle type models for TCT.

Capacity lives on the vehicle type; a null capacity means the type has
no configured limit for that dimension.
"""
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import String, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


class VehicleType(BaseModel):
    """Vehicle class with its load capacity (e.g. 32ft MXL, 20ft SXL)."""
    __tablename__ = "vehicle_types"

    type_name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )

    weight_capacity_kg: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Maximum payload in kg (NULL = unbounded)",
    )

    volume_capacity_cbm: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 3),
        nullable=True,
        comment="Maximum load volume in m³ (NULL = unbounded)",
    )

    def __repr__(self) -> str:
        return (
            f"<VehicleType({self.type_name}, "
            f"{self.weight_capacity_kg}kg, {self.volume_capacity_cbm}cbm)>"
        )


class Vehicle(BaseModel):
    """Registered vehicle."""
    __tablename__ = "vehicles"

    vehicle_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
    )

    vehicle_type_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("vehicle_types.id"),
        nullable=True,
    )

    vehicle_type: Mapped[Optional["VehicleType"]] = relationship(
        "VehicleType",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<Vehicle({self.vehicle_number})>"
