"""
SQLAlchemy ORM Models for TCT.

This module exports all domain models and enums for the
Trip Control Tower lifecycle and alert engine.
"""

# Enums
from app.models.enums import (
    Severity,
    ShipmentStatus,
    ShipmentSubStatus,
    ChangeSource,
    ExceptionType,
    ExceptionStatus,
    TripStatus,
    FreightType,
    TrackingType,
    TrackingSource,
    TripAlertType,
    AlertStatus,
)

# Base
from app.models.base import BaseModel, MetadataMixin, TimestampMixin, UUIDPrimaryKeyMixin

# Domain Models
from app.models.vehicle import VehicleType, Vehicle
from app.models.trip import Trip, TripShipmentMap
from app.models.shipment import Shipment, ShipmentStatusHistory
from app.models.exception import ShipmentException
from app.models.alert import TripAlert
from app.models.tracking import TrackingPoint

__all__ = [
    # Enums
    "Severity",
    "ShipmentStatus",
    "ShipmentSubStatus",
    "ChangeSource",
    "ExceptionType",
    "ExceptionStatus",
    "TripStatus",
    "FreightType",
    "TrackingType",
    "TrackingSource",
    "TripAlertType",
    "AlertStatus",
    # Base
    "BaseModel",
    "MetadataMixin",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Domain Models
    "VehicleType",
    "Vehicle",
    "Trip",
    "TripShipmentMap",
    "Shipment",
    "ShipmentStatusHistory",
    "ShipmentException",
    "TripAlert",
    "TrackingPoint",
]
