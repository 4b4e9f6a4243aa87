"""
Pydantic schemas for API request/response validation.
"""

from app.schemas.base import BaseSchema, ListResponse, ErrorDetail, ErrorResponse
from app.schemas.shipment import (
    TransitionRequest,
    TransitionResponse,
    ShipmentResponse,
    StatusHistoryResponse,
    MandatoryFieldsResponse,
    MappingCheckRequest,
    MappingCheckResponse,
    DelayCheckRequest,
    DelayCheckResponse,
)
from app.schemas.exception import (
    ExceptionCreate,
    ExceptionStatusUpdate,
    ExceptionResponse,
)
from app.schemas.alert import (
    AlertResponse,
    AlertStatusUpdate,
    ConsentRevokedRequest,
    ConsentRevokedResponse,
    SweepResponse,
)
from app.schemas.capacity import CapacityCheckRequest, CapacityCheckResponse
from app.schemas.tracking import (
    LatLng,
    TrackingPointIn,
    PingBatch,
    PingResult,
    ClusterResponse,
    ClusterAnalysisResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "ListResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Shipment
    "TransitionRequest",
    "TransitionResponse",
    "ShipmentResponse",
    "StatusHistoryResponse",
    "MandatoryFieldsResponse",
    "MappingCheckRequest",
    "MappingCheckResponse",
    "DelayCheckRequest",
    "DelayCheckResponse",
    # Exception
    "ExceptionCreate",
    "ExceptionStatusUpdate",
    "ExceptionResponse",
    # Alert
    "AlertResponse",
    "AlertStatusUpdate",
    "ConsentRevokedRequest",
    "ConsentRevokedResponse",
    "SweepResponse",
    # Capacity
    "CapacityCheckRequest",
    "CapacityCheckResponse",
    # Tracking
    "LatLng",
    "TrackingPointIn",
    "PingBatch",
    "PingResult",
    "ClusterResponse",
    "ClusterAnalysisResponse",
]
