"""
Tracking ping and clustering schemas.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from app.models.enums import TrackingSource
from app.schemas.base import BaseSchema


class LatLng(BaseSchema):
    """Route vertex."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class TrackingPointIn(BaseSchema):
    """One location ping as delivered by a tracking provider."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    event_time: datetime
    speed_kmph: Optional[float] = Field(None, ge=0)
    heading: Optional[float] = Field(None, ge=0, lt=360)
    detailed_address: Optional[str] = None
    source: TrackingSource = TrackingSource.MANUAL


class PingBatch(BaseSchema):
    """
    Batch of pings for one trip.

    The planned route may be given as vertices or as an encoded polyline;
    if neither is present the trip's stored polyline is used.
    """
    points: list[TrackingPointIn] = Field(..., min_length=1)
    route: Optional[list[LatLng]] = None
    route_polyline: Optional[str] = None

    @model_validator(mode="after")
    def validate_route(self) -> "PingBatch":
        if self.route is not None and self.route_polyline is not None:
            raise ValueError("Provide either route or route_polyline, not both")
        return self


class PingResult(BaseSchema):
    """Outcome of ingesting and evaluating a ping batch."""
    recorded: int
    alerts_created: list[str] = Field(default_factory=list)
    alerts_resolved: list[str] = Field(default_factory=list)
    active_alert_count: int


class PointSampleResponse(BaseSchema):
    id: str
    lat: float
    lng: float
    sequence_number: int
    timestamp: datetime
    address: Optional[str] = None


class ClusterResponse(BaseSchema):
    id: str
    center: LatLng
    start_time: datetime
    end_time: datetime
    duration_minutes: float
    duration_display: str
    is_stoppage: bool
    address: Optional[str] = None
    points: list[PointSampleResponse]


class ClusterAnalysisResponse(BaseSchema):
    trip_id: UUID
    clusters: list[ClusterResponse]
    moving_points: list[PointSampleResponse]
    stoppage_count: int
