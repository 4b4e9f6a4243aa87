"""
Tracking API endpoints: ping ingestion and stop clustering.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_async_session
from app.schemas.tracking import (
    ClusterAnalysisResponse,
    ClusterResponse,
    LatLng,
    PingBatch,
    PingResult,
    PointSampleResponse,
)
from app.services.alerts.engine import process_location_ping
from app.services.geo.geometry import Coordinate
from app.services.tracking.clustering import (
    PointSample,
    TrackingCluster,
    cluster_tracking_points,
    format_duration,
)
from app.services.tracking.ingest import list_tracking_points

router = APIRouter()


def _cluster_response(cluster: TrackingCluster) -> ClusterResponse:
    return ClusterResponse(
        id=cluster.id,
        center=LatLng(lat=cluster.center.lat, lng=cluster.center.lng),
        start_time=cluster.start_time,
        end_time=cluster.end_time,
        duration_minutes=round(cluster.duration_minutes, 1),
        duration_display=format_duration(cluster.duration_minutes),
        is_stoppage=cluster.is_stoppage,
        address=cluster.address,
        points=[PointSampleResponse.model_validate(p) for p in cluster.points],
    )


@router.post("/{trip_id}/pings", response_model=PingResult)
async def ingest_pings(
    trip_id: UUID,
    data: PingBatch,
    session: AsyncSession = Depends(get_async_session),
):
    """
    Store a batch of location pings and evaluate live alerts.

    Route deviation, stoppage and tracking recovery are checked against
    the newest ping.
    """
    route = [Coordinate(v.lat, v.lng) for v in data.route] if data.route else None
    outcome = await process_location_ping(
        session,
        trip_id,
        data.points,
        route=route,
        route_polyline=data.route_polyline,
    )
    return PingResult(
        recorded=outcome.recorded,
        alerts_created=[t.value for t in outcome.changes.created],
        alerts_resolved=[t.value for t in outcome.changes.resolved],
        active_alert_count=outcome.active_alert_count,
    )


@router.get("/{trip_id}/clusters", response_model=ClusterAnalysisResponse)
async def get_trip_clusters(
    trip_id: UUID,
    proximity_meters: Optional[float] = Query(None, gt=0),
    stoppage_threshold_minutes: Optional[float] = Query(None, ge=0),
    session: AsyncSession = Depends(get_async_session),
):
    """
    Group a trip's tracking points into stops and moving points.

    Thresholds default to the configured clustering settings.
    """
    points = await list_tracking_points(session, trip_id)
    result = cluster_tracking_points(
        [PointSample.from_orm(p) for p in points],
        proximity_meters=proximity_meters,
        stoppage_threshold_minutes=stoppage_threshold_minutes,
    )
    return ClusterAnalysisResponse(
        trip_id=trip_id,
        clusters=[_cluster_response(c) for c in result.clusters],
        moving_points=[PointSampleResponse.model_validate(p) for p in result.moving_points],
        stoppage_count=len(result.stoppages),
    )
