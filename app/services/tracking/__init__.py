"""Tracking point ingestion and clustering."""

from app.services.tracking.clustering import (
    PointSample,
    TrackingCluster,
    ClusterResult,
    cluster_tracking_points,
    format_duration,
)

__all__ = [
    "PointSample",
    "TrackingCluster",
    "ClusterResult",
    "cluster_tracking_points",
    "format_duration",
]
