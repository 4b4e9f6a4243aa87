"""
Tracking point clustering.

Turns an ordered stream of location pings into stationary clusters and
moving points in a single left-to-right pass:

1. Sort points by sequence number.
2. Seed a running cluster with the first point; its centroid is that point.
3. For each next point, measure the distance to the running centroid.
   Within ``proximity_meters`` the point joins the cluster and the centroid
   becomes the mean of all member coordinates. Otherwise the cluster is
   closed and a new one starts from this point.
4. A closed cluster with 2+ points is emitted as a TrackingCluster; a
   single-point cluster is emitted as a moving point.

Closed clusters are never revisited, so the pass is O(n) and depends only
on the sequence order, not on the order of the input list.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from app.core.config import settings
from app.services.geo.geometry import Coordinate, haversine_distance


@dataclass(frozen=True)
class PointSample:
    """Clustering view of one tracking point."""
    id: str
    lat: float
    lng: float
    sequence_number: int
    timestamp: datetime
    address: Optional[str] = None

    @classmethod
    def from_orm(cls, point: Any) -> "PointSample":
        """Build from a TrackingPoint row."""
        return cls(
            id=str(point.id),
            lat=float(point.latitude),
            lng=float(point.longitude),
            sequence_number=point.sequence_number,
            timestamp=point.event_time,
            address=point.detailed_address,
        )


@dataclass
class TrackingCluster:
    """Two or more consecutive points within proximity of a shared centroid."""
    id: str
    points: list[PointSample]
    center: Coordinate
    start_time: datetime
    end_time: datetime
    duration_minutes: float
    is_stoppage: bool
    address: Optional[str] = None

    @property
    def point_count(self) -> int:
        return len(self.points)


@dataclass
class ClusterResult:
    clusters: list[TrackingCluster] = field(default_factory=list)
    moving_points: list[PointSample] = field(default_factory=list)

    @property
    def stoppages(self) -> list[TrackingCluster]:
        return [c for c in self.clusters if c.is_stoppage]


def _centroid(points: list[PointSample]) -> Coordinate:
    n = len(points)
    return Coordinate(
        sum(p.lat for p in points) / n,
        sum(p.lng for p in points) / n,
    )


def _close(
    members: list[PointSample],
    center: Coordinate,
    stoppage_threshold_minutes: float,
    result: ClusterResult,
) -> None:
    if len(members) == 1:
        result.moving_points.append(members[0])
        return

    first, last = members[0], members[-1]
    duration = (last.timestamp - first.timestamp).total_seconds() / 60
    result.clusters.append(
        TrackingCluster(
            id=f"cluster-{first.id}",
            points=list(members),
            center=center,
            start_time=first.timestamp,
            end_time=last.timestamp,
            duration_minutes=duration,
            is_stoppage=duration >= stoppage_threshold_minutes,
            address=first.address or last.address,
        )
    )


def cluster_tracking_points(
    points: Iterable[PointSample],
    proximity_meters: Optional[float] = None,
    stoppage_threshold_minutes: Optional[float] = None,
) -> ClusterResult:
    """
    Group tracking points into stationary clusters and moving points.

    Args:
        points: Tracking points in any order.
        proximity_meters: Max distance from the running centroid to join a
            cluster (default: settings.cluster_proximity_meters).
        stoppage_threshold_minutes: Minimum cluster duration to count as a
            stoppage (default: settings.cluster_stoppage_threshold_minutes).

    Returns:
        ClusterResult whose clusters' points plus moving points together
        contain every input point exactly once.
    """
    if proximity_meters is None:
        proximity_meters = settings.cluster_proximity_meters
    if stoppage_threshold_minutes is None:
        stoppage_threshold_minutes = settings.cluster_stoppage_threshold_minutes

    ordered = sorted(points, key=lambda p: p.sequence_number)
    result = ClusterResult()
    if not ordered:
        return result

    members = [ordered[0]]
    center = Coordinate(ordered[0].lat, ordered[0].lng)

    for point in ordered[1:]:
        distance = haversine_distance(center.lat, center.lng, point.lat, point.lng)
        if distance <= proximity_meters:
            members.append(point)
            center = _centroid(members)
        else:
            _close(members, center, stoppage_threshold_minutes, result)
            members = [point]
            center = Coordinate(point.lat, point.lng)

    _close(members, center, stoppage_threshold_minutes, result)
    return result


def format_duration(minutes: float) -> str:
    """Render a dwell time: "45 min", "1h 30m" or "2h"."""
    if minutes < 60:
        return f"{round(minutes)} min"
    hours, mins = divmod(round(minutes), 60)
    return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"
