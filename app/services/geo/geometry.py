"""
Spherical geometry helpers for tracking and alert detection.

All distances are great-circle (haversine) distances in METERS on a
spherical Earth; bearings are initial compass bearings in degrees.
"""
from dataclasses import dataclass
from math import radians, degrees, sin, cos, sqrt, atan2
from typing import Iterable, NamedTuple, Optional, Protocol

EARTH_RADIUS_METERS = 6371e3


class Coordinate(NamedTuple):
    """A (lat, lng) pair in decimal degrees."""
    lat: float
    lng: float


class HasLatLng(Protocol):
    lat: float
    lng: float


@dataclass(frozen=True)
class ProximityCheck:
    """Result of checking whether any tracking point passed near a location."""
    passed: bool
    closest_distance: Optional[int]


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points in meters.

    Uses the Haversine formula.
    """
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lng = radians(lng2 - lng1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def calculate_bearing(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial bearing from point 1 to point 2, normalised to [0, 360)."""
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lng = radians(lng2 - lng1)

    y = sin(delta_lng) * cos(lat2_rad)
    x = cos(lat1_rad) * sin(lat2_rad) - sin(lat1_rad) * cos(lat2_rad) * cos(delta_lng)

    return (degrees(atan2(y, x)) + 360) % 360


def min_distance_to_route(lat: float, lng: float, route: Iterable[HasLatLng]) -> Optional[float]:
    """
    Minimum distance (m) from a position to any vertex of a route.

    Returns None for an empty route. Only vertices are considered, not
    the segments between them.
    """
    distances = [haversine_distance(lat, lng, p.lat, p.lng) for p in route]
    return min(distances) if distances else None


def is_within_radius(
    lat: float,
    lng: float,
    center_lat: float,
    center_lng: float,
    radius_meters: float,
) -> tuple[bool, int]:
    """
    Geofence primitive.

    Returns:
        (inside, distance) with the distance rounded to whole meters.
    """
    distance = haversine_distance(lat, lng, center_lat, center_lng)
    return distance <= radius_meters, round(distance)


def has_point_near_location(
    points: Iterable[HasLatLng],
    lat: float,
    lng: float,
    radius_meters: float = 500.0,
) -> ProximityCheck:
    """Check whether any tracking point came within ``radius_meters`` of a waypoint."""
    closest: Optional[float] = None
    for point in points:
        distance = haversine_distance(point.lat, point.lng, lat, lng)
        if closest is None or distance < closest:
            closest = distance

    if closest is None:
        return ProximityCheck(passed=False, closest_distance=None)
    return ProximityCheck(passed=closest <= radius_meters, closest_distance=round(closest))


def decode_polyline(encoded: str) -> list[Coordinate]:
    """
    Decode a Google encoded polyline (precision 1e-5).

    Example:
        >>> decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
        [Coordinate(lat=38.5, lng=-120.2), Coordinate(lat=40.7, lng=-120.95), ...]
    """
    coordinates: list[Coordinate] = []
    index = 0
    lat = 0
    lng = 0
    length = len(encoded)

    while index < length:
        deltas = []
        for _ in range(2):
            result = 0
            shift = 0
            while True:
                if index >= length:
                    raise ValueError("Truncated polyline")
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)

        lat += deltas[0]
        lng += deltas[1]
        coordinates.append(Coordinate(lat / 1e5, lng / 1e5))

    return coordinates


def format_distance(meters: float) -> str:
    """Human-readable distance: "850 m" below 1 km, otherwise "1.25 km"."""
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.2f} km"
