"""Geometry helpers for tracking and alert detection."""

from app.services.geo.geometry import (
    EARTH_RADIUS_METERS,
    Coordinate,
    ProximityCheck,
    haversine_distance,
    calculate_bearing,
    min_distance_to_route,
    is_within_radius,
    has_point_near_location,
    decode_polyline,
    format_distance,
)

__all__ = [
    "EARTH_RADIUS_METERS",
    "Coordinate",
    "ProximityCheck",
    "haversine_distance",
    "calculate_bearing",
    "min_distance_to_route",
    "is_within_radius",
    "has_point_near_location",
    "decode_polyline",
    "format_distance",
]
