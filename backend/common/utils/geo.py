"""
Geographic utility functions.

This module provides the geospatial calculations used by the matching engine.
Route polylines follow the GeoJSON convention: a list of ``[lng, lat]`` pairs.
"""

from math import radians, cos, sin, asin, sqrt
from typing import List, NamedTuple, Sequence, Tuple

EARTH_RADIUS_KM = 6371.0


class RoutePoint(NamedTuple):
    """Closest route vertex to a point: ``(lng, lat)``, distance in km, vertex index."""
    point: Tuple[float, float]
    distance: float
    index: int


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in kilometers using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(min(1.0, a)))
    return c * EARTH_RADIUS_KM


def find_closest_point_on_route(route: Sequence[Sequence[float]], lat: float, lng: float) -> RoutePoint:
    """
    Project a point onto the nearest vertex of a route polyline.

    Args:
        route: Ordered ``[lng, lat]`` vertices
        lat: Latitude of the point
        lng: Longitude of the point

    Returns:
        RoutePoint for the closest vertex (first one wins on ties)
    """
    if not route:
        raise ValueError("Route must contain at least one coordinate")

    best = None
    for index, (v_lng, v_lat) in enumerate(route):
        distance = calculate_distance(v_lat, v_lng, lat, lng)
        if best is None or distance < best.distance:
            best = RoutePoint((float(v_lng), float(v_lat)), distance, index)
    return best


def is_valid_coordinate(lat: float, lng: float) -> bool:
    """Latitude in [-90, 90] and longitude in [-180, 180]."""
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def invalid_route_vertices(route: Sequence[Sequence[float]]) -> List[int]:
    """Indexes of malformed or out-of-range ``[lng, lat]`` vertices."""
    bad = []
    for index, vertex in enumerate(route):
        if not isinstance(vertex, (list, tuple)) or len(vertex) != 2:
            bad.append(index)
            continue
        lng, lat = vertex
        if not is_valid_coordinate(lat, lng):
            bad.append(index)
    return bad
