"""Common utility functions."""

from .geo import (
    calculate_distance,
    find_closest_point_on_route,
    invalid_route_vertices,
    is_valid_coordinate,
)

__all__ = [
    "calculate_distance",
    "find_closest_point_on_route",
    "invalid_route_vertices",
    "is_valid_coordinate",
]
