"""
Geographic utility functions for distance and bounding-box calculations.

Pure functions with no dependencies on the database or services.
"""

import math
from typing import Tuple

# Mean Earth radius in meters
EARTH_RADIUS_METERS = 6371000.0


def calculate_distance_meters(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """
    Calculate the distance between two points using Haversine formula.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return EARTH_RADIUS_METERS * c


def bounding_box(
    latitude: float, longitude: float, radius_meters: float
) -> Tuple[float, float, float, float]:
    """
    Smallest latitude/longitude box containing the circle around a point.

    Used as an index-friendly prefilter before the exact distance test.
    When the circle reaches a pole or crosses the antimeridian the longitude
    range widens to the whole globe.

    Args:
        latitude, longitude: Circle center (degrees)
        radius_meters: Circle radius

    Returns:
        (min_lat, max_lat, min_lon, max_lon)
    """
    angular_radius = radius_meters / EARTH_RADIUS_METERS
    delta_lat = math.degrees(angular_radius)
    min_lat = latitude - delta_lat
    max_lat = latitude + delta_lat

    if min_lat <= -90.0 or max_lat >= 90.0:
        return max(min_lat, -90.0), min(max_lat, 90.0), -180.0, 180.0

    # Exact longitude extent of a spherical cap
    delta_lon = math.degrees(
        math.asin(min(1.0, math.sin(angular_radius) / math.cos(math.radians(latitude))))
    )
    min_lon = longitude - delta_lon
    max_lon = longitude + delta_lon

    if min_lon < -180.0 or max_lon > 180.0:
        return min_lat, max_lat, -180.0, 180.0

    return min_lat, max_lat, min_lon, max_lon
