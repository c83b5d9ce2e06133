"""Great-circle geofence evaluation."""

from __future__ import annotations

import math

from punchd.calculators.types import GeofenceResult

# Mean Earth radius (IUGG), metres
EARTH_RADIUS_METERS = 6_371_008.8


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two WGS84 coordinates, in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def is_within_geofence(
    center_lat: float,
    center_lng: float,
    radius_meters: float,
    point_lat: float,
    point_lng: float,
) -> GeofenceResult:
    """Check whether a point lies inside a circular geofence.

    The boundary is inclusive: a point exactly ``radius_meters`` away is
    within. A zero radius only admits the centre itself.
    """
    distance = haversine_distance(center_lat, center_lng, point_lat, point_lng)
    return GeofenceResult(is_within=distance <= radius_meters, distance_meters=distance)
