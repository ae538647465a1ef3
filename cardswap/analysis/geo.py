"""
Great-circle distance between two users.
"""

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two coordinates.

    Args:
        lat1, lon1: First point in decimal degrees
        lat2, lon2: Second point in decimal degrees

    Returns:
        Distance in kilometres, rounded to two decimals.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def within_either_radius(
    distance_km: float,
    my_radius_km: float,
    their_radius_km: float,
) -> bool:
    """
    Whether a pair is close enough to be matched.

    The pair is admitted when the distance is inside either party's own
    radius, so the radii are not symmetric.
    """
    return distance_km <= my_radius_km or distance_km <= their_radius_km
