"""
Great-circle distance between two WGS84 points.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

# Mean earth radius used for every distance in the engine
EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in degrees (WGS84)."""
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon}


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """
    Calculate distance between two points using the Haversine formula.

    Args:
        a, b: Points in degrees

    Returns:
        float: Distance in kilometres on a 6371 km sphere
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [a.lat, a.lon, b.lat, b.lon])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2

    # Rounding can push h a hair above 1 for antipodal points
    c = 2 * math.asin(math.sqrt(min(1.0, h)))

    return EARTH_RADIUS_KM * c
