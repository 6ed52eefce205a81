"""
Nearest-zone lookup and the metro-area threshold check.
"""

import math
from typing import Iterable, Optional, Tuple

from .distance import GeoPoint, distance_km
from .zones import DeliveryZone


def nearest(point: GeoPoint, zones: Iterable[DeliveryZone]) -> Tuple[Optional[DeliveryZone], float]:
    """
    Find the zone whose centroid is closest to ``point``.

    Zones without a centroid are skipped. Ties keep the earlier zone, so the
    result is stable in registry order.

    Returns:
        tuple: ``(zone, distance_km)`` or ``(None, math.inf)`` when no zone qualifies
    """
    best_zone: Optional[DeliveryZone] = None
    best_distance = math.inf

    for zone in zones:
        if zone.centroid is None:
            continue
        distance = distance_km(point, zone.centroid)
        if distance < best_distance:
            best_zone = zone
            best_distance = distance

    return best_zone, best_distance


def is_within_metro(point: GeoPoint, center: GeoPoint, radius_km: float) -> bool:
    """Whether ``point`` lies inside the metro radius; never grants deliverability."""
    return distance_km(point, center) <= radius_km
