"""
Delivery zone package for the storefront location engine.

Provides the zone registry, distance and nearest-zone helpers, the
name/alias deliverability classifier and the peak-hours ETA adjuster.
"""

from .distance import GeoPoint, distance_km
from .zones import (
    DeliveryZone, ZoneRegistry, ZoneDataError, ZoneNotFoundError,
    load_default_registry, zone_tier
)
from .nearest import nearest, is_within_metro
from .classifier import (
    Confidence, DeliverabilityClassifier, DeliverabilityResult, PlaceCandidate
)
from .peak_hours import adjusted_eta, is_peak_hour

# Package metadata
__version__ = "1.0.0"

__all__ = [
    "GeoPoint",
    "distance_km",
    "DeliveryZone",
    "ZoneRegistry",
    "ZoneDataError",
    "ZoneNotFoundError",
    "load_default_registry",
    "zone_tier",
    "nearest",
    "is_within_metro",
    "Confidence",
    "DeliverabilityClassifier",
    "DeliverabilityResult",
    "PlaceCandidate",
    "adjusted_eta",
    "is_peak_hour"
]
