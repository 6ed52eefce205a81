"""
Customer-facing outcomes of location resolution.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from delivery.distance import GeoPoint
from delivery.zones import DeliveryZone


class LocationSource(str, Enum):
    """How the customer supplied the location."""
    TYPED = "typed"
    SUGGESTION = "suggestion"
    DEVICE_LOCATION = "device-location"


@dataclass(frozen=True)
class ResolvedLocation:
    """A delivery zone assignment."""
    zone: DeliveryZone
    source: LocationSource
    point: Optional[GeoPoint] = None
    distance_km: Optional[float] = None
    accuracy_m: Optional[float] = None

    @property
    def is_serviceable(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "serviceable": True,
            "source": self.source.value,
            "zone": self.zone.to_dict(),
            "point": self.point.to_dict() if self.point else None,
            "distance_km": round(self.distance_km, 2) if self.distance_km is not None else None,
            "accuracy_m": self.accuracy_m,
        }


@dataclass(frozen=True)
class NotServiceable:
    """The location is outside every zone; carries the closest one for messaging."""
    nearest_zone: Optional[DeliveryZone]
    distance_km: float
    source: LocationSource
    point: Optional[GeoPoint] = None

    @property
    def is_serviceable(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "serviceable": False,
            "source": self.source.value,
            "nearest_zone": self.nearest_zone.to_dict() if self.nearest_zone else None,
            "distance_km": None if math.isinf(self.distance_km) else round(self.distance_km, 2),
            "point": self.point.to_dict() if self.point else None,
        }


LocationOutcome = Union[ResolvedLocation, NotServiceable]
