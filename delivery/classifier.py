"""
Deliverability classification for place candidates.

A candidate is deliverable only when its name matches a zone name or one of
the zone's aliases. Distance to the nearest zone centroid is reported
alongside but never decides deliverability: a place two kilometres from a
centroid may still sit outside the real service boundary.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .distance import GeoPoint
from .nearest import is_within_metro, nearest
from .zones import DeliveryZone, ZoneRegistry

logger = logging.getLogger(__name__)

TOKEN_SEPARATORS = re.compile(r"[\s,]+")


class Confidence(str, Enum):
    """How strongly a result is tied to a zone."""
    EXACT = "exact"
    ALIAS = "alias"
    PROXIMITY_ONLY = "proximity-only"
    NONE = "none"


class MatchRule(Enum):
    """Name rules, listed in priority order."""
    EXACT = "exact"
    PREFIX = "prefix"
    FIRST_TOKEN = "first_token"


@dataclass(frozen=True)
class PlaceCandidate:
    """A single place suggestion, either from the provider or the local zone table."""
    name: str
    display_name: str
    point: Optional[GeoPoint]
    place_type: str = "place"
    country: Optional[str] = None

    @classmethod
    def from_zone(cls, zone: DeliveryZone) -> "PlaceCandidate":
        return cls(
            name=zone.name,
            display_name=zone.name,
            point=zone.centroid,
            place_type="zone",
        )


@dataclass(frozen=True)
class ZoneMatch:
    """Which zone a name matched, by which rule, and through which alias if any."""
    zone: DeliveryZone
    rule: MatchRule
    alias: Optional[str] = None

    @property
    def confidence(self) -> Confidence:
        if self.rule is MatchRule.EXACT and self.alias is None:
            return Confidence.EXACT
        return Confidence.ALIAS


@dataclass(frozen=True)
class DeliverabilityResult:
    """Classification of one candidate against the zone registry."""
    candidate: PlaceCandidate
    nearest_zone: Optional[DeliveryZone]
    distance_to_zone_km: float
    is_in_metro_area: bool
    is_deliverable: bool
    confidence: Confidence
    matched_zone: Optional[DeliveryZone] = None

    @property
    def fee(self) -> Optional[int]:
        return self.matched_zone.fee if self.matched_zone else None

    @property
    def estimated_time(self) -> Optional[str]:
        return self.matched_zone.estimated_time if self.matched_zone else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for API responses."""
        distance = None if math.isinf(self.distance_to_zone_km) else round(self.distance_to_zone_km, 2)
        return {
            "name": self.candidate.name,
            "display_name": self.candidate.display_name,
            "point": self.candidate.point.to_dict() if self.candidate.point else None,
            "place_type": self.candidate.place_type,
            "is_deliverable": self.is_deliverable,
            "confidence": self.confidence.value,
            "zone": self.matched_zone.name if self.matched_zone else None,
            "fee": self.fee,
            "estimated_time": self.estimated_time,
            "nearest_zone": self.nearest_zone.name if self.nearest_zone else None,
            "distance_to_zone_km": distance,
            "is_in_metro_area": self.is_in_metro_area,
        }


def first_token(text: str) -> str:
    """First whitespace- or comma-delimited token of ``text``."""
    return TOKEN_SEPARATORS.split(text.strip(), maxsplit=1)[0]


def rule_fires(rule: MatchRule, candidate: str, target: str) -> bool:
    """Apply one name rule; both strings are expected lowercased and stripped."""
    if not target:
        return False
    if rule is MatchRule.EXACT:
        return candidate == target
    if rule is MatchRule.PREFIX:
        return candidate.startswith(f"{target} ") or candidate.startswith(f"{target},")
    return first_token(candidate) == target


class DeliverabilityClassifier:
    """
    Classifies place candidates against a zone registry.

    Name rules run in priority order (exact, prefix, first token) across all
    zone names first, then across all aliases. Within a rule the first zone in
    registry order wins, so overlapping names resolve deterministically rather
    than by any notion of best match.
    """

    def __init__(self, registry: ZoneRegistry, metro_center: GeoPoint, metro_radius_km: float):
        self.registry = registry
        self.metro_center = metro_center
        self.metro_radius_km = metro_radius_km

    def match_zone(self, name: Optional[str]) -> Optional[ZoneMatch]:
        """
        Find the zone a candidate name denotes.

        Args:
            name (str): Candidate name as typed or returned by the provider

        Returns:
            ZoneMatch: First matching zone, or None
        """
        text = (name or "").strip().lower()
        if not text:
            return None

        zones = self.registry.all()

        for rule in MatchRule:
            for zone in zones:
                if rule_fires(rule, text, zone.name.strip().lower()):
                    return ZoneMatch(zone=zone, rule=rule)

        for rule in MatchRule:
            for zone in zones:
                for alias in self.registry.aliases_for(zone.name):
                    if rule_fires(rule, text, alias):
                        return ZoneMatch(zone=zone, rule=rule, alias=alias)

        return None

    def classify(self, candidate: PlaceCandidate) -> DeliverabilityResult:
        """
        Attach zone match, nearest zone and metro flag to a candidate.

        Args:
            candidate (PlaceCandidate): Candidate to classify

        Returns:
            DeliverabilityResult: Fully classified result
        """
        if candidate.point is not None:
            nearest_zone, distance = nearest(candidate.point, self.registry.all())
            in_metro = is_within_metro(candidate.point, self.metro_center, self.metro_radius_km)
        else:
            nearest_zone, distance, in_metro = None, math.inf, False

        match = self.match_zone(candidate.name)

        if match is not None:
            confidence = match.confidence
        elif nearest_zone is not None and in_metro and (candidate.name or "").strip():
            confidence = Confidence.PROXIMITY_ONLY
        else:
            confidence = Confidence.NONE

        result = DeliverabilityResult(
            candidate=candidate,
            nearest_zone=nearest_zone,
            distance_to_zone_km=distance,
            is_in_metro_area=in_metro,
            is_deliverable=match is not None,
            confidence=confidence,
            matched_zone=match.zone if match else None,
        )

        logger.debug(
            f"Classified '{candidate.name}': deliverable={result.is_deliverable}, "
            f"confidence={confidence.value}, nearest={nearest_zone.name if nearest_zone else None}"
        )
        return result

    def search_local(self, query: str) -> List[DeliverabilityResult]:
        """
        Zones whose name or alias contains ``query``, in registry order.

        Used to surface known zones without waiting on the place-search provider.
        """
        text = (query or "").strip().lower()
        if not text:
            return []

        results = []
        for zone in self.registry.all():
            names = (zone.name.lower(),) + self.registry.aliases_for(zone.name)
            if any(text in candidate for candidate in names):
                results.append(self.classify(PlaceCandidate.from_zone(zone)))
        return results
