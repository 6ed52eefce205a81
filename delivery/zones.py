"""
Delivery zone registry.

Zones and their informal aliases are loaded once from a versioned JSON file
and are read-only afterwards, so a single registry is shared by every search
session without locking.
"""

import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from config.settings import settings

from .distance import GeoPoint

logger = logging.getLogger(__name__)

DEFAULT_ZONES_FILE = Path(__file__).parent / "data" / "zones.json"

ETA_RANGE_PATTERN = re.compile(r"(\d+)\s*-\s*(\d+)")

# Fee ceilings (inclusive) for presentation tiers
TIER_THRESHOLDS: Tuple[Tuple[str, int], ...] = (
    ("standard", 5000),
    ("extended", 7000),
)
TOP_TIER = "premium"


class ZoneDataError(ValueError):
    """Raised when zone or alias data is inconsistent."""


class ZoneNotFoundError(KeyError):
    """Raised when a zone name is not in the registry."""


def parse_eta_range(estimated_time: str) -> Optional[Tuple[int, int]]:
    """Extract ``(min, max)`` minutes from strings like ``"30-45 mins"``."""
    match = ETA_RANGE_PATTERN.search(estimated_time or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def zone_tier(fee: int) -> str:
    """Bucket a delivery fee into a presentation tier."""
    for tier, ceiling in TIER_THRESHOLDS:
        if fee <= ceiling:
            return tier
    return TOP_TIER


@dataclass(frozen=True)
class DeliveryZone:
    """A named delivery area with a fixed fee and ETA range."""
    name: str
    fee: int
    estimated_time: str
    centroid: Optional[GeoPoint] = None

    @property
    def eta_range(self) -> Optional[Tuple[int, int]]:
        return parse_eta_range(self.estimated_time)

    @property
    def tier(self) -> str:
        return zone_tier(self.fee)

    def to_dict(self) -> Dict[str, Any]:
        """Convert zone to dictionary for API responses."""
        return {
            "name": self.name,
            "fee": self.fee,
            "estimated_time": self.estimated_time,
            "tier": self.tier,
            "centroid": self.centroid.to_dict() if self.centroid else None,
        }


class ZoneRegistry:
    """
    Immutable, ordered set of delivery zones plus the alias table.

    Registry order is significant: it breaks ties in nearest-zone lookups and
    decides which zone wins when several names match a candidate.
    """

    def __init__(
        self,
        zones: Iterable[DeliveryZone],
        aliases: Optional[Mapping[str, Iterable[str]]] = None,
        version: str = "unversioned",
    ):
        self._zones: Tuple[DeliveryZone, ...] = tuple(zones)
        self._by_name: Dict[str, DeliveryZone] = {}
        self.version = version

        for zone in self._zones:
            if not zone.name or not zone.name.strip():
                raise ZoneDataError("Zone name must not be empty")
            if zone.name in self._by_name:
                raise ZoneDataError(f"Duplicate zone name: {zone.name}")
            if zone.fee < 0:
                raise ZoneDataError(f"Zone {zone.name} has a negative fee")
            if zone.eta_range is None:
                raise ZoneDataError(
                    f"Zone {zone.name} has an unparseable ETA: {zone.estimated_time!r}"
                )
            self._by_name[zone.name] = zone

        alias_table: Dict[str, Tuple[str, ...]] = {}
        for zone_name, names in (aliases or {}).items():
            if zone_name not in self._by_name:
                raise ZoneDataError(f"Aliases given for unknown zone: {zone_name}")
            cleaned = []
            for alias in names:
                alias = alias.strip().lower()
                if alias and alias not in cleaned:
                    cleaned.append(alias)
            alias_table[zone_name] = tuple(cleaned)
        self._aliases = MappingProxyType(alias_table)

    def all(self) -> Tuple[DeliveryZone, ...]:
        return self._zones

    def by_name(self, name: str) -> Optional[DeliveryZone]:
        """Exact, case-sensitive lookup on the canonical zone name."""
        return self._by_name.get(name)

    def require(self, name: str) -> DeliveryZone:
        zone = self.by_name(name)
        if zone is None:
            raise ZoneNotFoundError(name)
        return zone

    def aliases_for(self, name: str) -> Tuple[str, ...]:
        return self._aliases.get(name, ())

    @property
    def aliases(self) -> Mapping[str, Tuple[str, ...]]:
        return self._aliases

    def __len__(self) -> int:
        return len(self._zones)

    def __iter__(self):
        return iter(self._zones)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ZoneRegistry":
        """
        Build a registry from the JSON data layout.

        Args:
            data (dict): ``{"version", "zones": [...], "aliases": {...}}``

        Returns:
            ZoneRegistry: Loaded registry
        """
        zones: List[DeliveryZone] = []
        try:
            for item in data["zones"]:
                coordinates = item.get("coordinates")
                centroid = GeoPoint(float(coordinates[0]), float(coordinates[1])) if coordinates else None
                zones.append(DeliveryZone(
                    name=item["name"],
                    fee=int(item["fee"]),
                    estimated_time=item["estimated_time"],
                    centroid=centroid,
                ))
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise ZoneDataError(f"Malformed zone entry: {e}") from e

        return cls(zones, data.get("aliases", {}), version=str(data.get("version", "unversioned")))

    @classmethod
    def from_file(cls, path: Path) -> "ZoneRegistry":
        with open(path, "r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as e:
                raise ZoneDataError(f"Zone file {path} is not valid JSON: {e}") from e

        registry = cls.from_dict(data)
        logger.info(f"Loaded {len(registry)} delivery zones (version {registry.version}) from {path}")
        return registry


@lru_cache(maxsize=None)
def load_registry(path: Optional[str] = None) -> ZoneRegistry:
    """Load and cache a registry; ``None`` selects the packaged dataset."""
    return ZoneRegistry.from_file(Path(path) if path else DEFAULT_ZONES_FILE)


def load_default_registry() -> ZoneRegistry:
    """Registry configured by ``settings.zones_file``."""
    return load_registry(settings.zones_file)
