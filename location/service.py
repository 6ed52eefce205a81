"""
Location resolution facade consumed by the storefront.

Wires the zone registry, classifier, place-search client and device
geolocation together behind three operations: free-text resolution, device
location resolution and peak-adjusted ETAs.
"""

import logging
import math
import weakref
from datetime import datetime
from typing import Callable, List, Optional

from config.settings import settings
from database.recent_selections import RecentSelectionsRepository
from delivery.classifier import DeliverabilityClassifier, DeliverabilityResult
from delivery.distance import GeoPoint
from delivery.peak_hours import adjusted_eta
from delivery.zones import ZoneRegistry, load_default_registry

from .geocoder import PhotonGeocoder
from .geolocation import DeviceLocator, PositionProvider, assign_position
from .models import LocationOutcome, LocationSource, NotServiceable, ResolvedLocation
from .session import LocationQuerySession, merge_results

logger = logging.getLogger(__name__)


class LocationService:
    """
    Produced API of the location engine.

    The registry and classifier are read-only and shared; search sessions and
    device locators are per input field / per device.
    """

    def __init__(
        self,
        registry: Optional[ZoneRegistry] = None,
        geocoder: Optional[PhotonGeocoder] = None,
    ):
        self.registry = registry or load_default_registry()
        self.classifier = DeliverabilityClassifier(
            self.registry,
            metro_center=GeoPoint(settings.city_center_lat, settings.city_center_lon),
            metro_radius_km=settings.metro_radius_km,
        )
        self.geocoder = geocoder or PhotonGeocoder(self.classifier)
        self._locators: "weakref.WeakKeyDictionary[PositionProvider, DeviceLocator]" = weakref.WeakKeyDictionary()

        logger.info(f"LocationService ready with {len(self.registry)} zones (data version {self.registry.version})")

    async def resolve_free_text(self, query: str) -> List[DeliverabilityResult]:
        """
        Classified suggestions for free text, local zone matches first.

        Provider outages only remove the remote suggestions; local alias
        matches are always returned.
        """
        trimmed = (query or "").strip()
        if len(trimmed) < settings.min_query_length:
            return []

        remote = await self.geocoder.search(trimmed)
        return merge_results(self.classifier.search_local(trimmed), remote)

    def resolve_typed(
        self,
        text: str,
        recent_selections: Optional[RecentSelectionsRepository] = None,
    ) -> LocationOutcome:
        """
        Resolve text typed straight into the address box, without the provider.
        """
        match = self.classifier.match_zone(text)
        if match is None:
            return NotServiceable(nearest_zone=None, distance_km=math.inf, source=LocationSource.TYPED)

        if recent_selections is not None:
            recent_selections.append(match.zone.name)
        return ResolvedLocation(zone=match.zone, source=LocationSource.TYPED, point=match.zone.centroid)

    async def resolve_device_location(
        self,
        provider: PositionProvider,
        recent_selections: Optional[RecentSelectionsRepository] = None,
    ) -> LocationOutcome:
        """
        Locate the device and assign a zone when close enough.

        Raises:
            LocationError: Geolocation failed; carries a customer-facing message
        """
        outcome = await self.device_locator(provider).resolve()
        if isinstance(outcome, ResolvedLocation) and recent_selections is not None:
            recent_selections.append(outcome.zone.name)
        return outcome

    def classify_position(self, latitude: float, longitude: float,
                          accuracy: Optional[float] = None) -> LocationOutcome:
        """Assign a position the client already obtained from its device."""
        return assign_position(
            GeoPoint(latitude, longitude),
            self.registry,
            settings.auto_assign_radius_km,
            accuracy,
        )

    def adjusted_eta(self, zone_name: str, now: Optional[datetime] = None) -> str:
        """
        ETA range for a zone, padded during peak hours.

        Raises:
            ZoneNotFoundError: Unknown zone name
        """
        zone = self.registry.require(zone_name)
        now = now or datetime.now()
        return adjusted_eta(
            zone.estimated_time,
            now.hour,
            windows=settings.peak_windows,
            padding_minutes=settings.peak_padding_minutes,
        )

    def device_locator(self, provider: PositionProvider) -> DeviceLocator:
        """One locator per provider so concurrent requests share a single attempt."""
        locator = self._locators.get(provider)
        if locator is None:
            locator = DeviceLocator(provider, self.registry)
            self._locators[provider] = locator
        return locator

    def open_session(
        self,
        on_results: Optional[Callable[[List[DeliverabilityResult]], None]] = None,
        recent_selections: Optional[RecentSelectionsRepository] = None,
    ) -> LocationQuerySession:
        """New search session for one input field."""
        return LocationQuerySession(
            geocoder=self.geocoder,
            classifier=self.classifier,
            recent_selections=recent_selections,
            on_results=on_results,
        )
