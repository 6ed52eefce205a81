"""
Device geolocation with a reduced-accuracy fallback.

The flow is a two-step state machine: a high-accuracy attempt, then (for any
failure except a permission refusal) one low-accuracy attempt with a longer
timeout. The final position is assigned to a zone only when it lies within
the auto-assign radius of the nearest centroid. Failures are raised as
``LocationError`` with a message the customer can act on.
"""

import asyncio
import logging
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from config.settings import settings
from delivery.distance import GeoPoint
from delivery.nearest import nearest
from delivery.zones import ZoneRegistry

from .models import LocationOutcome, LocationSource, NotServiceable, ResolvedLocation

# Configure logging for geolocation attempts
logger = logging.getLogger("storefront.geolocation")


class GeolocationErrorCode(str, Enum):
    """User-facing failure categories."""
    PERMISSION_DENIED = "permission-denied"
    POSITION_UNAVAILABLE = "position-unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


ERROR_MESSAGES: Dict[GeolocationErrorCode, str] = {
    GeolocationErrorCode.PERMISSION_DENIED: (
        "Location access was denied. Allow location access in your browser settings, "
        "or type your area instead."
    ),
    GeolocationErrorCode.POSITION_UNAVAILABLE: (
        "We couldn't determine your location. Check that location services are on, "
        "or type your area instead."
    ),
    GeolocationErrorCode.TIMEOUT: (
        "Finding your location took too long. Move somewhere with better signal and try "
        "again, or type your area instead."
    ),
    GeolocationErrorCode.UNKNOWN: (
        "Something went wrong while finding your location. Please try again or type your area."
    ),
}


class PositionUnavailableError(Exception):
    """Raised by a position provider with the platform's error code."""

    def __init__(self, code: GeolocationErrorCode, detail: str = ""):
        self.code = GeolocationErrorCode(code)
        super().__init__(detail or self.code.value)


class LocationError(Exception):
    """A geolocation failure the customer should see."""

    def __init__(self, category: GeolocationErrorCode):
        self.category = category
        self.message = ERROR_MESSAGES[category]
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"category": self.category.value, "message": self.message}


@dataclass(frozen=True)
class DevicePosition:
    """Position reported by the device."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


@dataclass(frozen=True)
class PositionOptions:
    """Options passed to the platform position API."""
    enable_high_accuracy: bool
    timeout: float
    maximum_age: int = 0


class PositionProvider(ABC):
    """Source of device positions (browser bridge, mobile SDK, test fake)."""

    @abstractmethod
    async def get_current_position(self, options: PositionOptions) -> DevicePosition:
        """
        Return the current position or raise ``PositionUnavailableError``.
        """


class GeolocationAttempt(str, Enum):
    HIGH_ACCURACY = "high_accuracy"
    LOW_ACCURACY = "low_accuracy"


def assign_position(
    point: GeoPoint,
    registry: ZoneRegistry,
    auto_assign_radius_km: float,
    accuracy: Optional[float] = None,
) -> LocationOutcome:
    """
    Assign ``point`` to its nearest zone if close enough.

    The auto-assign radius is tighter than the metro radius: assigning a
    zone is a stronger claim than mentioning one as nearby.
    """
    zone, distance = nearest(point, registry.all())

    if zone is not None and distance < auto_assign_radius_km:
        logger.info(f"Device location assigned to {zone.name} ({distance:.2f} km from centroid)")
        return ResolvedLocation(
            zone=zone,
            source=LocationSource.DEVICE_LOCATION,
            point=point,
            distance_km=distance,
            accuracy_m=accuracy,
        )

    logger.info(
        f"Device location not serviceable: nearest zone "
        f"{zone.name if zone else None} at {distance:.2f} km"
    )
    return NotServiceable(
        nearest_zone=zone,
        distance_km=distance,
        source=LocationSource.DEVICE_LOCATION,
        point=point,
    )


class DeviceLocator:
    """
    Runs the geolocation attempts and assigns the resulting position to a zone.

    Platform position requests can't be aborted, so a second call made while
    one is outstanding joins the outstanding request instead of starting
    another. The provider is held weakly so a locator cached per provider
    never keeps that provider alive.
    """

    def __init__(
        self,
        provider: PositionProvider,
        registry: ZoneRegistry,
        auto_assign_radius_km: Optional[float] = None,
        high_accuracy_timeout: Optional[float] = None,
        low_accuracy_timeout: Optional[float] = None,
    ):
        self._provider_ref = weakref.ref(provider)
        self.registry = registry
        self.auto_assign_radius_km = auto_assign_radius_km or settings.auto_assign_radius_km
        self.attempt_options = {
            GeolocationAttempt.HIGH_ACCURACY: PositionOptions(
                enable_high_accuracy=True,
                timeout=high_accuracy_timeout or settings.geolocation_high_accuracy_timeout_s,
            ),
            GeolocationAttempt.LOW_ACCURACY: PositionOptions(
                enable_high_accuracy=False,
                timeout=low_accuracy_timeout or settings.geolocation_low_accuracy_timeout_s,
            ),
        }
        self._in_flight: Optional[asyncio.Future] = None

    @property
    def provider(self) -> Optional[PositionProvider]:
        """The position source, or None once the caller has released it."""
        return self._provider_ref()

    async def locate(self) -> DevicePosition:
        """Current device position, joining any request already in flight."""
        if self._in_flight is None or self._in_flight.done():
            self._in_flight = asyncio.ensure_future(self._run_attempts())
        else:
            logger.debug("Geolocation request already outstanding, joining it")
        return await asyncio.shield(self._in_flight)

    async def resolve(self) -> LocationOutcome:
        """
        Locate the device and decide whether it can be assigned a zone.

        Raises:
            LocationError: When both attempts fail or permission is refused
        """
        position = await self.locate()
        return self.assign(position.point, position.accuracy)

    def assign(self, point: GeoPoint, accuracy: Optional[float] = None) -> LocationOutcome:
        return assign_position(point, self.registry, self.auto_assign_radius_km, accuracy)

    async def _run_attempts(self) -> DevicePosition:
        attempt = GeolocationAttempt.HIGH_ACCURACY

        while True:
            provider = self.provider
            if provider is None:
                logger.warning("Position provider released before geolocation finished")
                raise LocationError(GeolocationErrorCode.UNKNOWN)

            options = self.attempt_options[attempt]
            logger.info(f"Requesting device position ({attempt.value}, timeout {options.timeout}s)")

            try:
                return await asyncio.wait_for(
                    provider.get_current_position(options),
                    timeout=options.timeout
                )
            except PositionUnavailableError as e:
                code = e.code
            except asyncio.TimeoutError:
                code = GeolocationErrorCode.TIMEOUT
            except Exception as e:
                logger.error(f"Position provider failed unexpectedly: {e}", exc_info=True)
                code = GeolocationErrorCode.UNKNOWN

            logger.warning(f"Geolocation {attempt.value} attempt failed: {code.value}")

            if code is GeolocationErrorCode.PERMISSION_DENIED or attempt is GeolocationAttempt.LOW_ACCURACY:
                raise LocationError(code)

            attempt = GeolocationAttempt.LOW_ACCURACY
