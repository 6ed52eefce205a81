"""
Location resolution package for the storefront.

Contains the place-search client, the debounced search session, device
geolocation and the ``LocationService`` facade.
"""

from .models import LocationSource, ResolvedLocation, NotServiceable
from .geocoder import PhotonGeocoder, GeocodeResponse, GeocodeStatus, CancelToken
from .geolocation import (
    DeviceLocator, DevicePosition, LocationError, PositionOptions,
    PositionProvider, PositionUnavailableError, GeolocationErrorCode
)
from .session import LocationQuerySession, SessionState
from .service import LocationService

# Package metadata
__version__ = "1.0.0"

__all__ = [
    "LocationSource",
    "ResolvedLocation",
    "NotServiceable",
    "PhotonGeocoder",
    "GeocodeResponse",
    "GeocodeStatus",
    "CancelToken",
    "DeviceLocator",
    "DevicePosition",
    "LocationError",
    "PositionOptions",
    "PositionProvider",
    "PositionUnavailableError",
    "GeolocationErrorCode",
    "LocationQuerySession",
    "SessionState",
    "LocationService"
]
