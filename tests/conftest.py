"""
Shared fixtures for the location engine test suite.
Provides a small Kampala zone registry and fakes for the place-search HTTP
session and the device position provider.
"""

import asyncio
import math

import pytest

from delivery.classifier import DeliverabilityClassifier
from delivery.distance import GeoPoint
from delivery.zones import ZoneRegistry
from location.geolocation import PositionProvider

KAMPALA_CENTER = GeoPoint(0.3476, 32.5825)

ZONE_DATA = {
    "version": "test-1",
    "zones": [
        {"name": "Kololo", "fee": 5000, "estimated_time": "30-45 mins", "coordinates": [0.3300, 32.5950]},
        {"name": "Nakawa", "fee": 5000, "estimated_time": "30-45 mins", "coordinates": [0.3310, 32.6160]},
        {"name": "Muyenga", "fee": 7000, "estimated_time": "40-55 mins", "coordinates": [0.2960, 32.6140]},
        {"name": "Kyaliwajjala", "fee": 9000, "estimated_time": "50-70 mins"},
    ],
    "aliases": {
        "Kololo": ["Kisementi", "kololo hill"],
        "Muyenga": ["tank hill"],
    },
}


def offset_north(point: GeoPoint, km: float) -> GeoPoint:
    """Point ``km`` due north of ``point``; haversine distance back is exactly ``km``."""
    return GeoPoint(point.lat + math.degrees(km / 6371.0), point.lon)


def offset_east(point: GeoPoint, km: float) -> GeoPoint:
    return GeoPoint(point.lat, point.lon + math.degrees(km / (6371.0 * math.cos(math.radians(point.lat)))))


def photon_feature(name=None, lat=0.3300, lon=32.5950, country="Uganda", **properties):
    """Photon GeoJSON feature; coordinates are ``[lon, lat]``."""
    props = {"country": country, "osm_value": "suburb"}
    if name is not None:
        props["name"] = name
    props.update(properties)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": props,
    }


class FakeResponse:
    def __init__(self, status=200, payload=None, json_error=None):
        self.status = status
        self.payload = payload
        self.json_error = json_error

    async def json(self, content_type="application/json"):
        if self.json_error is not None:
            raise self.json_error
        return self.payload


class FakeRequest:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        if self.session.delay:
            await asyncio.sleep(self.session.delay)
        if self.session.error is not None:
            raise self.session.error
        return self.session.response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeHTTPSession:
    """Stands in for ``aiohttp.ClientSession``; records every GET."""

    def __init__(self, features=None, status=200, payload=None, json_error=None, error=None, delay=0.0):
        if payload is None:
            payload = {"type": "FeatureCollection", "features": list(features or [])}
        self.response = FakeResponse(status=status, payload=payload, json_error=json_error)
        self.error = error
        self.delay = delay
        self.calls = []

    def get(self, url, params=None):
        self.calls.append({"url": url, "params": dict(params or {})})
        return FakeRequest(self)


class FakePositionProvider(PositionProvider):
    """Returns (or raises) scripted outcomes in order and records the options used."""

    def __init__(self, outcomes, delay=0.0):
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls = []

    async def get_current_position(self, options):
        self.calls.append(options)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def registry():
    """Four-zone registry; Kyaliwajjala has no centroid."""
    return ZoneRegistry.from_dict(ZONE_DATA)


@pytest.fixture
def classifier(registry):
    return DeliverabilityClassifier(registry, metro_center=KAMPALA_CENTER, metro_radius_km=25)


@pytest.fixture
def http_session_factory():
    return FakeHTTPSession


@pytest.fixture
def position_provider_factory():
    return FakePositionProvider
