"""
Place-search client for free-text delivery locations.

Queries the Photon (OpenStreetMap) API, keeps results inside the service
country, builds short display names and classifies every candidate against
the delivery zones. Provider failures never reach the customer: they
degrade to an empty suggestion list.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp

from config.settings import settings
from config.logging_config import get_logger, log_geocoder_request
from delivery.classifier import DeliverabilityClassifier, DeliverabilityResult, PlaceCandidate
from delivery.distance import GeoPoint

# Configure logging
logger = get_logger("storefront.geocoder")

DISPLAY_NAME_FIELDS = ("name", "locality", "district", "city", "county")
MAX_DISPLAY_PARTS = 3


class GeocoderError(Exception):
    """Non-2xx status or a response body that is not a Photon feature collection."""


class GeocodeStatus(str, Enum):
    """Outcome of a single place-search lookup."""
    OK = "ok"
    EMPTY = "empty"
    SKIPPED = "skipped"  # query too short, no request made
    STALE = "stale"  # cancelled because newer input arrived
    ERROR = "error"


@dataclass
class GeocodeResponse:
    """Classified results plus how they were obtained."""
    query: str
    status: GeocodeStatus
    results: List[DeliverabilityResult] = field(default_factory=list)

    @property
    def is_stale(self) -> bool:
        return self.status is GeocodeStatus.STALE


class CancelToken:
    """Signals that a lookup's result is no longer wanted."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


def build_display_name(properties: Dict[str, Any]) -> str:
    """
    Join up to three distinct, non-blank address parts.

    Args:
        properties (dict): Photon feature properties

    Returns:
        str: e.g. ``"Kololo Hill, Kololo, Kampala"``
    """
    parts: List[str] = []
    for key in DISPLAY_NAME_FIELDS:
        value = properties.get(key)
        if not isinstance(value, str):
            continue
        value = value.strip()
        if value and value not in parts:
            parts.append(value)
    return ", ".join(parts[:MAX_DISPLAY_PARTS])


def _discard(task: "asyncio.Future") -> None:
    """Cancel a pending task, or consume the outcome of a finished one."""
    if not task.done():
        task.cancel()
    elif not task.cancelled():
        task.exception()


class PhotonGeocoder:
    """
    Photon place-search client.

    Each lookup makes at most one HTTP request. The request can be aborted
    through a ``CancelToken``; an aborted lookup resolves to an empty,
    ``STALE`` response so callers can tell it apart from a genuine miss.
    """

    def __init__(
        self,
        classifier: DeliverabilityClassifier,
        http_session: Optional[aiohttp.ClientSession] = None,
        api_url: Optional[str] = None,
    ):
        """Initialize the client from application settings."""
        self.classifier = classifier
        self._session = http_session

        self.api_url = api_url or settings.photon_api_url
        self.result_limit = settings.geocoder_result_limit
        self.language = settings.geocoder_language
        self.country = settings.service_country
        self.min_query_length = settings.min_query_length
        self.timeout_seconds = settings.geocoder_timeout_seconds
        self.bias_center = GeoPoint(settings.city_center_lat, settings.city_center_lon)

        logger.info(f"PhotonGeocoder initialized for {self.country} using {self.api_url}")

    async def search(self, query: str, cancel_token: Optional[CancelToken] = None) -> List[DeliverabilityResult]:
        """Classified suggestions for ``query``; empty on any failure."""
        response = await self.lookup(query, cancel_token)
        return response.results

    async def lookup(self, query: str, cancel_token: Optional[CancelToken] = None) -> GeocodeResponse:
        """
        Search the provider and classify the results.

        Args:
            query (str): Free text typed by the customer
            cancel_token (CancelToken): Aborts the request when cancelled

        Returns:
            GeocodeResponse: Results and lookup status
        """
        trimmed = (query or "").strip()
        if len(trimmed) < self.min_query_length:
            return GeocodeResponse(query=trimmed, status=GeocodeStatus.SKIPPED)

        token = cancel_token or CancelToken()
        if token.cancelled:
            return GeocodeResponse(query=trimmed, status=GeocodeStatus.STALE)

        fetch = asyncio.ensure_future(self._fetch_features(trimmed))
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {fetch, cancelled},
                timeout=self.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            _discard(cancelled)
            if not fetch.done():
                fetch.cancel()

        if token.cancelled:
            _discard(fetch)
            logger.debug(f"Place search for '{trimmed}' cancelled by newer input")
            log_geocoder_request(trimmed, GeocodeStatus.STALE.value, 0, level='DEBUG')
            return GeocodeResponse(query=trimmed, status=GeocodeStatus.STALE)

        if fetch not in done:
            logger.warning(f"Place search for '{trimmed}' timed out after {self.timeout_seconds}s")
            log_geocoder_request(trimmed, GeocodeStatus.ERROR.value, 0, {"reason": "timeout"}, level='WARNING')
            return GeocodeResponse(query=trimmed, status=GeocodeStatus.ERROR)

        try:
            features = fetch.result()
        except GeocoderError as e:
            logger.warning(f"Place search provider error for '{trimmed}': {e}")
            log_geocoder_request(trimmed, GeocodeStatus.ERROR.value, 0, {"reason": str(e)}, level='WARNING')
            return GeocodeResponse(query=trimmed, status=GeocodeStatus.ERROR)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Network error during place search for '{trimmed}': {e!r}")
            log_geocoder_request(trimmed, GeocodeStatus.ERROR.value, 0, {"reason": repr(e)}, level='WARNING')
            return GeocodeResponse(query=trimmed, status=GeocodeStatus.ERROR)
        except Exception as e:
            logger.error(f"Unexpected error during place search for '{trimmed}': {e}", exc_info=True)
            return GeocodeResponse(query=trimmed, status=GeocodeStatus.ERROR)

        candidates = self._parse_features(features)
        results = [self.classifier.classify(candidate) for candidate in candidates]

        status = GeocodeStatus.OK if results else GeocodeStatus.EMPTY
        log_geocoder_request(trimmed, status.value, len(results), {
            "provider_features": len(features),
            "deliverable": sum(1 for r in results if r.is_deliverable)
        })
        return GeocodeResponse(query=trimmed, status=status, results=results)

    async def _fetch_features(self, query: str) -> List[Dict[str, Any]]:
        """
        Perform the HTTP request and return the raw feature list.

        Raises:
            GeocoderError: Non-2xx status or malformed body
            aiohttp.ClientError: Transport failure
        """
        params = {
            "q": query,
            "limit": str(self.result_limit),
            "lat": str(self.bias_center.lat),
            "lon": str(self.bias_center.lon),
            "lang": self.language,
        }

        if self._session is not None:
            return await self._request(self._session, params)

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            return await self._request(session, params)

    async def _request(self, session: aiohttp.ClientSession, params: Dict[str, str]) -> List[Dict[str, Any]]:
        async with session.get(self.api_url, params=params) as response:
            if not 200 <= response.status < 300:
                raise GeocoderError(f"Place search API returned status {response.status}")
            try:
                data = await response.json(content_type=None)
            except (aiohttp.ContentTypeError, json.JSONDecodeError, ValueError) as e:
                raise GeocoderError(f"Place search API returned malformed JSON: {e}") from e

        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            raise GeocoderError("Place search API response has no feature list")
        return features

    def _parse_features(self, features: List[Dict[str, Any]]) -> List[PlaceCandidate]:
        """
        Turn provider features into candidates for the service country.

        Malformed features are skipped one by one; duplicates by display name
        keep the first occurrence.
        """
        candidates: List[PlaceCandidate] = []
        seen_display_names = set()

        for feature in features:
            try:
                props = feature.get("properties") or {}
                if props.get("country") != self.country:
                    continue

                lon, lat = feature["geometry"]["coordinates"][:2]
                point = GeoPoint(float(lat), float(lon))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed place feature: {e!r}")
                continue

            display_name = build_display_name(props)
            raw_name = props.get("name") if isinstance(props.get("name"), str) else ""
            name = raw_name.strip() or display_name
            display_name = display_name or name

            if not display_name or display_name in seen_display_names:
                continue
            seen_display_names.add(display_name)

            candidates.append(PlaceCandidate(
                name=name,
                display_name=display_name,
                point=point,
                place_type=props.get("osm_value") or props.get("type") or "place",
                country=props.get("country"),
            ))

        return candidates


# Export main components
__all__ = [
    "PhotonGeocoder", "GeocodeResponse", "GeocodeStatus", "GeocoderError",
    "CancelToken", "build_display_name", "PlaceCandidate"
]
