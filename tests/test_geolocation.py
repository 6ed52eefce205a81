"""
Test suite for device geolocation.
Covers the high/low accuracy fallback, error categories, single-flight
requests and auto-assignment of zones.
"""

import asyncio
import gc

import pytest

from delivery.zones import DeliveryZone, ZoneRegistry
from delivery.distance import GeoPoint
from location.geolocation import (
    ERROR_MESSAGES,
    DeviceLocator,
    DevicePosition,
    GeolocationErrorCode,
    LocationError,
    PositionUnavailableError,
)
from location.models import LocationSource, NotServiceable, ResolvedLocation

from conftest import offset_north

MUYENGA = GeoPoint(0.2960, 32.6140)


def position_at(point, accuracy=25.0):
    return DevicePosition(latitude=point.lat, longitude=point.lon, accuracy=accuracy)


class TestDeviceLocator:
    """Attempt sequencing and error categorisation."""

    @pytest.fixture
    def muyenga_registry(self):
        return ZoneRegistry([DeliveryZone("Muyenga", 7000, "40-55 mins", MUYENGA)])

    @pytest.fixture
    def make_locator(self, muyenga_registry, position_provider_factory):
        def factory(outcomes, delay=0.0, **locator_kwargs):
            provider = position_provider_factory(outcomes, delay=delay)
            locator = DeviceLocator(provider, muyenga_registry, auto_assign_radius_km=15, **locator_kwargs)
            return locator, provider
        return factory

    @pytest.mark.asyncio
    async def test_high_accuracy_success(self, make_locator):
        locator, provider = make_locator([position_at(MUYENGA)])

        position = await locator.locate()

        assert position.point == MUYENGA
        assert len(provider.calls) == 1
        options = provider.calls[0]
        assert options.enable_high_accuracy is True
        assert options.timeout == 10
        assert options.maximum_age == 0

    @pytest.mark.asyncio
    async def test_permission_denied_is_not_retried(self, make_locator):
        locator, provider = make_locator([
            PositionUnavailableError(GeolocationErrorCode.PERMISSION_DENIED),
        ])

        with pytest.raises(LocationError) as exc_info:
            await locator.resolve()

        assert exc_info.value.category is GeolocationErrorCode.PERMISSION_DENIED
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_retries_once_with_low_accuracy(self, make_locator):
        locator, provider = make_locator([
            PositionUnavailableError(GeolocationErrorCode.TIMEOUT),
            position_at(MUYENGA, accuracy=900.0),
        ])

        outcome = await locator.resolve()

        assert isinstance(outcome, ResolvedLocation)
        assert outcome.accuracy_m == 900.0
        assert len(provider.calls) == 2
        retry = provider.calls[1]
        assert retry.enable_high_accuracy is False
        assert retry.timeout == 15

    @pytest.mark.asyncio
    async def test_both_attempts_fail(self, make_locator):
        locator, provider = make_locator([
            PositionUnavailableError(GeolocationErrorCode.POSITION_UNAVAILABLE),
            PositionUnavailableError(GeolocationErrorCode.TIMEOUT),
        ])

        with pytest.raises(LocationError) as exc_info:
            await locator.resolve()

        assert exc_info.value.category is GeolocationErrorCode.TIMEOUT
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_permission_denied_on_retry(self, make_locator):
        locator, provider = make_locator([
            PositionUnavailableError(GeolocationErrorCode.TIMEOUT),
            PositionUnavailableError(GeolocationErrorCode.PERMISSION_DENIED),
        ])

        with pytest.raises(LocationError) as exc_info:
            await locator.resolve()

        assert exc_info.value.category is GeolocationErrorCode.PERMISSION_DENIED
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_provider_that_never_answers(self, make_locator):
        locator, provider = make_locator(
            [position_at(MUYENGA), position_at(MUYENGA)],
            delay=1.0,
            high_accuracy_timeout=0.01,
            low_accuracy_timeout=0.02,
        )

        with pytest.raises(LocationError) as exc_info:
            await locator.locate()

        assert exc_info.value.category is GeolocationErrorCode.TIMEOUT
        assert [options.timeout for options in provider.calls] == [0.01, 0.02]

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_unknown(self, make_locator):
        locator, _ = make_locator([RuntimeError("bridge crashed"), RuntimeError("bridge crashed")])

        with pytest.raises(LocationError) as exc_info:
            await locator.locate()

        assert exc_info.value.category is GeolocationErrorCode.UNKNOWN
        assert exc_info.value.to_dict()["category"] == "unknown"

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_attempt(self, make_locator):
        locator, provider = make_locator([position_at(MUYENGA)], delay=0.05)

        first, second = await asyncio.gather(locator.resolve(), locator.resolve())

        assert len(provider.calls) == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_released_provider(self, muyenga_registry, position_provider_factory):
        locator = DeviceLocator(position_provider_factory([position_at(MUYENGA)]), muyenga_registry)
        gc.collect()

        assert locator.provider is None
        with pytest.raises(LocationError) as exc_info:
            await locator.locate()

        assert exc_info.value.category is GeolocationErrorCode.UNKNOWN

    @pytest.mark.asyncio
    async def test_new_request_after_completion(self, make_locator):
        locator, provider = make_locator([position_at(MUYENGA), position_at(MUYENGA)])

        await locator.locate()
        await locator.locate()

        assert len(provider.calls) == 2


class TestZoneAssignment:

    @pytest.fixture
    def locator(self, position_provider_factory):
        registry = ZoneRegistry([DeliveryZone("Muyenga", 7000, "40-55 mins", MUYENGA)])
        return DeviceLocator(position_provider_factory([]), registry, auto_assign_radius_km=15)

    def test_within_radius_is_assigned(self, locator):
        outcome = locator.assign(offset_north(MUYENGA, 10.0))

        assert isinstance(outcome, ResolvedLocation)
        assert outcome.zone.name == "Muyenga"
        assert outcome.source is LocationSource.DEVICE_LOCATION
        assert outcome.distance_km == pytest.approx(10.0)

    def test_beyond_radius_is_not_serviceable(self, locator):
        outcome = locator.assign(offset_north(MUYENGA, 20.0))

        assert isinstance(outcome, NotServiceable)
        assert outcome.nearest_zone.name == "Muyenga"
        assert outcome.distance_km == pytest.approx(20.0)
        assert not outcome.is_serviceable

    def test_just_beyond_radius(self, locator):
        assert isinstance(locator.assign(offset_north(MUYENGA, 15.05)), NotServiceable)
        assert isinstance(locator.assign(offset_north(MUYENGA, 14.95)), ResolvedLocation)

    def test_no_zone_with_centroid(self, position_provider_factory):
        registry = ZoneRegistry([DeliveryZone("Kyaliwajjala", 9000, "50-70 mins")])
        locator = DeviceLocator(position_provider_factory([]), registry)

        outcome = locator.assign(MUYENGA)

        assert isinstance(outcome, NotServiceable)
        assert outcome.nearest_zone is None
        assert outcome.to_dict()["distance_km"] is None


class TestErrorMessages:

    def test_each_category_has_its_own_message(self):
        assert set(ERROR_MESSAGES) == set(GeolocationErrorCode)
        assert len(set(ERROR_MESSAGES.values())) == len(GeolocationErrorCode)

    def test_location_error_carries_message(self):
        error = LocationError(GeolocationErrorCode.PERMISSION_DENIED)

        assert error.message == ERROR_MESSAGES[GeolocationErrorCode.PERMISSION_DENIED]
        assert str(error) == error.message
