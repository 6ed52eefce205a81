"""
Tests for the location service facade.
"""

import gc

import pytest

from database.recent_selections import InMemoryRecentSelections
from location.geocoder import PhotonGeocoder
from location.geolocation import DevicePosition, GeolocationErrorCode, LocationError, PositionUnavailableError
from location.models import LocationSource, NotServiceable, ResolvedLocation
from location.service import LocationService
from location.session import LocationQuerySession

from conftest import photon_feature


class TestLocationService:

    @pytest.fixture
    def http_session(self, http_session_factory):
        return http_session_factory(features=[
            photon_feature("Kololo Hill", 0.3310, 32.5930, city="Kampala"),
        ])

    @pytest.fixture
    def service(self, registry, http_session):
        service = LocationService(registry=registry)
        service.geocoder = PhotonGeocoder(service.classifier, http_session=http_session)
        return service

    @pytest.mark.asyncio
    async def test_resolve_free_text(self, service):
        results = await service.resolve_free_text("Kololo")

        assert [r.candidate.display_name for r in results] == ["Kololo", "Kololo Hill, Kampala"]

    @pytest.mark.asyncio
    async def test_resolve_free_text_short_query(self, service, http_session):
        assert await service.resolve_free_text("K") == []
        assert http_session.calls == []

    def test_resolve_typed(self, service):
        recent = InMemoryRecentSelections()

        outcome = service.resolve_typed("kisementi", recent)

        assert isinstance(outcome, ResolvedLocation)
        assert outcome.zone.name == "Kololo"
        assert outcome.source is LocationSource.TYPED
        assert recent.get() == ["Kololo"]

    def test_resolve_typed_unknown(self, service):
        outcome = service.resolve_typed("Entebbe")

        assert isinstance(outcome, NotServiceable)
        assert outcome.source is LocationSource.TYPED

    def test_classify_position(self, service, registry):
        centroid = registry.require("Nakawa").centroid

        outcome = service.classify_position(centroid.lat, centroid.lon, 30.0)

        assert outcome.zone.name == "Nakawa"
        assert outcome.to_dict()["serviceable"] is True

    @pytest.mark.asyncio
    async def test_resolve_device_location_records_recent(self, service, registry, position_provider_factory):
        centroid = registry.require("Muyenga").centroid
        provider = position_provider_factory([DevicePosition(centroid.lat, centroid.lon, 12.0)])
        recent = InMemoryRecentSelections()

        outcome = await service.resolve_device_location(provider, recent)

        assert outcome.zone.name == "Muyenga"
        assert recent.get() == ["Muyenga"]

    @pytest.mark.asyncio
    async def test_resolve_device_location_error(self, service, position_provider_factory):
        provider = position_provider_factory([
            PositionUnavailableError(GeolocationErrorCode.PERMISSION_DENIED),
        ])

        with pytest.raises(LocationError):
            await service.resolve_device_location(provider)

    def test_one_locator_per_provider(self, service, position_provider_factory):
        provider = position_provider_factory([])
        assert service.device_locator(provider) is service.device_locator(provider)

    def test_locators_released_with_their_providers(self, service, position_provider_factory):
        kept = position_provider_factory([])
        service.device_locator(kept)
        for _ in range(100):
            service.device_locator(position_provider_factory([]))

        gc.collect()

        assert len(service._locators) == 1
        assert service.device_locator(kept).provider is kept

    def test_open_session(self, service):
        session = service.open_session()

        assert isinstance(session, LocationQuerySession)
        assert session.geocoder is service.geocoder
