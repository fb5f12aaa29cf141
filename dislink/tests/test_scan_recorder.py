"""Tests for the scan recorder and reverse geocoding."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import pytest_asyncio

from dislink.models.scan_event import ScanContext
from dislink.repos.scan_event_repo import ScanEventRepo
from dislink.services.code_registry import CodeRegistry
from dislink.services.geocoding import NominatimGeocoder, _place_name
from dislink.services.scan_recorder import ScanRecorder

pytestmark = pytest.mark.asyncio(loop_scope="session")


class StubGeocoder:
    def __init__(self, place=None, delay=0.0, error=None):
        self.place = place
        self.delay = delay
        self.error = error
        self.calls = []

    async def reverse(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.place


@pytest_asyncio.fixture(loop_scope="session")
async def code(owner_id):
    return await CodeRegistry().issue(owner_id)


async def test_record_without_location_skips_geocoding(code):
    geocoder = StubGeocoder(place="Nowhere")
    recorder = ScanRecorder(geocoder=geocoder)

    event_id = await recorder.record(code, ScanContext(referrer="https://t.co/x", client_fingerprint="fp"))
    await recorder.drain()

    event = await ScanEventRepo().get(event_id)
    assert event.code_id == code.id
    assert event.location is None
    assert event.referrer == "https://t.co/x"
    assert event.client_fingerprint == "fp"
    assert geocoder.calls == []


async def test_record_attaches_place_name(code):
    geocoder = StubGeocoder(place="Lisbon, Portugal")
    recorder = ScanRecorder(geocoder=geocoder)

    event_id = await recorder.record(code, ScanContext(latitude=38.72, longitude=-9.14))
    await recorder.drain()

    event = await ScanEventRepo().get(event_id)
    assert event.location.latitude == 38.72
    assert event.location.place_name == "Lisbon, Portugal"


async def test_record_returns_before_geocoding_finishes(code):
    geocoder = StubGeocoder(place="Slowtown", delay=0.05)
    recorder = ScanRecorder(geocoder=geocoder, geocode_timeout=1.0)

    event_id = await recorder.record(code, ScanContext(latitude=1.0, longitude=2.0))

    event = await ScanEventRepo().get(event_id)
    assert event.location.place_name is None
    await recorder.drain()
    event = await ScanEventRepo().get(event_id)
    assert event.location.place_name == "Slowtown"


async def test_geocoding_timeout_keeps_coordinates(code):
    geocoder = StubGeocoder(place="Too late", delay=0.2)
    recorder = ScanRecorder(geocoder=geocoder, geocode_timeout=0.01)

    event_id = await recorder.record(code, ScanContext(latitude=1.0, longitude=2.0))
    await recorder.drain()

    event = await ScanEventRepo().get(event_id)
    assert event.location.latitude == 1.0
    assert event.location.longitude == 2.0
    assert event.location.place_name is None


async def test_geocoding_failure_is_swallowed(code):
    recorder = ScanRecorder(geocoder=StubGeocoder(error=RuntimeError("boom")))

    event_id = await recorder.record(code, ScanContext(latitude=1.0, longitude=2.0))
    await recorder.drain()

    assert (await ScanEventRepo().get(event_id)).location.place_name is None


async def test_place_name_attached_only_once(code):
    repo = ScanEventRepo()
    recorder = ScanRecorder(events=repo, geocoder=StubGeocoder())
    event_id = await recorder.record(code, ScanContext(latitude=1.0, longitude=2.0))
    event = await repo.get(event_id)

    assert await repo.attach_place_name(event, "First") is True
    assert await repo.attach_place_name(event, "Second") is False
    assert (await repo.get(event_id)).location.place_name == "First"


async def test_place_name_formats():
    assert _place_name({"address": {"city": "Lisbon", "country": "Portugal"}}) == "Lisbon, Portugal"
    assert _place_name({"address": {"village": "Óbidos", "country": "Portugal"}}) == "Óbidos, Portugal"
    assert _place_name({"display_name": "Somewhere at sea"}) == "Somewhere at sea"
    assert _place_name({}) is None


async def test_nominatim_client_parses_response():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/reverse"
        assert request.url.params["lat"] == "38.72"
        return httpx.Response(200, json={"address": {"town": "Sintra", "country": "Portugal"}})

    transport = httpx.MockTransport(handler)
    original = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return original(*args, transport=transport, **kwargs)

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(httpx, "AsyncClient", client_factory)
        place = await NominatimGeocoder(base_url="http://nominatim.test").reverse(38.72, -9.14)

    assert place == "Sintra, Portugal"


async def test_nominatim_client_error_returns_none():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    original = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return original(*args, transport=transport, **kwargs)

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(httpx, "AsyncClient", client_factory)
        place = await NominatimGeocoder(base_url="http://nominatim.test").reverse(1.0, 2.0)

    assert place is None
