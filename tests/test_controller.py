from __future__ import annotations

import asyncio

import pytest

from weatherapp.entities import ForecastView, Location
from weatherapp.providers.base import LocationPermissionDenied, SearchFailed
from weatherapp.services.state import RefreshAll, Search

from tests.fakes import LONDON, OSLO, PARIS


CAMDEN = Location(name="Camden", latitude=51.5390, longitude=-0.1426, is_current=True)


async def wait_for_resolution(location_gateway, calls: int = 1) -> None:
    while location_gateway.resolve_calls < calls:
        await asyncio.sleep(0)


@pytest.fixture
def events(controller):
    received = []
    controller.subscribe(received.append)
    return received


@pytest.mark.asyncio
async def test_initialize_selects_device_location(controller, weather_gateway, events):
    await controller.initialize()

    assert controller.current_device_location == LONDON
    assert controller.selected_location == LONDON
    assert controller.selected_weather.location == LONDON
    assert controller.is_busy is False
    assert controller.last_error is None
    assert weather_gateway.calls == [LONDON.key]
    assert events[-1].state.selected_weather is not None
    assert events[-1].state.is_busy is False


@pytest.mark.asyncio
async def test_initialize_fetches_saved_locations_in_background(controller, weather_gateway, store):
    store.locations = [PARIS, OSLO]

    await controller.initialize()
    await controller.drain()

    assert controller.saved_locations == [PARIS, OSLO]
    assert set(controller.weather_by_key) == {LONDON.key, PARIS.key, OSLO.key}
    assert sorted(weather_gateway.calls) == sorted([LONDON.key, PARIS.key, OSLO.key])


@pytest.mark.asyncio
async def test_cached_bundles_are_reused_until_stale(controller, weather_gateway, clock):
    await controller.initialize()
    await controller.initialize()

    assert weather_gateway.calls_for(LONDON) == 1

    clock.advance(14 * 60 + 59)
    await controller.initialize()

    assert weather_gateway.calls_for(LONDON) == 1

    clock.advance(2)
    await controller.initialize()

    assert weather_gateway.calls_for(LONDON) == 2


@pytest.mark.asyncio
async def test_operations_queue_behind_running_one(controller, location_gateway, weather_gateway):
    location_gateway.gate = asyncio.Event()
    running = asyncio.create_task(controller.initialize())
    await wait_for_resolution(location_gateway)

    await controller.refresh_all()
    await controller.refresh_all()
    await controller.search("Paris")

    assert controller.pending_operations == [RefreshAll(), Search("Paris")]
    assert location_gateway.resolve_calls == 1
    assert location_gateway.queries == []
    assert weather_gateway.calls == []

    location_gateway.gate.set()
    await running
    await controller.drain()

    assert controller.pending_operations == []
    assert location_gateway.resolve_calls == 2
    assert location_gateway.queries == ["Paris"]
    assert weather_gateway.calls_for(LONDON) == 2
    assert controller.is_busy is False


@pytest.mark.asyncio
async def test_queued_command_runs_before_later_callers(controller, location_gateway):
    location_gateway.gate = asyncio.Event()
    running = asyncio.create_task(controller.initialize())
    await wait_for_resolution(location_gateway)
    await controller.refresh_all()

    location_gateway.gate.set()
    await running
    await controller.search("Paris")
    await controller.drain()

    assert location_gateway.log == ["resolve", "resolve", "search"]
    assert controller.pending_operations == []


@pytest.mark.asyncio
async def test_initialize_failure_sets_last_error(controller, location_gateway, events):
    location_gateway.error = LocationPermissionDenied("Location permissions are denied")

    await controller.initialize()

    assert controller.last_error == "Failed to initialize weather data: Location permissions are denied"
    assert controller.is_busy is False
    assert controller.selected_location is None
    assert events[-1].state.last_error == controller.last_error


@pytest.mark.asyncio
async def test_primary_fetch_failure_still_fetches_others(controller, weather_gateway, store):
    store.locations = [PARIS]
    weather_gateway.failing = {LONDON.key}

    await controller.initialize()
    await controller.drain()

    assert controller.last_error.startswith("Failed to initialize weather data:")
    assert PARIS.key in controller.weather_by_key
    assert controller.selected_weather is None


@pytest.mark.asyncio
async def test_background_failure_is_not_reported(controller, weather_gateway, store):
    store.locations = [PARIS, OSLO]
    weather_gateway.failing = {PARIS.key}

    await controller.initialize()
    await controller.drain()

    assert controller.last_error is None
    assert PARIS.key not in controller.weather_by_key
    assert OSLO.key in controller.weather_by_key


@pytest.mark.asyncio
async def test_fetch_weather_data_never_raises(controller, weather_gateway):
    weather_gateway.failing = {OSLO.key}

    await controller.fetch_weather_data(OSLO)

    assert OSLO.key not in controller.weather_by_key
    assert controller.last_error is None


@pytest.mark.asyncio
async def test_select_location_fetches_when_stale(controller, weather_gateway, store, events):
    store.locations = [PARIS]
    weather_gateway.failing = {PARIS.key}
    await controller.initialize()
    await controller.drain()
    weather_gateway.failing = set()

    controller.select_location(PARIS)

    assert events[-1].state.selected_location == PARIS
    await controller.drain()
    assert controller.selected_weather.location == PARIS
    assert weather_gateway.calls_for(PARIS) == 2


@pytest.mark.asyncio
async def test_select_location_uses_fresh_cache(controller, weather_gateway, store):
    store.locations = [PARIS]
    await controller.initialize()
    await controller.drain()

    controller.select_location(PARIS)
    await controller.drain()

    assert weather_gateway.calls_for(PARIS) == 1
    assert controller.selected_weather.location == PARIS


@pytest.mark.asyncio
async def test_add_location_saves_and_fetches(controller, weather_gateway, store):
    await controller.initialize()

    await controller.add_location(OSLO)

    assert controller.saved_locations == [OSLO]
    assert store.locations == [OSLO]
    assert OSLO.key in controller.weather_by_key


@pytest.mark.asyncio
async def test_add_duplicate_location_is_a_no_op(controller, weather_gateway, store):
    store.locations = [PARIS]
    await controller.initialize()
    await controller.drain()

    await controller.add_location(Location(name="Paris, France", latitude=PARIS.latitude, longitude=PARIS.longitude))

    assert controller.saved_locations == [PARIS]
    assert weather_gateway.calls_for(PARIS) == 1


@pytest.mark.asyncio
async def test_add_location_failure(controller, store):
    store.error = OSError("disk full")

    await controller.add_location(OSLO)

    assert controller.last_error == "Failed to add location: disk full"


@pytest.mark.asyncio
async def test_remove_selected_location(controller, store):
    store.locations = [PARIS, OSLO]
    await controller.initialize()
    await controller.drain()
    controller.select_location(PARIS)

    await controller.remove_location(PARIS)

    assert controller.saved_locations == [OSLO]
    assert PARIS.key not in controller.weather_by_key
    assert controller.selected_location == LONDON


@pytest.mark.asyncio
async def test_remove_other_location_keeps_selection(controller, store):
    store.locations = [PARIS, OSLO]
    await controller.initialize()
    await controller.drain()

    await controller.remove_location(OSLO)

    assert controller.saved_locations == [PARIS]
    assert controller.selected_location == LONDON
    assert OSLO.key not in controller.weather_by_key


@pytest.mark.asyncio
async def test_remove_location_failure(controller, store):
    await controller.initialize()
    store.error = OSError("read-only")

    await controller.remove_location(PARIS)

    assert controller.last_error == "Failed to remove location: read-only"


@pytest.mark.asyncio
async def test_refresh_all_refetches_everything(controller, weather_gateway, store, events):
    store.locations = [PARIS]
    await controller.initialize()
    await controller.drain()

    await controller.refresh_all()
    await controller.drain()

    assert weather_gateway.calls_for(LONDON) == 2
    assert weather_gateway.calls_for(PARIS) == 2
    assert any(event.state.is_busy for event in events)
    assert controller.is_busy is False


@pytest.mark.asyncio
async def test_refresh_all_follows_the_device(controller, location_gateway, weather_gateway):
    await controller.initialize()
    location_gateway.current = CAMDEN

    await controller.refresh_all()
    await controller.drain()

    assert controller.current_device_location == CAMDEN
    assert controller.selected_location == CAMDEN
    assert controller.selected_weather.location == CAMDEN


@pytest.mark.asyncio
async def test_refresh_all_keeps_device_location_when_resolution_fails(controller, location_gateway):
    await controller.initialize()
    location_gateway.error = LocationPermissionDenied("Location permissions are denied")

    await controller.refresh_all()

    assert controller.current_device_location == LONDON
    assert controller.last_error is None


@pytest.mark.asyncio
async def test_refresh_all_reports_selected_failure(controller, weather_gateway):
    await controller.initialize()
    weather_gateway.failing = {LONDON.key}

    await controller.refresh_all()

    assert controller.last_error.startswith("Failed to refresh weather data:")
    assert controller.selected_weather is not None


@pytest.mark.asyncio
async def test_refresh_selected_without_selection(controller, location_gateway, weather_gateway):
    await controller.refresh_selected()

    assert location_gateway.resolve_calls == 0
    assert weather_gateway.calls == []


@pytest.mark.asyncio
async def test_refresh_selected_only_refetches_selection(controller, weather_gateway, store):
    store.locations = [PARIS, OSLO]
    await controller.initialize()
    await controller.drain()
    controller.select_location(PARIS)

    await controller.refresh_selected()
    await controller.drain()

    assert weather_gateway.calls_for(PARIS) == 2
    assert weather_gateway.calls_for(LONDON) == 1
    assert weather_gateway.calls_for(OSLO) == 1


@pytest.mark.asyncio
async def test_refresh_selected_when_device_resolution_fails(controller, location_gateway, weather_gateway, store):
    store.locations = [PARIS]
    await controller.initialize()
    await controller.drain()
    controller.select_location(PARIS)
    location_gateway.error = LocationPermissionDenied("Location permissions are denied")

    await controller.refresh_selected()

    assert weather_gateway.calls_for(PARIS) == 2
    assert weather_gateway.calls_for(LONDON) == 1
    assert controller.current_device_location == LONDON
    assert controller.last_error is None


@pytest.mark.asyncio
async def test_refresh_selected_moves_current_selection(controller, location_gateway, weather_gateway):
    await controller.initialize()
    location_gateway.current = CAMDEN

    await controller.refresh_selected()

    assert controller.current_device_location == CAMDEN
    assert controller.selected_location == CAMDEN
    assert weather_gateway.calls_for(CAMDEN) == 1


@pytest.mark.asyncio
async def test_refresh_selected_fetches_moved_device_in_background(controller, location_gateway, weather_gateway, store):
    store.locations = [PARIS]
    await controller.initialize()
    await controller.drain()
    controller.select_location(PARIS)
    location_gateway.current = CAMDEN

    await controller.refresh_selected()
    await controller.drain()

    assert controller.selected_location == PARIS
    assert controller.current_device_location == CAMDEN
    assert weather_gateway.calls_for(PARIS) == 2
    assert CAMDEN.key in controller.weather_by_key


@pytest.mark.asyncio
async def test_search_results(controller, location_gateway):
    location_gateway.results = [PARIS]

    await controller.search("Paris")

    assert controller.search_results == [PARIS]
    assert controller.last_error is None

    controller.clear_search_results()
    assert controller.search_results == []


@pytest.mark.asyncio
async def test_blank_search_skips_gateway(controller, location_gateway):
    location_gateway.results = [PARIS]

    await controller.search("   ")

    assert controller.search_results == []
    assert location_gateway.queries == []


@pytest.mark.asyncio
async def test_search_failure(controller, location_gateway):
    location_gateway.results = [PARIS]
    await controller.search("Paris")
    location_gateway.search_error = SearchFailed("Failed to perform geocoding search: HTTP 500")

    await controller.search("Paris")

    assert controller.search_results == []
    assert controller.last_error == "Failed to search locations: Failed to perform geocoding search: HTTP 500"


def test_toggle_forecast_view(controller, events):
    assert controller.forecast_view is ForecastView.DAILY

    controller.toggle_forecast_view()

    assert controller.forecast_view is ForecastView.HOURLY
    assert events[-1].state.forecast_view is ForecastView.HOURLY


def test_unsubscribe_and_broken_listener(controller):
    received = []

    def broken(event):
        raise RuntimeError("listener bug")

    controller.subscribe(broken)
    unsubscribe = controller.subscribe(received.append)

    controller.toggle_forecast_view()
    unsubscribe()
    controller.toggle_forecast_view()

    assert len(received) == 1


def test_snapshot_is_read_only(controller):
    state = controller.snapshot()

    with pytest.raises(TypeError):
        state.weather["x"] = None
