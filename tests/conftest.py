from __future__ import annotations

import pytest

from weatherapp.cache import BundleCache
from weatherapp.services.controller import WeatherStateController

from tests.fakes import (
    LONDON,
    FakeLocationGateway,
    FakeLocationStore,
    FakeWeatherGateway,
    TimeController,
)


@pytest.fixture
def clock() -> TimeController:
    return TimeController()


@pytest.fixture
def location_gateway() -> FakeLocationGateway:
    return FakeLocationGateway(LONDON)


@pytest.fixture
def weather_gateway() -> FakeWeatherGateway:
    return FakeWeatherGateway()


@pytest.fixture
def store() -> FakeLocationStore:
    return FakeLocationStore()


@pytest.fixture
def controller(location_gateway, weather_gateway, store, clock) -> WeatherStateController:
    cache = BundleCache(ttl=15 * 60, time_func=clock)
    return WeatherStateController(location_gateway, weather_gateway, store, cache=cache)
