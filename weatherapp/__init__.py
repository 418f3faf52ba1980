"""Client-side weather state: locations, cached weather bundles and gateways."""
from __future__ import annotations

from .cache import BundleCache
from .config import Settings
from .entities import (
    CurrentWeather,
    DailyForecast,
    ForecastView,
    HourlyForecast,
    Location,
    WeatherBundle,
    location_key,
)
from .services.controller import WeatherStateController
from .services.state import StateChanged, WeatherState

__version__ = "0.1.0"

__all__ = [
    "BundleCache",
    "CurrentWeather",
    "DailyForecast",
    "ForecastView",
    "HourlyForecast",
    "Location",
    "Settings",
    "StateChanged",
    "WeatherBundle",
    "WeatherState",
    "WeatherStateController",
    "location_key",
]
