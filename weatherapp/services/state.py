"""Published state snapshots and the queued top-level operations."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

from ..entities import ForecastView, Location, WeatherBundle


@dataclass(frozen=True)
class Initialize:
    pass


@dataclass(frozen=True)
class RefreshAll:
    pass


@dataclass(frozen=True)
class RefreshSelected:
    pass


@dataclass(frozen=True)
class Search:
    query: str


Command = Union[Initialize, RefreshAll, RefreshSelected, Search]


@dataclass(frozen=True)
class WeatherState:
    """Immutable view of the controller state handed to subscribers."""

    current_device_location: Optional[Location] = None
    saved_locations: Tuple[Location, ...] = ()
    selected_location: Optional[Location] = None
    weather: Mapping[str, WeatherBundle] = field(default_factory=lambda: MappingProxyType({}))
    forecast_view: ForecastView = ForecastView.DAILY
    is_busy: bool = False
    last_error: Optional[str] = None
    search_results: Tuple[Location, ...] = ()

    @property
    def selected_weather(self) -> Optional[WeatherBundle]:
        if self.selected_location is None:
            return None
        return self.weather.get(self.selected_location.key)


@dataclass(frozen=True)
class StateChanged:
    state: WeatherState


__all__ = [
    "Command",
    "Initialize",
    "RefreshAll",
    "RefreshSelected",
    "Search",
    "StateChanged",
    "WeatherState",
]
