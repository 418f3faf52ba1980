"""Interfaces of the collaborators consumed by the state controller."""
from __future__ import annotations

from typing import List, Protocol

from .entities import Location, WeatherBundle


class LocationGateway(Protocol):
    """Resolves the device location and searches places by name."""

    async def resolve_current_location(self) -> Location:
        """Return the device location with ``is_current`` set."""
        ...

    async def search(self, query: str) -> List[Location]:
        """Return places matching ``query`` in relevance order."""
        ...


class WeatherGateway(Protocol):
    """A data source capable of returning complete weather bundles."""

    async def fetch_bundle(self, location: Location) -> WeatherBundle:
        """Fetch current conditions and forecasts for ``location``."""
        ...


class SavedLocations(Protocol):
    """Persistent list of the user's saved locations."""

    async def list(self) -> List[Location]:
        ...

    async def add(self, location: Location) -> List[Location]:
        ...

    async def remove(self, location: Location) -> List[Location]:
        ...
