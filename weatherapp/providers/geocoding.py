from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from .base import HttpGateway, ProviderError, SearchFailed
from ..config import GEOCODING_URL
from ..entities import Location


NAME_SEPARATOR = ",\n"
SEARCH_LIMIT = 10


def format_location_name(parts: Iterable[Optional[str]]) -> str:
    return NAME_SEPARATOR.join(part for part in parts if part)


class OpenMeteoGeocoder(HttpGateway):
    """Forward and reverse geocoding against the Open-Meteo geocoding API."""

    def __init__(self, base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = (base_url or GEOCODING_URL).rstrip("/")

    def reverse(self, latitude: float, longitude: float) -> Optional[str]:
        """Return a display name for the coordinates, or ``None`` if there is none."""
        params = {"latitude": latitude, "longitude": longitude, "language": "en"}
        try:
            data = self._get_json(f"{self.base_url}/reverse", params)
        except ProviderError as exc:
            self._log.warning("Reverse geocoding failed for %s,%s: %s", latitude, longitude, exc)
            return None
        results = data.get("results") or []
        if not results or not isinstance(results[0], dict):
            return None
        first = results[0]
        if not first.get("name"):
            return None
        return format_location_name([first.get("name"), first.get("admin1"), first.get("country")])

    def search(self, query: str) -> List[Location]:
        if not query or not query.strip():
            return []
        params = {"name": query, "count": SEARCH_LIMIT, "language": "en"}
        try:
            data = self._get_json(f"{self.base_url}/search", params)
        except ProviderError as exc:
            raise SearchFailed(f"Failed to perform geocoding search: {exc}") from exc
        results = data.get("results")
        if not results:
            return []
        locations: List[Location] = []
        for item in results:
            location = self._to_location(item)
            if location is not None:
                locations.append(location)
        return locations

    def _to_location(self, item: Mapping[str, Any]) -> Optional[Location]:
        try:
            latitude = float(item["latitude"])
            longitude = float(item["longitude"])
        except (KeyError, TypeError, ValueError):
            self._log.warning("Skipping search result without coordinates: %s", item)
            return None
        return Location(
            name=format_location_name([item.get("name"), item.get("admin1"), item.get("country")]),
            latitude=latitude,
            longitude=longitude,
        )


__all__ = ["NAME_SEPARATOR", "OpenMeteoGeocoder", "format_location_name"]
