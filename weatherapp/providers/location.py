"""Device location resolution and place naming."""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .base import (
    LocationError,
    LocationPermissionDenied,
    LocationPermissionPermanentlyDenied,
    PositionUnavailable,
)
from .geocoding import OpenMeteoGeocoder, format_location_name
from ..entities import Location


PLACEHOLDER_NAME = "Current Location"


class Permission(enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"
    DENIED_FOREVER = "denied_forever"


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Placemark:
    """Address components as reported by a platform geocoder."""

    locality: Optional[str] = None
    sub_locality: Optional[str] = None
    sub_administrative_area: Optional[str] = None
    administrative_area: Optional[str] = None
    country: Optional[str] = None


class PositionSource(Protocol):
    """Platform positioning service."""

    async def check_permission(self) -> Permission:
        ...

    async def request_permission(self) -> Permission:
        ...

    async def current_position(self) -> Position:
        ...


class PlacemarkSource(Protocol):
    """Platform reverse geocoder used when the web geocoder has no answer."""

    async def placemarks(self, latitude: float, longitude: float) -> Sequence[Placemark]:
        ...


class StaticPositionSource:
    """Position source that always reports the same coordinates."""

    def __init__(self, latitude: float, longitude: float, permission: Permission = Permission.GRANTED) -> None:
        self.position = Position(latitude, longitude)
        self.permission = permission

    async def check_permission(self) -> Permission:
        return self.permission

    async def request_permission(self) -> Permission:
        return self.permission

    async def current_position(self) -> Position:
        return self.position


def placemark_name(place: Placemark) -> Optional[str]:
    parts: List[str] = []
    town = place.locality or place.sub_locality or place.sub_administrative_area
    if town:
        parts.append(town)
    if place.administrative_area and (not parts or parts[0] != place.administrative_area):
        parts.append(place.administrative_area)
    if place.country:
        parts.append(place.country)
    return format_location_name(parts) or None


class GeoLocationGateway:
    def __init__(
        self,
        position_source: PositionSource,
        geocoder: OpenMeteoGeocoder,
        placemark_source: Optional[PlacemarkSource] = None,
        position_timeout: float = 10.0,
    ) -> None:
        self.position_source = position_source
        self.geocoder = geocoder
        self.placemark_source = placemark_source
        self.position_timeout = position_timeout
        self._log = logging.getLogger(self.__class__.__name__)

    async def resolve_current_location(self) -> Location:
        """Return the device location, named as well as the geocoders allow.

        Raises ``LocationPermissionDenied``, ``LocationPermissionPermanentlyDenied``
        or ``PositionUnavailable``.
        """
        await self._ensure_permission()
        position = await self._current_position()
        self._log.debug("Position received: %s, %s", position.latitude, position.longitude)
        name = await asyncio.to_thread(self.geocoder.reverse, position.latitude, position.longitude)
        if name is None:
            name = await self._placemark_name(position)
        return Location(
            name=name or PLACEHOLDER_NAME,
            latitude=position.latitude,
            longitude=position.longitude,
            is_current=True,
        )

    async def search(self, query: str) -> List[Location]:
        if not query or not query.strip():
            return []
        return await asyncio.to_thread(self.geocoder.search, query)

    # helpers ------------------------------------------------------------
    async def _ensure_permission(self) -> None:
        permission = await self.position_source.check_permission()
        if permission is Permission.DENIED:
            permission = await self.position_source.request_permission()
            if permission is Permission.DENIED:
                raise LocationPermissionDenied("Location permissions are denied")
        if permission is Permission.DENIED_FOREVER:
            raise LocationPermissionPermanentlyDenied("Location permissions are permanently denied")

    async def _current_position(self) -> Position:
        try:
            return await asyncio.wait_for(self.position_source.current_position(), timeout=self.position_timeout)
        except asyncio.TimeoutError as exc:
            raise PositionUnavailable(f"no position within {self.position_timeout}s") from exc
        except LocationError:
            raise
        except Exception as exc:  # noqa: BLE001 - platform sources raise arbitrary errors
            raise PositionUnavailable(str(exc)) from exc

    async def _placemark_name(self, position: Position) -> Optional[str]:
        if self.placemark_source is None:
            return None
        try:
            places = await self.placemark_source.placemarks(position.latitude, position.longitude)
        except Exception as exc:  # noqa: BLE001 - fallback naming must not fail resolution
            self._log.warning("Platform geocoding failed: %s", exc)
            return None
        if not places:
            return None
        return placemark_name(places[0])


__all__ = [
    "GeoLocationGateway",
    "PLACEHOLDER_NAME",
    "Permission",
    "Placemark",
    "PlacemarkSource",
    "Position",
    "PositionSource",
    "StaticPositionSource",
    "placemark_name",
]
