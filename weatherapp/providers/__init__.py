from .base import (
    HttpGateway,
    LocationError,
    LocationPermissionDenied,
    LocationPermissionPermanentlyDenied,
    PositionUnavailable,
    ProviderError,
    RequestConfig,
    SearchFailed,
    WeatherFetchFailed,
)
from .geocoding import OpenMeteoGeocoder
from .location import GeoLocationGateway, Permission, Placemark, Position, StaticPositionSource
from .openmeteo import OpenMeteoWeatherGateway

__all__ = [
    "GeoLocationGateway",
    "HttpGateway",
    "LocationError",
    "LocationPermissionDenied",
    "LocationPermissionPermanentlyDenied",
    "OpenMeteoGeocoder",
    "OpenMeteoWeatherGateway",
    "Permission",
    "Placemark",
    "Position",
    "PositionUnavailable",
    "ProviderError",
    "RequestConfig",
    "SearchFailed",
    "StaticPositionSource",
    "WeatherFetchFailed",
]
