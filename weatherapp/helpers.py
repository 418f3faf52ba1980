"""Presentation helpers applied to weather values."""
from __future__ import annotations


RAINY_PROBABILITY = 50
CLOUDY_COVER = 70
PARTLY_CLOUDY_COVER = 30


def weather_condition(*, cloud_cover: int, rain_probability: float) -> str:
    if rain_probability > RAINY_PROBABILITY:
        return "Rainy"
    if cloud_cover > CLOUDY_COVER:
        return "Cloudy"
    if cloud_cover > PARTLY_CLOUDY_COVER:
        return "Partly Cloudy"
    return "Clear"


def uv_index_description(uv_index: float) -> str:
    if uv_index < 3:
        return "Low"
    if uv_index < 6:
        return "Moderate"
    if uv_index < 8:
        return "High"
    if uv_index < 11:
        return "Very High"
    return "Extreme"


def air_quality_description(aqi: int) -> str:
    if aqi < 50:
        return "Good"
    if aqi < 100:
        return "Moderate"
    if aqi < 150:
        return "Unhealthy for Sensitive Groups"
    if aqi < 200:
        return "Unhealthy"
    if aqi < 300:
        return "Very Unhealthy"
    return "Hazardous"


def wind_speed_to_kmh(speed_ms: float) -> float:
    return speed_ms * 3.6


def format_temperature(temperature: float, show_unit: bool = True) -> str:
    return f"{temperature:.1f}{'°C' if show_unit else ''}"


__all__ = [
    "air_quality_description",
    "format_temperature",
    "uv_index_description",
    "weather_condition",
    "wind_speed_to_kmh",
]
