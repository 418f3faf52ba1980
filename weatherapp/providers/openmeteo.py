from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from .base import HttpGateway, ProviderError, WeatherFetchFailed
from ..config import AIR_QUALITY_URL, FORECAST_URL
from ..entities import CurrentWeather, DailyForecast, HourlyForecast, Location, WeatherBundle


CURRENT_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "rain",
    "uv_index",
    "is_day",
    "cloud_cover",
    "wind_speed_10m",
)
AIR_QUALITY_FIELDS = (
    "european_aqi",
    "pm10",
    "pm2_5",
    "carbon_monoxide",
    "nitrogen_dioxide",
    "sulphur_dioxide",
    "ozone",
    "alder_pollen",
    "birch_pollen",
    "grass_pollen",
    "mugwort_pollen",
    "olive_pollen",
    "ragweed_pollen",
    "dust",
    "ammonia",
)
POLLEN_FIELDS = (
    "alder_pollen",
    "birch_pollen",
    "grass_pollen",
    "mugwort_pollen",
    "olive_pollen",
    "ragweed_pollen",
)
HOURLY_FIELDS = ("temperature_2m", "cloud_cover", "precipitation_probability", "wind_speed_10m", "is_day")
DAILY_FIELDS = (
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_probability_max",
    "wind_speed_10m_max",
    "cloud_cover_max",
    "uv_index_max",
)

AIR_QUALITY_DEFAULTS = {"air_quality_index": 0, "pollen_count": 0.0}


class OpenMeteoWeatherGateway(HttpGateway):
    """Current conditions, air quality and forecasts from Open-Meteo.

    Wind speeds are requested in miles per hour and times in the location's
    own timezone. Every request carries a ``cache_bust`` parameter so that
    intermediary caches never answer for the API.
    """

    forecast_hours = 24
    forecast_days = 7

    def __init__(
        self,
        forecast_url: Optional[str] = None,
        air_quality_url: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.forecast_url = forecast_url or FORECAST_URL
        self.air_quality_url = air_quality_url or AIR_QUALITY_URL

    # Public API ---------------------------------------------------------
    async def fetch_bundle(self, location: Location) -> WeatherBundle:
        """Fetch current, hourly and daily data concurrently for ``location``."""
        lat, lon = location.latitude, location.longitude
        try:
            current, hourly, daily = await asyncio.gather(
                asyncio.to_thread(self.current, lat, lon),
                asyncio.to_thread(self.hourly, lat, lon),
                asyncio.to_thread(self.daily, lat, lon),
            )
        except (ProviderError, ValueError) as exc:
            self._log.error("Failed to fetch weather for %s: %s", location.name, exc)
            raise WeatherFetchFailed(f"failed to fetch weather for {location.key}: {exc}") from exc
        return WeatherBundle(current=current, hourly=hourly, daily=daily, location=location)

    def current(self, latitude: float, longitude: float) -> CurrentWeather:
        params = self._params(latitude, longitude, current=",".join(CURRENT_FIELDS), wind_speed_unit="mph")
        data = self._get_json(self.forecast_url, params)
        current = data.get("current")
        if not isinstance(current, dict):
            raise ProviderError("missing current weather")
        self._log.debug("Current weather response: %s", current)
        combined: Dict[str, Any] = {**current, **self.air_quality(latitude, longitude)}
        return CurrentWeather.from_json(combined)

    def air_quality(self, latitude: float, longitude: float) -> Dict[str, Any]:
        """Return ``air_quality_index`` and ``pollen_count``; zeros when unavailable."""
        params = self._params(latitude, longitude, current=",".join(AIR_QUALITY_FIELDS))
        try:
            data = self._get_json(self.air_quality_url, params)
        except ProviderError as exc:
            self._log.warning("Air quality unavailable, using defaults: %s", exc)
            return dict(AIR_QUALITY_DEFAULTS)
        current = data.get("current") or {}
        aqi = current.get("european_aqi")
        try:
            air_quality_index = int(aqi) if aqi is not None else 0
        except (TypeError, ValueError):
            self._log.warning("Invalid european_aqi %r", aqi)
            air_quality_index = 0
        return {
            "air_quality_index": air_quality_index,
            "pollen_count": average_pollen(current),
        }

    def hourly(self, latitude: float, longitude: float) -> List[HourlyForecast]:
        params = self._params(
            latitude,
            longitude,
            hourly=",".join(HOURLY_FIELDS),
            forecast_hours=self.forecast_hours,
            wind_speed_unit="mph",
        )
        data = self._get_json(self.forecast_url, params)
        rows = _columns_to_rows(data.get("hourly"), HOURLY_FIELDS)
        if rows is None:
            raise ProviderError("missing hourly data")
        return [HourlyForecast.from_json(row) for row in rows]

    def daily(self, latitude: float, longitude: float) -> List[DailyForecast]:
        params = self._params(
            latitude,
            longitude,
            daily=",".join(DAILY_FIELDS),
            forecast_days=self.forecast_days,
            wind_speed_unit="mph",
        )
        data = self._get_json(self.forecast_url, params)
        rows = _columns_to_rows(data.get("daily"), DAILY_FIELDS)
        if rows is None:
            raise ProviderError("missing daily data")
        return [DailyForecast.from_json(row) for row in rows]

    # helpers ------------------------------------------------------------
    def _params(self, latitude: float, longitude: float, **extra: Any) -> Dict[str, Any]:
        params: Dict[str, Any] = {"latitude": latitude, "longitude": longitude}
        params.update(extra)
        params["timezone"] = "auto"
        params["cache_bust"] = int(time.time() * 1000)
        return params


def average_pollen(payload: Dict[str, Any]) -> float:
    """Arithmetic mean of the pollen fields present in ``payload``, 0.0 if none."""
    values = []
    for name in POLLEN_FIELDS:
        value = payload.get(name)
        if value is None:
            continue
        try:
            values.append(float(value))
        except (TypeError, ValueError):
            logging.getLogger(__name__).warning("Invalid %s value %r", name, value)
    if not values:
        return 0.0
    return sum(values) / len(values)


def _columns_to_rows(block: Any, fields: Sequence[str]) -> Optional[List[Dict[str, Any]]]:
    """Turn Open-Meteo's column arrays into one mapping per time step."""
    if not isinstance(block, dict):
        return None
    times = block.get("time")
    if not isinstance(times, list):
        return None
    rows: List[Dict[str, Any]] = []
    for idx, ts in enumerate(times):
        row: Dict[str, Any] = {"time": ts}
        for name in fields:
            row[name] = _safe_index(block.get(name), idx)
        rows.append(row)
    return rows


def _safe_index(values: Any, index: int) -> Any:
    try:
        return values[index]
    except (IndexError, TypeError, KeyError):
        return None


__all__ = ["OpenMeteoWeatherGateway", "average_pollen"]
