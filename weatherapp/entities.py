from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .helpers import weather_condition


logger = logging.getLogger(__name__)


def location_key(latitude: float, longitude: float) -> str:
    """Identity of a location in caches and lookups: the raw coordinate pair."""
    return f"{latitude},{longitude}"


@dataclass(frozen=True)
class Location:
    """A named coordinate pair.

    Two locations describe the same place iff their raw coordinates are
    identical; names may repeat or change after a new reverse geocode.
    """

    name: str
    latitude: float
    longitude: float
    is_current: bool = False

    @property
    def key(self) -> str:
        return location_key(self.latitude, self.longitude)

    def same_place(self, other: Optional["Location"]) -> bool:
        return other is not None and self.key == other.key

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "isCurrent": self.is_current,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "Location":
        return cls(
            name=payload["name"],
            latitude=float(payload["latitude"]),
            longitude=float(payload["longitude"]),
            is_current=payload.get("isCurrent") is True,
        )


class ForecastView(enum.Enum):
    HOURLY = "hourly"
    DAILY = "daily"

    def toggled(self) -> "ForecastView":
        return ForecastView.DAILY if self is ForecastView.HOURLY else ForecastView.HOURLY


@dataclass(frozen=True)
class CurrentWeather:
    """Point-in-time conditions.

    Units: temperature in Celsius, rainfall in millimetres, wind speed in
    miles per hour, cloud cover in percent (0-100).
    """

    temperature: float
    rainfall: float
    uv_index: float
    pollen_count: float
    air_quality_index: int
    is_day: bool
    wind_speed: float
    cloud_cover: int
    time: datetime

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "CurrentWeather":
        try:
            time = parse_timestamp(payload.get("time"))
        except ValueError as exc:
            logger.warning("Unparsable current weather time, using now: %s", exc)
            time = datetime.now(tz=timezone.utc)
        return cls(
            temperature=safe_float(payload.get("temperature_2m")),
            rainfall=safe_float(payload.get("rain")),
            uv_index=safe_float(payload.get("uv_index")),
            pollen_count=safe_float(payload.get("pollen_count")),
            air_quality_index=safe_int(payload.get("air_quality_index")),
            is_day=_is_day(payload.get("is_day")),
            wind_speed=safe_float(payload.get("wind_speed_10m")),
            cloud_cover=safe_int(payload.get("cloud_cover")),
            time=time,
        )

    @property
    def formatted_time(self) -> str:
        return self.time.strftime("%H:%M")

    @property
    def formatted_date(self) -> str:
        return f"{self.time.day} {self.time.strftime('%b %Y')}"


@dataclass(frozen=True)
class HourlyForecast:
    temperature: float
    wind_speed: float
    cloud_cover: int
    rain_probability: float
    is_day: bool
    time: datetime

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "HourlyForecast":
        # An hour without a usable timestamp cannot be placed on the timeline.
        return cls(
            temperature=safe_float(payload.get("temperature_2m")),
            wind_speed=safe_float(payload.get("wind_speed_10m")),
            cloud_cover=safe_int(payload.get("cloud_cover")),
            rain_probability=safe_float(payload.get("precipitation_probability")),
            is_day=_is_day(payload.get("is_day")),
            time=parse_timestamp(payload.get("time")),
        )

    @property
    def formatted_time(self) -> str:
        return self.time.strftime("%H:%M")

    @property
    def formatted_day(self) -> str:
        return self.time.strftime("%a")


@dataclass(frozen=True)
class DailyForecast:
    min_temperature: float
    max_temperature: float
    wind_speed: float
    rain_probability: float
    uv_index: float
    cloud_cover: int
    date: date

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "DailyForecast":
        return cls(
            min_temperature=safe_float(payload.get("temperature_2m_min")),
            max_temperature=safe_float(payload.get("temperature_2m_max")),
            wind_speed=safe_float(payload.get("wind_speed_10m_max")),
            rain_probability=safe_float(payload.get("precipitation_probability_max")),
            uv_index=safe_float(payload.get("uv_index_max")),
            cloud_cover=safe_int(payload.get("cloud_cover_max")),
            date=parse_timestamp(payload.get("time")).date(),
        )

    @property
    def formatted_date(self) -> str:
        return f"{self.date.day} {self.date.strftime('%b')}"

    @property
    def formatted_day(self) -> str:
        return self.date.strftime("%a")


@dataclass(frozen=True)
class WeatherBundle:
    """Current conditions plus forecasts for one location; the unit of caching."""

    current: CurrentWeather
    hourly: List[HourlyForecast] = field(default_factory=list)
    daily: List[DailyForecast] = field(default_factory=list)
    location: Optional[Location] = None

    @property
    def key(self) -> Optional[str]:
        return self.location.key if self.location else None

    @property
    def condition(self) -> str:
        rain_probability = self.hourly[0].rain_probability if self.hourly else 0.0
        return weather_condition(
            cloud_cover=self.current.cloud_cover,
            rain_probability=rain_probability,
        )


# helpers ------------------------------------------------------------
def parse_timestamp(value: Optional[object]) -> datetime:
    """Parse an ISO-8601 timestamp or date.

    Accepts ``Z`` suffixes, UTC offsets, fractional seconds and bare dates.
    Raises ``ValueError`` when the value is missing or unparsable.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"invalid timestamp: {value!r}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def safe_float(value: Optional[object]) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        logger.warning("Ignoring boolean %r in numeric field, defaulting to 0.0", value)
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Could not convert %r to float, defaulting to 0.0", value)
        return 0.0


def safe_int(value: Optional[object]) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        logger.warning("Ignoring boolean %r in numeric field, defaulting to 0", value)
        return 0
    try:
        if isinstance(value, (int, float)):
            return int(value)
        return int(float(str(value)))
    except (TypeError, ValueError, OverflowError):
        logger.warning("Could not convert %r to int, defaulting to 0", value)
        return 0


def _is_day(value: Optional[object]) -> bool:
    return not isinstance(value, bool) and value == 1


__all__ = [
    "CurrentWeather",
    "DailyForecast",
    "ForecastView",
    "HourlyForecast",
    "Location",
    "WeatherBundle",
    "location_key",
    "parse_timestamp",
    "safe_float",
    "safe_int",
]
