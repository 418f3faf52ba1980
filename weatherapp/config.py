"""Runtime settings for the weather client, read from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Optional, TypeVar


T = TypeVar("T")

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"
GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1"


class ConfigurationError(ValueError):
    """Raised when an environment variable holds an unusable value."""


def env(name: str, default: T, cast: Callable[[str], T] = str, environ: Optional[Mapping[str, str]] = None) -> T:
    """Fetch an environment variable, converting it with ``cast``."""

    source = os.environ if environ is None else environ
    raw = source.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Environment variable {name} has invalid value {raw!r}") from exc


def _default_preferences_path() -> Path:
    return Path.home() / ".weatherapp" / "preferences.json"


@dataclass
class Settings:
    cache_ttl: float = 15 * 60
    http_timeout: float = 10.0
    position_timeout: float = 10.0
    forecast_url: str = FORECAST_URL
    air_quality_url: str = AIR_QUALITY_URL
    geocoding_url: str = GEOCODING_URL
    preferences_path: Path = field(default_factory=_default_preferences_path)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        defaults = cls()
        return cls(
            cache_ttl=env("WEATHERAPP_CACHE_TTL", defaults.cache_ttl, float, environ),
            http_timeout=env("WEATHERAPP_HTTP_TIMEOUT", defaults.http_timeout, float, environ),
            position_timeout=env("WEATHERAPP_POSITION_TIMEOUT", defaults.position_timeout, float, environ),
            forecast_url=env("WEATHERAPP_FORECAST_URL", defaults.forecast_url, str, environ),
            air_quality_url=env("WEATHERAPP_AIR_QUALITY_URL", defaults.air_quality_url, str, environ),
            geocoding_url=env("WEATHERAPP_GEOCODING_URL", defaults.geocoding_url, str, environ),
            preferences_path=env(
                "WEATHERAPP_PREFERENCES_PATH", defaults.preferences_path, lambda raw: Path(raw).expanduser(), environ
            ),
            log_level=env("WEATHERAPP_LOG_LEVEL", defaults.log_level, str.upper, environ),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = [
    "AIR_QUALITY_URL",
    "ConfigurationError",
    "FORECAST_URL",
    "GEOCODING_URL",
    "Settings",
    "configure_logging",
    "env",
]
