"""Command line access to the weather stack."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, List, Optional, Sequence

from .config import ConfigurationError, Settings, configure_logging
from .entities import Location, WeatherBundle
from .helpers import air_quality_description, format_temperature, uv_index_description
from .providers import (
    GeoLocationGateway,
    OpenMeteoGeocoder,
    OpenMeteoWeatherGateway,
    RequestConfig,
    StaticPositionSource,
)
from .services.controller import WeatherStateController
from .storage import JsonPreferences, LocationStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="weatherapp", description="Fetch weather from Open-Meteo")
    commands = parser.add_subparsers(dest="command", required=True)

    fetch = commands.add_parser("fetch", help="Fetch weather for the given coordinates")
    fetch.add_argument("--lat", type=float, required=True, help="Latitude")
    fetch.add_argument("--lon", type=float, required=True, help="Longitude")

    search = commands.add_parser("search", help="Search places by name")
    search.add_argument("query")

    saved = commands.add_parser("saved", help="Manage saved locations")
    saved_commands = saved.add_subparsers(dest="action", required=True)
    saved_commands.add_parser("list", help="List saved locations")
    add = saved_commands.add_parser("add", help="Save a location")
    add.add_argument("--name", required=True)
    add.add_argument("--lat", type=float, required=True)
    add.add_argument("--lon", type=float, required=True)
    remove = saved_commands.add_parser("remove", help="Forget a saved location")
    remove.add_argument("--lat", type=float, required=True)
    remove.add_argument("--lon", type=float, required=True)
    return parser


def build_controller(
    settings: Settings, latitude: float = 0.0, longitude: float = 0.0
) -> WeatherStateController:
    request_config = RequestConfig(timeout=settings.http_timeout)
    geocoder = OpenMeteoGeocoder(base_url=settings.geocoding_url, request_config=request_config)
    weather = OpenMeteoWeatherGateway(
        forecast_url=settings.forecast_url,
        air_quality_url=settings.air_quality_url,
        request_config=request_config,
    )
    locations = GeoLocationGateway(
        StaticPositionSource(latitude, longitude),
        geocoder,
        position_timeout=settings.position_timeout,
    )
    store = LocationStore(JsonPreferences(settings.preferences_path))
    return WeatherStateController(locations, weather, store, settings=settings)


def serialize_bundle(bundle: WeatherBundle) -> dict:
    payload = asdict(bundle)
    payload["condition"] = bundle.condition
    payload["summary"] = {
        "temperature": format_temperature(bundle.current.temperature),
        "uv_index": uv_index_description(bundle.current.uv_index),
        "air_quality": air_quality_description(bundle.current.air_quality_index),
    }
    return payload


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def _dump(payload: Any) -> str:
    return json.dumps(payload, default=_json_default, ensure_ascii=False)


def _locations_payload(locations: Sequence[Location]) -> List[dict]:
    return [location.to_json() for location in locations]


async def _fetch(controller: WeatherStateController) -> int:
    await controller.initialize()
    await controller.drain()
    bundle = controller.selected_weather
    if controller.last_error or bundle is None:
        print(controller.last_error or "No weather data available", file=sys.stderr)
        return 1
    print(_dump(serialize_bundle(bundle)))
    return 0


async def _search(controller: WeatherStateController, query: str) -> int:
    await controller.search(query)
    await controller.drain()
    if controller.last_error:
        print(controller.last_error, file=sys.stderr)
        return 1
    print(_dump(_locations_payload(controller.search_results)))
    return 0


async def _saved(store: LocationStore, args: argparse.Namespace) -> int:
    if args.action == "add":
        locations = await store.add(Location(name=args.name, latitude=args.lat, longitude=args.lon))
    elif args.action == "remove":
        locations = await store.remove(Location(name="", latitude=args.lat, longitude=args.lon))
    else:
        locations = await store.list()
    print(_dump(_locations_payload(locations)))
    return 0


async def run(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "saved":
        return await _saved(LocationStore(JsonPreferences(settings.preferences_path)), args)
    if args.command == "fetch":
        controller = build_controller(settings, args.lat, args.lon)
    else:
        controller = build_controller(settings)
    try:
        if args.command == "fetch":
            return await _fetch(controller)
        return await _search(controller, args.query)
    finally:
        controller.weather_gateway.close()
        controller.location_gateway.geocoder.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    configure_logging(settings.log_level)
    return asyncio.run(run(args, settings))


__all__ = ["build_controller", "build_parser", "main", "run", "serialize_bundle"]
