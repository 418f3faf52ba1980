from __future__ import annotations

import asyncio
import logging
from collections import deque
from types import MappingProxyType
from typing import Any, Callable, Coroutine, Deque, Dict, Iterable, List, Optional, Set

from ..abstractions import LocationGateway, SavedLocations, WeatherGateway
from ..cache import BundleCache
from ..config import Settings
from ..entities import ForecastView, Location, WeatherBundle
from .state import (
    Command,
    Initialize,
    RefreshAll,
    RefreshSelected,
    Search,
    StateChanged,
    WeatherState,
)


Listener = Callable[[StateChanged], None]


class WeatherStateController:
    """Single source of truth for locations and their weather.

    Top-level operations (``initialize``, ``refresh_all``, ``refresh_selected``
    and ``search``) never run concurrently: while one is in flight, later calls
    are queued as commands and replayed one at a time, in order, as each
    operation finishes. Every state change is published to subscribers as a
    ``StateChanged`` event.
    """

    def __init__(
        self,
        location_gateway: LocationGateway,
        weather_gateway: WeatherGateway,
        location_store: SavedLocations,
        *,
        cache: Optional[BundleCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.location_gateway = location_gateway
        self.weather_gateway = weather_gateway
        self.location_store = location_store
        self.cache = cache or BundleCache(ttl=self.settings.cache_ttl)

        self.current_device_location: Optional[Location] = None
        self.saved_locations: List[Location] = []
        self.selected_location: Optional[Location] = None
        self.forecast_view = ForecastView.DAILY
        self.is_busy = False
        self.last_error: Optional[str] = None
        self.search_results: List[Location] = []

        self._in_flight = False
        self._pending: Deque[Command] = deque()
        self._idle = asyncio.Event()
        self._idle.set()
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        self._log = logging.getLogger(self.__class__.__name__)

    # Observers ----------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> WeatherState:
        return WeatherState(
            current_device_location=self.current_device_location,
            saved_locations=tuple(self.saved_locations),
            selected_location=self.selected_location,
            weather=MappingProxyType(self.cache.snapshot()),
            forecast_view=self.forecast_view,
            is_busy=self.is_busy,
            last_error=self.last_error,
            search_results=tuple(self.search_results),
        )

    @property
    def weather_by_key(self) -> Dict[str, WeatherBundle]:
        return self.cache.snapshot()

    @property
    def selected_weather(self) -> Optional[WeatherBundle]:
        if self.selected_location is None:
            return None
        return self.cache.get(self.selected_location.key)

    @property
    def pending_operations(self) -> List[Command]:
        return list(self._pending)

    # Public API ---------------------------------------------------------
    async def initialize(self) -> None:
        await self._run(Initialize())

    async def refresh_all(self) -> None:
        await self._run(RefreshAll())

    async def refresh_selected(self) -> None:
        if self.selected_location is None:
            return
        await self._run(RefreshSelected())

    async def search(self, query: str) -> None:
        await self._run(Search(query))

    async def fetch_weather_data(self, location: Location) -> None:
        """Fetch ``location`` unless its cached bundle is fresh; never raises."""
        try:
            await self._fetch(location)
        except Exception as exc:  # noqa: BLE001 - one location must not break its caller
            self._log.warning("Failed to fetch weather data for %s: %s", location.name, exc)

    def select_location(self, location: Location) -> None:
        self.selected_location = location
        if self.cache.is_stale(location.key):
            self._spawn(self.fetch_weather_data(location))
        self._publish()

    async def add_location(self, location: Location) -> None:
        try:
            await self.location_store.add(location)
            self.saved_locations = list(await self.location_store.list())
            await self.fetch_weather_data(location)
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            self.last_error = f"Failed to add location: {exc}"
            self._log.error(self.last_error)
        self._publish()

    async def remove_location(self, location: Location) -> None:
        try:
            await self.location_store.remove(location)
            self.saved_locations = list(await self.location_store.list())
            self.cache.purge(location.key)
            if location.same_place(self.selected_location):
                self.selected_location = self.current_device_location
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            self.last_error = f"Failed to remove location: {exc}"
            self._log.error(self.last_error)
        self._publish()

    def toggle_forecast_view(self) -> None:
        self.forecast_view = self.forecast_view.toggled()
        self._publish()

    def clear_search_results(self) -> None:
        self.search_results = []
        self._publish()

    async def drain(self) -> None:
        """Wait until no operation, queued command or background fetch remains."""
        while True:
            running = [task for task in self._tasks if not task.done()]
            if running:
                await asyncio.gather(*running, return_exceptions=True)
            elif self._in_flight:
                await self._idle.wait()
            else:
                return

    # Single-flight ------------------------------------------------------
    async def _run(self, command: Command, *, claimed: bool = False) -> None:
        """Run ``command`` now, or queue it behind the running operation.

        ``claimed`` means the slot was handed over by the previous operation
        and ``_in_flight`` is already held.
        """
        if not claimed:
            if self._in_flight:
                if command in self._pending:
                    self._log.debug("%s already queued", command)
                else:
                    self._log.debug("Queueing %s behind running operation", command)
                    self._pending.append(command)
                return
            self._in_flight = True
            self._idle.clear()

        try:
            await self._dispatch(command)
        finally:
            self.is_busy = False
            next_command = self._pending.popleft() if self._pending else None
            if next_command is None:
                self._in_flight = False
                self._idle.set()
            self._publish()
            if next_command is not None:
                # _in_flight stays held for the next command.
                self._spawn(self._run(next_command, claimed=True))

    async def _dispatch(self, command: Command) -> None:
        if isinstance(command, Initialize):
            await self._initialize()
        elif isinstance(command, RefreshAll):
            await self._refresh_all()
        elif isinstance(command, RefreshSelected):
            await self._refresh_selected()
        elif isinstance(command, Search):
            await self._search(command.query)
        else:
            raise TypeError(f"unknown command {command!r}")

    # Operations ---------------------------------------------------------
    async def _initialize(self) -> None:
        self._log.info("Initializing")
        self.is_busy = True
        try:
            current, saved = await asyncio.gather(
                self.location_gateway.resolve_current_location(),
                self.location_store.list(),
            )
            self.current_device_location = current
            self.saved_locations = list(saved)
            self.selected_location = current
            self._log.info("Current location: %s", current.name)

            others = self._others(self.selected_location)
            try:
                await self._fetch(current)
            finally:
                self._start_batch(others)
            self.last_error = None
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            self.last_error = f"Failed to initialize weather data: {exc}"
            self._log.error(self.last_error)

    async def _refresh_all(self) -> None:
        self._log.info("Refreshing all locations")
        self.is_busy = True
        self._publish()
        try:
            fresh = await self._resolve_device_location()
            if fresh is not None and self._apply_device_location(fresh):
                if self.selected_location is not None and self.selected_location.is_current:
                    self.selected_location = fresh

            self.saved_locations = list(await self.location_store.list())

            selected = self.selected_location
            others = self._others(selected)
            try:
                if selected is not None:
                    self.cache.invalidate(selected.key)
                    await self._fetch(selected)
            finally:
                for location in others:
                    self.cache.invalidate(location.key)
                self._start_batch(others)
            self.last_error = None
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            self.last_error = f"Failed to refresh weather data: {exc}"
            self._log.error(self.last_error)

    async def _refresh_selected(self) -> None:
        selected = self.selected_location
        if selected is None:
            return
        self._log.info("Refreshing %s", selected.name)
        self.is_busy = True
        self._publish()
        try:
            fresh = await self._resolve_device_location()
            if fresh is None:
                await self._force_fetch(selected)
            elif not self._apply_device_location(fresh):
                await self._force_fetch(selected)
            elif selected.is_current:
                self.selected_location = fresh
                await self._fetch(fresh)
            else:
                self._spawn(self.fetch_weather_data(fresh))
                await self._force_fetch(selected)
            self.last_error = None
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            self.last_error = f"Failed to refresh weather data: {exc}"
            self._log.error(self.last_error)

    async def _search(self, query: str) -> None:
        self.is_busy = True
        self.last_error = None
        self._publish()
        if not query or not query.strip():
            self.search_results = []
            return
        try:
            self.search_results = list(await self.location_gateway.search(query))
        except Exception as exc:  # noqa: BLE001 - surfaced through last_error
            self.last_error = f"Failed to search locations: {exc}"
            self.search_results = []
            self._log.error(self.last_error)

    # Helpers ------------------------------------------------------------
    async def _fetch(self, location: Location) -> None:
        key = location.key
        if self.cache.is_fresh(key):
            self._log.debug("Using cached data for %s", location.name)
            return
        self._log.debug("Fetching weather for %s", location.name)
        bundle = await self.weather_gateway.fetch_bundle(location)
        self.cache.set(key, bundle)
        if location.same_place(self.selected_location):
            self._publish()

    async def _force_fetch(self, location: Location) -> None:
        self.cache.invalidate(location.key)
        await self._fetch(location)

    async def _fetch_silently(self, location: Location) -> None:
        key = location.key
        if self.cache.is_fresh(key):
            return
        try:
            bundle = await self.weather_gateway.fetch_bundle(location)
        except Exception as exc:  # noqa: BLE001 - one location must not abort the batch
            self._log.warning("Failed to fetch weather for %s: %s", location.name, exc)
            return
        self.cache.set(key, bundle)

    async def _fetch_batch(self, locations: Iterable[Location]) -> None:
        stale = [location for location in locations if self.cache.is_stale(location.key)]
        if not stale:
            return
        await asyncio.gather(*(self._fetch_silently(location) for location in stale))
        self._publish()

    def _start_batch(self, locations: List[Location]) -> None:
        if locations:
            self._spawn(self._fetch_batch(locations))

    async def _resolve_device_location(self) -> Optional[Location]:
        try:
            return await self.location_gateway.resolve_current_location()
        except Exception as exc:  # noqa: BLE001 - the previous device location stays usable
            self._log.warning("Error refreshing current location: %s", exc)
            return None

    def _apply_device_location(self, fresh: Location) -> bool:
        """Adopt ``fresh`` if the device moved; return whether it did."""
        if fresh.same_place(self.current_device_location):
            return False
        self._log.info("Current location changed: %s", fresh.name)
        self.current_device_location = fresh
        self.cache.invalidate(fresh.key)
        return True

    def _others(self, selected: Optional[Location]) -> List[Location]:
        """Device and saved locations other than ``selected``, one per key."""
        seen: Set[str] = set()
        if selected is not None:
            seen.add(selected.key)
        result: List[Location] = []
        candidates = [self.current_device_location, *self.saved_locations]
        for location in candidates:
            if location is None or location.key in seen:
                continue
            seen.add(location.key)
            result.append(location)
        return result

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _publish(self) -> None:
        event = StateChanged(self.snapshot())
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - a broken subscriber must not stop the others
                self._log.exception("State listener %r failed", listener)


__all__ = ["WeatherStateController"]
