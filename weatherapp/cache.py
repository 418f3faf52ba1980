from __future__ import annotations

import time
from typing import Callable, Dict, Iterator, Optional

from .entities import WeatherBundle


DEFAULT_TTL = 15 * 60


class BundleCache:
    """Weather bundles keyed by location, with per-key fetch timestamps.

    Entries never expire on their own: a stale bundle stays readable until it
    is replaced or purged, staleness only decides whether to fetch again.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, time_func: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._time_func = time_func
        self._bundles: Dict[str, WeatherBundle] = {}
        self._fetched_at: Dict[str, float] = {}

    def get(self, key: str) -> Optional[WeatherBundle]:
        return self._bundles.get(key)

    def set(self, key: str, bundle: WeatherBundle) -> None:
        self._bundles[key] = bundle
        self._fetched_at[key] = self._time_func()

    def fetched_at(self, key: str) -> Optional[float]:
        return self._fetched_at.get(key)

    def is_stale(self, key: str) -> bool:
        fetched_at = self._fetched_at.get(key)
        if fetched_at is None:
            return True
        return self._time_func() - fetched_at > self.ttl

    def is_fresh(self, key: str) -> bool:
        return key in self._bundles and not self.is_stale(key)

    def invalidate(self, key: str) -> None:
        """Forget when ``key`` was fetched so the next fetch is a real one."""
        self._fetched_at.pop(key, None)

    def purge(self, key: str) -> None:
        self._bundles.pop(key, None)
        self._fetched_at.pop(key, None)

    def snapshot(self) -> Dict[str, WeatherBundle]:
        return dict(self._bundles)

    def clear(self) -> None:
        self._bundles.clear()
        self._fetched_at.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._bundles

    def __iter__(self) -> Iterator[str]:
        return iter(self._bundles)

    def __len__(self) -> int:
        return len(self._bundles)


__all__ = ["BundleCache", "DEFAULT_TTL"]
