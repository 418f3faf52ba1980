"""Persistence of the saved location list.

Saved locations live in a small JSON preferences file under a single key that
holds a list of JSON-encoded locations. The list is always read and written
wholesale.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, List, Union

from .entities import Location


logger = logging.getLogger(__name__)

SAVED_LOCATIONS_KEY = "savedLocations"


class JsonPreferences:
    """Key-value preferences persisted as one JSON object on disk."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)
        self._lock = Lock()

    def get_string_list(self, key: str) -> List[str]:
        with self._lock:
            value = self._read().get(key)
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]

    def set_string_list(self, key: str, values: List[str]) -> None:
        with self._lock:
            data = self._read()
            data[key] = list(values)
            self._write(data)

    def _read(self) -> Dict[str, object]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring corrupt preferences file %s", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring unexpected preferences payload in %s", self.path)
            return {}
        return data

    def _write(self, data: Dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".prefs-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            os.unlink(tmp_name)
            raise


class LocationStore:
    """Saved locations, de-duplicated by coordinate pair."""

    def __init__(self, preferences: JsonPreferences, key: str = SAVED_LOCATIONS_KEY) -> None:
        self.preferences = preferences
        self.key = key

    async def list(self) -> List[Location]:
        return await asyncio.to_thread(self._list)

    async def add(self, location: Location) -> List[Location]:
        return await asyncio.to_thread(self._add, location)

    async def remove(self, location: Location) -> List[Location]:
        return await asyncio.to_thread(self._remove, location)

    # blocking implementations --------------------------------------------
    def _entries(self) -> List[str]:
        return self.preferences.get_string_list(self.key)

    def _decode(self, entries: List[str]) -> List[Location]:
        locations: List[Location] = []
        for item in entries:
            try:
                locations.append(Location.from_json(json.loads(item)))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable saved location %r: %s", item, exc)
        return locations

    def _list(self) -> List[Location]:
        return self._decode(self._entries())

    def _add(self, location: Location) -> List[Location]:
        entries = self._entries()
        saved = self._decode(entries)
        if any(existing.same_place(location) for existing in saved):
            logger.debug("Location %s already saved", location.key)
            return saved
        entries.append(json.dumps(location.to_json()))
        self.preferences.set_string_list(self.key, entries)
        return self._decode(entries)

    def _remove(self, location: Location) -> List[Location]:
        kept = [item for item in self._decode(self._entries()) if not item.same_place(location)]
        self.preferences.set_string_list(self.key, [json.dumps(item.to_json()) for item in kept])
        return kept


__all__ = ["JsonPreferences", "LocationStore", "SAVED_LOCATIONS_KEY"]
