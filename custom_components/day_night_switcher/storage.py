"""Day/Night: persistent string key/value stores."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.storage import Store

from .const import STORAGE_SAVE_DELAY, STORAGE_VERSION

_LOGGER = logging.getLogger(__name__)


class KeyValueStore:
    """String key/value store backed by a Home Assistant Store file.

    Reads are served from memory. Every write updates memory immediately and
    schedules a delayed save, so callers never await persistence.
    """

    def __init__(self, hass: HomeAssistant, key: str):
        """Initialize store."""
        self._hass = hass
        self._key = key
        self._store: Store[Dict[str, str]] = Store(hass, STORAGE_VERSION, key)
        self._data: Dict[str, str] = {}

    @classmethod
    async def async_create(
        cls,
        hass: HomeAssistant,
        key: str,
        defaults: Optional[Mapping[str, str]] = None,
    ) -> "KeyValueStore":
        """Factory method to create and load a store."""
        instance = cls(hass, key)
        await instance.async_load(defaults)
        return instance

    @property
    def key(self) -> str:
        return self._key

    async def async_load(self, defaults: Optional[Mapping[str, str]] = None) -> None:
        """Load data from disk, then fill in any missing defaults."""
        data = await self._store.async_load()
        if data is not None:
            # Stored values are always strings; drop anything else
            self._data = {str(k): v for k, v in data.items() if isinstance(v, str)}
            _LOGGER.debug("Loaded %s: %d keys", self._key, len(self._data))
        else:
            _LOGGER.debug("No stored data for %s, using defaults", self._key)

        for key, value in (defaults or {}).items():
            self._data.setdefault(key, value)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    @callback
    def set(self, key: str, value: str) -> None:
        """Update a key and schedule persistence."""
        self._data[key] = value
        self._store.async_delay_save(self._data_to_save, STORAGE_SAVE_DELAY)

    @callback
    def set_many(self, values: Mapping[str, str]) -> None:
        self._data.update(values)
        self._store.async_delay_save(self._data_to_save, STORAGE_SAVE_DELAY)

    def keys(self) -> Iterable[str]:
        return self._data.keys()

    def as_dict(self) -> Dict[str, str]:
        return dict(self._data)

    @callback
    def _data_to_save(self) -> Dict[str, str]:
        return dict(self._data)

    async def async_save(self) -> None:
        """Persist immediately."""
        await self._store.async_save(self._data_to_save())

    async def async_remove(self) -> None:
        """Delete the backing file."""
        await self._store.async_remove()
        self._data = {}
        _LOGGER.debug("Removed store %s", self._key)
