"""Day/Night: registry of live schedulers and global change fan-out."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.debounce import Debouncer

from .config_resolver import normalize_setting
from .const import GLOBAL_CHANGE_COOLDOWN
from .scheduler import DayNightScheduler
from .storage import KeyValueStore

_LOGGER = logging.getLogger(__name__)


class DayNightRegistry:
    """Maps endpoint keys to their scheduler.

    Global setting changes are debounced so a burst of edits collapses into
    one reschedule per endpoint.
    """

    def __init__(self, hass: HomeAssistant, global_store: KeyValueStore):
        self._hass = hass
        self._global_store = global_store
        self._schedulers: Dict[str, DayNightScheduler] = {}
        self._debouncer = Debouncer(
            hass,
            _LOGGER,
            cooldown=GLOBAL_CHANGE_COOLDOWN,
            immediate=False,
            function=self._reschedule_all,
        )

    def __len__(self) -> int:
        return len(self._schedulers)

    @property
    def global_store(self) -> KeyValueStore:
        return self._global_store

    @callback
    def register(self, scheduler: DayNightScheduler) -> None:
        """Track a scheduler, releasing any previous one for the same key."""
        previous = self._schedulers.get(scheduler.key)
        if previous is not None and previous is not scheduler:
            _LOGGER.debug("Releasing previous scheduler for %s", scheduler.key)
            previous.release()
        self._schedulers[scheduler.key] = scheduler

    @callback
    def unregister(self, key: str) -> Optional[DayNightScheduler]:
        scheduler = self._schedulers.pop(key, None)
        if scheduler is not None:
            scheduler.release()
        return scheduler

    def get(self, key: str) -> Optional[DayNightScheduler]:
        return self._schedulers.get(key)

    def schedulers(self) -> List[DayNightScheduler]:
        return list(self._schedulers.values())

    async def async_put_global_setting(self, key: str, value: Any) -> None:
        """Persist a normalised global setting and notify every endpoint."""
        self._global_store.set(key, normalize_setting(key, value))
        await self.async_notify_global_change()

    async def async_notify_global_change(self) -> None:
        """Request a debounced reschedule of every endpoint."""
        await self._debouncer.async_call()

    @callback
    def _reschedule_all(self) -> None:
        _LOGGER.info(
            "Global settings changed; rescheduling %d endpoint(s)",
            len(self._schedulers),
        )
        for scheduler in self.schedulers():
            if scheduler.config.enabled:
                scheduler.async_reschedule()
            else:
                scheduler.async_refresh_preview()

    @callback
    def async_shutdown(self) -> None:
        self._debouncer.async_shutdown()
        for key in list(self._schedulers):
            self.unregister(key)
