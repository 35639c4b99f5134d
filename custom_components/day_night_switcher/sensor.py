"""
Day/Night Switcher - Sensor Platform
Exposes each endpoint's schedule preview.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from homeassistant.components.sensor import SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import (
    DEVICE_MANUFACTURER,
    DEVICE_MODEL,
    DOMAIN,
    SIGNAL_PREVIEW_UPDATED,
    VERSION,
)
from .scheduler import DayNightScheduler

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the preview sensor for one endpoint."""
    registry = hass.data[DOMAIN]["registry"]
    scheduler = registry.get(entry.unique_id or entry.entry_id)

    if scheduler is None:
        _LOGGER.error("No scheduler for %s, cannot set up sensor", entry.title)
        return

    async_add_entities([DayNightPreviewSensor(scheduler, entry)])


class DayNightPreviewSensor(SensorEntity):
    """Plain preview text as state, structured preview as attributes."""

    _attr_has_entity_name = True
    _attr_should_poll = False
    _attr_icon = "mdi:theme-light-dark"

    def __init__(self, scheduler: DayNightScheduler, entry: ConfigEntry):
        """Initialize the sensor."""
        self._scheduler = scheduler
        self._entry = entry
        self._attr_name = "Schedule preview"
        self._attr_unique_id = f"{scheduler.key}_preview"

    @property
    def device_info(self) -> DeviceInfo:
        """Group the sensor under its endpoint."""
        return DeviceInfo(
            identifiers={(DOMAIN, self._scheduler.key)},
            name=self._entry.title,
            manufacturer=DEVICE_MANUFACTURER,
            model=DEVICE_MODEL,
            sw_version=VERSION,
        )

    @property
    def native_value(self) -> str:
        return self._scheduler.preview

    @property
    def extra_state_attributes(self) -> Dict[str, Any]:
        attributes = dict(self._scheduler.preview_details)
        last = self._scheduler.last_phase
        attributes["last_phase"] = last.value if last else None
        attributes["state"] = self._scheduler.state.value
        return attributes

    async def async_added_to_hass(self) -> None:
        """Follow preview and phase updates."""

        @callback
        def _update() -> None:
            self.async_write_ha_state()

        self.async_on_remove(
            async_dispatcher_connect(
                self.hass, SIGNAL_PREVIEW_UPDATED.format(self._scheduler.key), _update
            )
        )
