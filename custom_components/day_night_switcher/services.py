"""Service handlers for Day/Night Switcher."""
from __future__ import annotations

import logging

import voluptuous as vol

from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import ServiceValidationError
import homeassistant.helpers.config_validation as cv

from .const import (
    ATTR_CONFIG_ENTRY_ID,
    ATTR_KEY,
    ATTR_VALUE,
    DOMAIN,
    ENTITY_SETTING_KEYS,
    GLOBAL_KEYS,
    SERVICE_REFRESH_PREVIEW,
    SERVICE_SET_GLOBAL_SETTING,
    SERVICE_SET_SETTING,
    SERVICE_SWITCH_TO_DAY,
    SERVICE_SWITCH_TO_NIGHT,
)
from .models import Phase
from .registry import DayNightRegistry
from .scheduler import DayNightScheduler

_LOGGER = logging.getLogger(__name__)

_SETTING_VALUE = vol.Any(None, bool, int, float, cv.string)

# Service schemas
SERVICE_ENTRY_SCHEMA = vol.Schema({
    vol.Required(ATTR_CONFIG_ENTRY_ID): cv.string,
})

SERVICE_SET_SETTING_SCHEMA = vol.Schema({
    vol.Required(ATTR_CONFIG_ENTRY_ID): cv.string,
    vol.Required(ATTR_KEY): vol.In(sorted(ENTITY_SETTING_KEYS)),
    vol.Required(ATTR_VALUE): _SETTING_VALUE,
})

SERVICE_SET_GLOBAL_SETTING_SCHEMA = vol.Schema({
    vol.Required(ATTR_KEY): vol.In(sorted(GLOBAL_KEYS)),
    vol.Required(ATTR_VALUE): _SETTING_VALUE,
})

_SERVICES = (
    SERVICE_SWITCH_TO_DAY,
    SERVICE_SWITCH_TO_NIGHT,
    SERVICE_REFRESH_PREVIEW,
    SERVICE_SET_SETTING,
    SERVICE_SET_GLOBAL_SETTING,
)


def _registry(hass: HomeAssistant) -> DayNightRegistry:
    return hass.data[DOMAIN]["registry"]


def _scheduler_for(hass: HomeAssistant, call: ServiceCall) -> DayNightScheduler:
    """Look up the scheduler behind the call's config entry."""
    entry_id = call.data[ATTR_CONFIG_ENTRY_ID]
    entry = hass.config_entries.async_get_entry(entry_id)
    if entry is None or entry.domain != DOMAIN:
        raise ServiceValidationError(f"Unknown config entry: {entry_id}")

    scheduler = _registry(hass).get(entry.unique_id or entry.entry_id)
    if scheduler is None:
        raise ServiceValidationError(f"Config entry {entry_id} is not loaded")
    return scheduler


async def async_setup_services(hass: HomeAssistant) -> None:
    """Set up services for Day/Night Switcher."""

    async def handle_switch_to_day(call: ServiceCall) -> None:
        await _scheduler_for(hass, call).async_manual_switch(Phase.DAY)

    async def handle_switch_to_night(call: ServiceCall) -> None:
        await _scheduler_for(hass, call).async_manual_switch(Phase.NIGHT)

    async def handle_refresh_preview(call: ServiceCall) -> None:
        """Recompute the preview; timers and network are untouched."""
        _scheduler_for(hass, call).async_refresh_preview()

    async def handle_set_setting(call: ServiceCall) -> None:
        scheduler = _scheduler_for(hass, call)
        scheduler.async_put_setting(call.data[ATTR_KEY], call.data[ATTR_VALUE])

    async def handle_set_global_setting(call: ServiceCall) -> None:
        await _registry(hass).async_put_global_setting(
            call.data[ATTR_KEY], call.data[ATTR_VALUE]
        )

    hass.services.async_register(
        DOMAIN,
        SERVICE_SWITCH_TO_DAY,
        handle_switch_to_day,
        schema=SERVICE_ENTRY_SCHEMA,
    )

    hass.services.async_register(
        DOMAIN,
        SERVICE_SWITCH_TO_NIGHT,
        handle_switch_to_night,
        schema=SERVICE_ENTRY_SCHEMA,
    )

    hass.services.async_register(
        DOMAIN,
        SERVICE_REFRESH_PREVIEW,
        handle_refresh_preview,
        schema=SERVICE_ENTRY_SCHEMA,
    )

    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_SETTING,
        handle_set_setting,
        schema=SERVICE_SET_SETTING_SCHEMA,
    )

    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_GLOBAL_SETTING,
        handle_set_global_setting,
        schema=SERVICE_SET_GLOBAL_SETTING_SCHEMA,
    )

    _LOGGER.debug("Services registered: %d services available", len(_SERVICES))

