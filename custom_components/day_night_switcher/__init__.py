"""
Day/Night Switcher Integration for Home Assistant.

Sends a configurable HTTP request to each endpoint at sunrise (Day) and
sunset (Night), with per-endpoint overrides of the global location,
offsets and retry settings.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STOP
from homeassistant.core import Event, HomeAssistant, callback
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.helpers.aiohttp_client import async_get_clientsession
import homeassistant.helpers.config_validation as cv

from .config_resolver import normalize_setting
from .const import (
    DOMAIN,
    ENTITY_DEFAULTS,
    ENTITY_SETTING_KEYS,
    GLOBAL_DEFAULTS,
    PLATFORMS,
    STORAGE_KEY_GLOBAL,
    VERSION,
)
from .exceptions import DayNightSetupError
from .executor import ActionExecutor
from .registry import DayNightRegistry
from .scheduler import DayNightScheduler
from .storage import KeyValueStore
from .sun_cache import SunTimesCache

_LOGGER = logging.getLogger(__name__)

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)


def endpoint_key(entry: ConfigEntry) -> str:
    """Stable identity of the endpoint behind a config entry."""
    key = entry.unique_id or entry.entry_id
    if not key:
        raise DayNightSetupError(f"Config entry '{entry.title}' has no identity")
    return key


def _store_key(key: str) -> str:
    return f"{DOMAIN}.{key}"


def _seed_settings(entry: ConfigEntry) -> Dict[str, str]:
    """Defaults for a new endpoint: built-ins overlaid with config flow data."""
    seeded = dict(ENTITY_DEFAULTS)
    for key, value in entry.data.items():
        if key in ENTITY_SETTING_KEYS and value not in (None, ""):
            seeded[key] = normalize_setting(key, value)
    return seeded


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    """Set up the shared runtime: global store, sun cache and registry."""
    hass.data.setdefault(DOMAIN, {})

    global_store = await KeyValueStore.async_create(
        hass, STORAGE_KEY_GLOBAL, GLOBAL_DEFAULTS
    )
    hass.data[DOMAIN]["global_store"] = global_store
    hass.data[DOMAIN]["sun_cache"] = SunTimesCache()
    registry = DayNightRegistry(hass, global_store)
    hass.data[DOMAIN]["registry"] = registry
    hass.data[DOMAIN]["version"] = VERSION

    @callback
    def _async_shutdown(event: Event) -> None:
        registry.async_shutdown()

    hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _async_shutdown)

    from .services import async_setup_services

    await async_setup_services(hass)

    _LOGGER.info("Day/Night Switcher v%s initialized", VERSION)
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Attach one endpoint."""
    key = endpoint_key(entry)
    domain_data = hass.data.get(DOMAIN, {})
    registry: DayNightRegistry | None = domain_data.get("registry")
    if registry is None:
        raise ConfigEntryNotReady("Day/Night runtime is not initialized")

    try:
        store = await KeyValueStore.async_create(
            hass, _store_key(key), _seed_settings(entry)
        )
        _LOGGER.debug("✓ Settings loaded for %s", entry.title)
    except Exception as e:
        _LOGGER.exception("Failed to load settings for %s: %s", entry.title, e)
        raise ConfigEntryNotReady(f"Storage initialization failed: {e}") from e

    scheduler = DayNightScheduler(
        hass,
        key,
        entry.title,
        store,
        registry.global_store,
        domain_data["sun_cache"],
        ActionExecutor(async_get_clientsession(hass), entry.title),
    )
    registry.register(scheduler)

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    scheduler.async_start()
    _LOGGER.info("✓ %s attached (%s)", entry.title, scheduler.state)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Detach one endpoint; its timers are cancelled first."""
    key = endpoint_key(entry)
    registry: DayNightRegistry = hass.data[DOMAIN]["registry"]

    scheduler = registry.unregister(key)
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if scheduler is not None:
        await scheduler.store.async_save()
    _LOGGER.info("✓ %s detached", entry.title)
    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Delete the endpoint's stored settings."""
    store = KeyValueStore(hass, _store_key(endpoint_key(entry)))
    await store.async_remove()


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Push options flow values into the endpoint's settings."""
    registry: DayNightRegistry = hass.data[DOMAIN]["registry"]
    scheduler = registry.get(endpoint_key(entry))
    if scheduler is None:
        return

    values: Dict[str, Any] = {
        key: value for key, value in entry.options.items() if key in ENTITY_SETTING_KEYS
    }
    if values:
        scheduler.async_put_settings(values)
