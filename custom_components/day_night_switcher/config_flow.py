"""Config flow for Day/Night Switcher integration."""
from __future__ import annotations

import logging
from typing import Any, Dict

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import CONF_NAME
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
import homeassistant.helpers.config_validation as cv

from .config_resolver import normalize_setting, parse_bool, parse_number
from .const import (
    AUTH_TYPES,
    DOMAIN,
    HTTP_METHODS,
    KEY_AUTH_TYPE,
    KEY_ENABLED,
    KEY_LATITUDE,
    KEY_LOG_RESPONSES,
    KEY_LONGITUDE,
    KEY_OVERRIDE_LOCATION,
    KEY_OVERRIDE_OFFSETS,
    KEY_OVERRIDE_RELIABILITY,
    KEY_PASSWORD,
    KEY_RETRIES,
    KEY_RETRY_BASE_DELAY,
    KEY_SUNRISE_OFFSET,
    KEY_SUNSET_OFFSET,
    KEY_SYNC_ON_STARTUP,
    KEY_TIME_ZONE,
    KEY_USE_24H,
    KEY_USERNAME,
    OFFSET_RANGE,
)
from .scheduler import DayNightScheduler

_LOGGER = logging.getLogger(__name__)

DEFAULT_NAME = "Day/Night"

_OFFSET = vol.All(
    vol.Coerce(float), vol.Range(min=OFFSET_RANGE[0], max=OFFSET_RANGE[1])
)


class DayNightConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for one Day/Night endpoint."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            name = user_input.pop(CONF_NAME).strip()
            if not name:
                errors[CONF_NAME] = "invalid_name"
            else:
                return self.async_create_entry(title=name, data=user_input)

        data_schema = vol.Schema({
            vol.Required(CONF_NAME, default=DEFAULT_NAME): cv.string,
            vol.Optional("day_url", default=""): cv.string,
            vol.Optional("night_url", default=""): cv.string,
            vol.Optional(KEY_AUTH_TYPE, default="digest"): vol.In(AUTH_TYPES),
            vol.Optional(KEY_USERNAME, default=""): cv.string,
            vol.Optional(KEY_PASSWORD, default=""): cv.string,
        })

        return self.async_show_form(
            step_id="user",
            data_schema=data_schema,
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> DayNightOptionsFlowHandler:
        """Get the options flow for this handler."""
        return DayNightOptionsFlowHandler()


class DayNightOptionsFlowHandler(config_entries.OptionsFlow):
    """Edit every per-endpoint setting."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Manage the options."""
        if user_input is not None:
            # unchanged options do not fire the update listener
            scheduler = self._scheduler()
            if scheduler is not None:
                scheduler.async_put_settings(user_input)
            return self.async_create_entry(title="", data=user_input)

        current = self._current_settings()

        def text(key: str) -> str:
            return current.get(key) or ""

        def flag(key: str, default: bool = False) -> bool:
            return parse_bool(current.get(key), default)

        def number(key: str, default: float) -> float:
            value = parse_number(current.get(key))
            return value if value is not None else default

        schema: Dict[Any, Any] = {
            vol.Optional(KEY_ENABLED, default=flag(KEY_ENABLED)): cv.boolean,
            vol.Optional(
                KEY_OVERRIDE_LOCATION, default=flag(KEY_OVERRIDE_LOCATION)
            ): cv.boolean,
            vol.Optional(KEY_LATITUDE, default=text(KEY_LATITUDE)): cv.string,
            vol.Optional(KEY_LONGITUDE, default=text(KEY_LONGITUDE)): cv.string,
            vol.Optional(KEY_TIME_ZONE, default=text(KEY_TIME_ZONE)): cv.string,
            vol.Optional(KEY_USE_24H, default=flag(KEY_USE_24H, True)): cv.boolean,
            vol.Optional(
                KEY_SYNC_ON_STARTUP, default=flag(KEY_SYNC_ON_STARTUP, True)
            ): cv.boolean,
            vol.Optional(
                KEY_OVERRIDE_OFFSETS, default=flag(KEY_OVERRIDE_OFFSETS)
            ): cv.boolean,
            vol.Optional(
                KEY_SUNRISE_OFFSET, default=number(KEY_SUNRISE_OFFSET, 0)
            ): _OFFSET,
            vol.Optional(
                KEY_SUNSET_OFFSET, default=number(KEY_SUNSET_OFFSET, 0)
            ): _OFFSET,
            vol.Optional(
                KEY_OVERRIDE_RELIABILITY, default=flag(KEY_OVERRIDE_RELIABILITY)
            ): cv.boolean,
            vol.Optional(
                KEY_RETRIES, default=int(number(KEY_RETRIES, 1))
            ): vol.All(vol.Coerce(int), vol.Range(min=1, max=10)),
            vol.Optional(
                KEY_RETRY_BASE_DELAY, default=number(KEY_RETRY_BASE_DELAY, 0)
            ): vol.All(vol.Coerce(float), vol.Range(min=0)),
            vol.Optional(
                KEY_LOG_RESPONSES, default=flag(KEY_LOG_RESPONSES)
            ): cv.boolean,
            vol.Optional(
                KEY_AUTH_TYPE, default=text(KEY_AUTH_TYPE) or "digest"
            ): vol.In(AUTH_TYPES),
            vol.Optional(KEY_USERNAME, default=text(KEY_USERNAME)): cv.string,
            vol.Optional(KEY_PASSWORD, default=text(KEY_PASSWORD)): cv.string,
        }

        for phase in ("day", "night"):
            schema.update({
                vol.Optional(f"{phase}_url", default=text(f"{phase}_url")): cv.string,
                vol.Optional(
                    f"{phase}_method", default=text(f"{phase}_method") or "GET"
                ): vol.In(HTTP_METHODS),
                vol.Optional(
                    f"{phase}_content_type", default=text(f"{phase}_content_type")
                ): cv.string,
                vol.Optional(
                    f"{phase}_headers", default=text(f"{phase}_headers")
                ): cv.string,
                vol.Optional(f"{phase}_body", default=text(f"{phase}_body")): cv.string,
            })

        return self.async_show_form(step_id="init", data_schema=vol.Schema(schema))

    def _scheduler(self) -> DayNightScheduler | None:
        registry = self.hass.data.get(DOMAIN, {}).get("registry")
        if registry is None:
            return None
        entry = self.config_entry
        return registry.get(entry.unique_id or entry.entry_id)

    def _current_settings(self) -> Dict[str, str]:
        """Stored settings of the endpoint, or the last submitted options."""
        entry = self.config_entry
        scheduler = self._scheduler()
        if scheduler is not None:
            return scheduler.store.as_dict()
        return {
            key: normalize_setting(key, value)
            for key, value in {**entry.data, **entry.options}.items()
        }
