"""Exceptions for Day/Night Switcher."""
from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError


class DayNightError(HomeAssistantError):
    """Base error for the integration."""


class DayNightSetupError(DayNightError):
    """An endpoint could not be attached."""


class ActionError(DayNightError):
    """A day/night action could not be delivered."""


class ActionNotConfiguredError(ActionError):
    """The action has no URL."""


class ActionRequestError(ActionError):
    """Transport failure or timeout while sending the action."""


class ActionHTTPStatusError(ActionError):
    """The endpoint answered with a non-2xx status."""

    def __init__(self, status: int, status_line: str) -> None:
        super().__init__(status_line)
        self.status = status
