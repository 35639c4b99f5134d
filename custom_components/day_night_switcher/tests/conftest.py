# custom_components/day_night_switcher/tests/conftest.py
from datetime import UTC, date, datetime, time, tzinfo
from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.day_night_switcher.const import (
    ENTITY_DEFAULTS,
    GLOBAL_DEFAULTS,
    STORAGE_KEY_GLOBAL,
)
from custom_components.day_night_switcher.models import SunTimes
from custom_components.day_night_switcher.scheduler import DayNightScheduler
from custom_components.day_night_switcher.storage import KeyValueStore
from custom_components.day_night_switcher.sun_cache import SunTimesCache

LONDON_LAT = "51.507351"
LONDON_LON = "-0.127758"


@pytest.fixture(autouse=True)
async def auto_enable_custom_integrations(hass, enable_custom_integrations):
    """Load the integration from custom_components and run in UTC."""
    await hass.config.async_set_time_zone("UTC")
    yield


def fixed_sun_times(day: date, latitude: float, longitude: float, tz: tzinfo) -> SunTimes:
    """Sunrise 06:47 and sunset 20:12 UTC every day."""
    return SunTimes(
        sunrise=datetime.combine(day, time(6, 47), tzinfo=UTC),
        sunset=datetime.combine(day, time(20, 12), tzinfo=UTC),
    )


@pytest.fixture
def sun_cache():
    return SunTimesCache(compute=fixed_sun_times)


@pytest.fixture
def executor():
    mock = MagicMock()
    mock.async_invoke = AsyncMock(return_value=None)
    return mock


@pytest.fixture
async def global_store(hass):
    store = await KeyValueStore.async_create(hass, STORAGE_KEY_GLOBAL, GLOBAL_DEFAULTS)
    store.set_many(
        {"latitude": LONDON_LAT, "longitude": LONDON_LON, "sync_on_startup": "false"}
    )
    return store


@pytest.fixture
async def entity_store(hass):
    store = await KeyValueStore.async_create(
        hass, "day_night_switcher.porch", ENTITY_DEFAULTS
    )
    store.set_many(
        {
            "day_url": "http://porch.local/day",
            "night_url": "http://porch.local/night",
        }
    )
    return store


@pytest.fixture
async def scheduler(hass, entity_store, global_store, sun_cache, executor):
    instance = DayNightScheduler(
        hass, "porch", "Porch", entity_store, global_store, sun_cache, executor
    )
    yield instance
    instance.release()
