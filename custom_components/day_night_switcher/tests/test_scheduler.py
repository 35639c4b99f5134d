# custom_components/day_night_switcher/tests/test_scheduler.py
from datetime import UTC, date, datetime, time, timedelta
import logging
from unittest.mock import patch

import pytest
from pytest_homeassistant_custom_component.common import async_fire_time_changed

from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.util import dt as dt_util

from custom_components.day_night_switcher.exceptions import ActionRequestError
from custom_components.day_night_switcher.executor import ActionExecutor
from custom_components.day_night_switcher.models import Phase, SunTimes
from custom_components.day_night_switcher.scheduler import (
    DayNightScheduler,
    SchedulerState,
    TimerKind,
    apply_offset,
    expected_phase,
)
from custom_components.day_night_switcher.sun_cache import SunTimesCache


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest.mark.asyncio
async def test_offset_is_applied_in_minutes():
    raw = _utc(2024, 6, 1, 6, 47)
    assert apply_offset(raw, -720) == raw - timedelta(hours=12)
    assert apply_offset(raw, 15) == _utc(2024, 6, 1, 7, 2)
    assert apply_offset(raw, None) == raw


@pytest.mark.asyncio
async def test_expected_phase_boundaries():
    sunrise = _utc(2024, 6, 1, 6, 47)
    sunset = _utc(2024, 6, 1, 20, 12)
    assert expected_phase(sunrise, sunrise, sunset) is Phase.DAY
    assert expected_phase(sunset, sunrise, sunset) is Phase.NIGHT
    assert expected_phase(_utc(2024, 6, 1, 3, 0), sunrise, sunset) is Phase.NIGHT


@pytest.mark.asyncio
async def test_morning_arms_todays_events(hass, freezer, scheduler):
    freezer.move_to("2024-06-01 06:00:00+00:00")

    scheduler.async_put_setting("enabled", True)

    targets = scheduler.timer_targets
    assert scheduler.state is SchedulerState.SCHEDULED
    assert targets[TimerKind.SUNRISE] == _utc(2024, 6, 1, 6, 47)
    assert targets[TimerKind.SUNSET] == _utc(2024, 6, 1, 20, 12)
    assert targets[TimerKind.GUARD] == _utc(2024, 6, 1, 12, 0)
    assert _utc(2024, 6, 1, 7, 0) <= targets[TimerKind.RECOMPUTE] <= _utc(2024, 6, 1, 7, 1)
    assert scheduler.preview == (
        "Sunrise → Day: Sat, Jun 01, 06:47 UTC | Sunset → Night: Sat, Jun 01, 20:12 UTC"
    )

    details = scheduler.preview_details
    assert details["next_phase"] == "day"
    assert details["next_switch_relative"] == "in 47m"
    assert details["location_source"] == "global"


@pytest.mark.asyncio
async def test_evening_draws_both_events_from_tomorrow(hass, freezer, scheduler):
    freezer.move_to("2024-06-01 21:00:00+00:00")

    scheduler.async_put_setting("enabled", True)

    targets = scheduler.timer_targets
    assert targets[TimerKind.SUNRISE] == _utc(2024, 6, 2, 6, 47)
    assert targets[TimerKind.SUNSET] == _utc(2024, 6, 2, 20, 12)
    assert scheduler.preview.startswith("Sunrise → Day: Sun, Jun 02, 06:47 UTC")


@pytest.mark.asyncio
async def test_offsets_shift_both_today_and_tomorrow(hass, freezer, scheduler, global_store):
    freezer.move_to("2024-06-01 06:30:00+00:00")
    global_store.set_many({"sunrise_offset": "-30", "sunset_offset": "15"})

    scheduler.async_put_setting("enabled", True)

    targets = scheduler.timer_targets
    # 06:17 today has passed, so tomorrow's adjusted sunrise is used
    assert targets[TimerKind.SUNRISE] == _utc(2024, 6, 2, 6, 17)
    assert targets[TimerKind.SUNSET] == _utc(2024, 6, 1, 20, 27)
    assert scheduler.preview_details["offsets"] == "sunrise -30 min, sunset +15 min"


@pytest.mark.asyncio
async def test_entity_offsets_ignored_without_override(hass, freezer, scheduler, entity_store):
    freezer.move_to("2024-06-01 06:00:00+00:00")
    entity_store.set_many({"sunrise_offset": "30"})

    scheduler.async_put_setting("enabled", True)
    assert scheduler.timer_targets[TimerKind.SUNRISE] == _utc(2024, 6, 1, 6, 47)

    scheduler.async_put_setting("override_offsets", True)
    assert scheduler.timer_targets[TimerKind.SUNRISE] == _utc(2024, 6, 1, 7, 17)
    assert scheduler.preview_details["offsets_source"] == "entity"


@pytest.mark.asyncio
async def test_sync_on_startup_switches_to_day_once(
    hass, freezer, scheduler, global_store, entity_store, executor
):
    freezer.move_to("2024-06-01 12:00:00+00:00")
    global_store.set("sync_on_startup", "true")
    entity_store.set("last_phase", "night")

    scheduler.async_put_setting("enabled", True)
    await hass.async_block_till_done()

    executor.async_invoke.assert_awaited_once()
    assert executor.async_invoke.await_args.args[0] is Phase.DAY
    assert scheduler.last_phase is Phase.DAY
    assert entity_store.get("last_phase") == "day"


@pytest.mark.asyncio
async def test_sync_on_startup_skips_matching_phase(
    hass, freezer, scheduler, global_store, entity_store, executor
):
    freezer.move_to("2024-06-01 12:00:00+00:00")
    global_store.set("sync_on_startup", "true")
    entity_store.set("last_phase", "day")

    scheduler.async_put_setting("enabled", True)
    await hass.async_block_till_done()

    executor.async_invoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_disabled_only_keeps_recompute_timer(hass, scheduler):
    scheduler.async_reschedule()

    assert scheduler.state is SchedulerState.DISABLED
    assert set(scheduler.timer_targets) == {TimerKind.RECOMPUTE}
    assert scheduler.preview == "Switching is disabled"


@pytest.mark.asyncio
async def test_disable_cancels_every_timer(hass, freezer, scheduler):
    freezer.move_to("2024-06-01 06:00:00+00:00")
    scheduler.async_put_setting("enabled", True)
    assert scheduler.timer_targets

    scheduler.async_put_setting("enabled", False)

    assert scheduler.timer_targets == {}
    assert scheduler.state is SchedulerState.DISABLED
    assert scheduler.preview == "Switching is disabled"


@pytest.mark.asyncio
async def test_invalid_location_keeps_recompute_and_guard(hass, scheduler, global_store):
    global_store.set("latitude", "")

    scheduler.async_put_setting("enabled", True)

    assert scheduler.state is SchedulerState.ERROR
    assert set(scheduler.timer_targets) == {TimerKind.RECOMPUTE, TimerKind.GUARD}
    assert scheduler.preview == "Invalid latitude/longitude"


@pytest.mark.asyncio
async def test_no_solar_event_is_an_error(
    hass, freezer, entity_store, global_store, executor
):
    freezer.move_to("2024-06-21 12:00:00+00:00")
    polar = SunTimesCache(compute=lambda day, lat, lon, tz: SunTimes())
    scheduler = DayNightScheduler(
        hass, "polar", "Polar", entity_store, global_store, polar, executor
    )

    scheduler.async_put_setting("enabled", True)

    assert scheduler.state is SchedulerState.ERROR
    assert scheduler.preview == "No sunrise/sunset today at this location"
    assert TimerKind.SUNRISE not in scheduler.timer_targets
    scheduler.release()


@pytest.mark.asyncio
async def test_far_target_is_clamped_to_horizon(
    hass, freezer, entity_store, global_store, executor
):
    def drifting(day, lat, lon, tz):
        shift = timedelta(hours=2 * (day - date(2024, 6, 1)).days)
        return SunTimes(
            sunrise=datetime.combine(day, time(6, 47), tzinfo=UTC) + shift,
            sunset=datetime.combine(day, time(20, 12), tzinfo=UTC) + shift,
        )

    freezer.move_to("2024-06-01 07:00:00+00:00")
    scheduler = DayNightScheduler(
        hass, "drift", "Drift", entity_store, global_store,
        SunTimesCache(compute=drifting), executor,
    )

    scheduler.async_put_setting("enabled", True)

    assert scheduler.timer_targets[TimerKind.SUNRISE] == _utc(2024, 6, 2, 7, 0)
    assert scheduler.preview.startswith("Sunrise → Day: Sun, Jun 02, 08:47 UTC")
    scheduler.release()


@pytest.mark.asyncio
async def test_sunrise_timer_invokes_day_then_settles(
    hass, freezer, scheduler, executor
):
    freezer.move_to("2024-06-01 06:00:00+00:00")
    scheduler.async_put_setting("enabled", True)

    async_fire_time_changed(hass, dt_util.utcnow() + timedelta(minutes=48))
    await hass.async_block_till_done()

    executor.async_invoke.assert_awaited_once()
    assert executor.async_invoke.await_args.args[0] is Phase.DAY
    assert scheduler.last_phase is Phase.DAY
    assert TimerKind.SETTLE in scheduler.timer_targets
    assert TimerKind.SUNRISE not in scheduler.timer_targets


@pytest.mark.asyncio
async def test_recompute_timer_clears_cache(hass, freezer, scheduler, sun_cache):
    freezer.move_to("2024-06-01 08:00:00+00:00")
    scheduler.async_put_setting("enabled", True)
    # today and tomorrow
    assert sun_cache.get_stats()["misses"] == 2

    async_fire_time_changed(hass, dt_util.utcnow() + timedelta(minutes=62))
    await hass.async_block_till_done()

    assert sun_cache.get_stats()["misses"] == 4
    assert TimerKind.RECOMPUTE in scheduler.timer_targets


@pytest.mark.asyncio
async def test_release_stops_all_transitions(hass, freezer, scheduler):
    freezer.move_to("2024-06-01 06:00:00+00:00")
    scheduler.async_put_setting("enabled", True)

    scheduler.release()
    scheduler.async_reschedule()

    assert scheduler.timer_targets == {}
    assert scheduler.state is SchedulerState.RELEASED


@pytest.mark.asyncio
async def test_refresh_preview_touches_no_timers(
    hass, freezer, scheduler, entity_store, executor
):
    freezer.move_to("2024-06-01 06:00:00+00:00")
    entity_store.set("enabled", "true")

    scheduler.async_refresh_preview()

    assert scheduler.timer_targets == {}
    assert scheduler.preview.startswith("Sunrise → Day: Sat, Jun 01, 06:47 UTC")
    executor.async_invoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_switch_keeps_last_phase(hass, scheduler, executor):
    executor.async_invoke.side_effect = ActionRequestError("connection refused")

    assert await scheduler.async_switch_phase(Phase.NIGHT) is False
    assert scheduler.last_phase is None


@pytest.mark.asyncio
async def test_manual_switch_allowed_while_disabled(hass, scheduler, executor, caplog):
    caplog.set_level(logging.INFO)

    assert await scheduler.async_manual_switch(Phase.NIGHT) is True

    assert scheduler.last_phase is Phase.NIGHT
    assert "manual night with switching disabled" in caplog.text


@pytest.mark.asyncio
async def test_batch_update_reschedules_once(hass, scheduler):
    with patch.object(scheduler, "async_reschedule") as reschedule:
        scheduler.async_put_settings(
            {"enabled": True, "override_offsets": True, "sunrise_offset": 10}
        )

    reschedule.assert_called_once()
    assert scheduler.store.get("sunrise_offset") == "10"


@pytest.mark.asyncio
async def test_action_setting_does_not_reschedule(hass, scheduler):
    with patch.object(scheduler, "async_reschedule") as reschedule:
        scheduler.async_put_setting("day_url", "  http://porch.local/on  ")

    reschedule.assert_not_called()
    assert scheduler.store.get("day_url") == "http://porch.local/on"


@pytest.mark.asyncio
async def test_enable_without_urls_warns(hass, scheduler, entity_store, caplog):
    entity_store.set("night_url", "")

    scheduler.async_put_setting("enabled", True)

    assert "URLs are not configured" in caplog.text
    assert scheduler.config.enabled is True


@pytest.mark.asyncio
async def test_invalid_time_zone_warns_once_per_step(
    hass, freezer, scheduler, global_store, entity_store, caplog
):
    freezer.move_to("2024-06-01 12:00:00+00:00")
    global_store.set_many({"time_zone": "Not/AZone", "sync_on_startup": "true"})
    entity_store.set("last_phase", "day")

    scheduler.async_put_setting("enabled", True)

    warnings = [r for r in caplog.records if "Invalid time zone" in r.getMessage()]
    # one for the preview, one for the startup phase check
    assert len(warnings) == 2
    assert scheduler.preview.startswith("Sunrise → Day: Sun, Jun 02, 06:47 UTC")


@pytest.mark.asyncio
async def test_rejected_credentials_fail_the_switch(
    hass, aioclient_mock, entity_store, global_store, sun_cache
):
    aioclient_mock.get("http://porch.local/night", text="ok")
    entity_store.set_many(
        {"auth_type": "digest", "username": "ad:min", "password": "secret"}
    )
    scheduler = DayNightScheduler(
        hass, "porch", "Porch", entity_store, global_store, sun_cache,
        ActionExecutor(async_get_clientsession(hass), "Porch"),
    )

    assert await scheduler.async_switch_phase(Phase.NIGHT) is False
    assert scheduler.last_phase is None
    assert aioclient_mock.call_count == 0
    scheduler.release()
