"""Day/Night: per-endpoint solar schedule state machine."""
from __future__ import annotations

import json
import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Callable, Dict, Mapping, Optional

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import (
    async_call_later,
    async_track_point_in_utc_time,
)
from homeassistant.util import dt as dt_util

from .config_resolver import normalize_setting, resolve_from_stores
from .const import (
    ACTION_URL,
    GUARD_INTERVAL,
    KEY_ENABLED,
    KEY_LAST_PHASE,
    KEY_PREVIEW,
    KEY_PREVIEW_DETAILS,
    LATITUDE_RANGE,
    LONGITUDE_RANGE,
    MAX_TIMER_HORIZON,
    PREVIEW_DISABLED,
    PREVIEW_INVALID_LOCATION,
    PREVIEW_NO_SOLAR_EVENT,
    RECOMPUTE_INTERVAL,
    RECOMPUTE_JITTER_SECONDS,
    SCHEDULE_KEYS,
    SETTLE_DELAY,
    SIGNAL_PREVIEW_UPDATED,
)
from .exceptions import ActionError
from .executor import ActionExecutor
from .models import EffectiveConfig, Phase, SunTimes
from .preview import (
    Preview,
    PreviewMeta,
    build_preview,
    format_local,
    resolve_time_zone,
    status_preview,
)
from .storage import KeyValueStore
from .sun_cache import SunTimesCache

_LOGGER = logging.getLogger(__name__)


class TimerKind(StrEnum):
    SUNRISE = "sunrise"
    SUNSET = "sunset"
    RECOMPUTE = "recompute"
    GUARD = "guard"
    SETTLE = "settle"


class SchedulerState(StrEnum):
    DISABLED = "disabled"
    SCHEDULED = "scheduled"
    ERROR = "error"
    RELEASED = "released"


@dataclass
class ArmedTimer:
    when: datetime
    cancel: CALLBACK_TYPE
    clamped: bool = False


@dataclass(frozen=True)
class SolarWindow:
    """Today's offset-adjusted events and the next instant of each."""

    sunrise_raw: datetime
    sunset_raw: datetime
    sunrise_today: datetime
    sunset_today: datetime
    next_sunrise: datetime
    next_sunset: datetime


def apply_offset(when: datetime, minutes: Optional[float]) -> datetime:
    return when + timedelta(milliseconds=(minutes or 0) * 60000)


def valid_location(config: EffectiveConfig) -> bool:
    lat, lon = config.latitude, config.longitude
    if lat is None or lon is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return (
        LATITUDE_RANGE[0] <= lat <= LATITUDE_RANGE[1]
        and LONGITUDE_RANGE[0] <= lon <= LONGITUDE_RANGE[1]
    )


def expected_phase(now: datetime, sunrise: datetime, sunset: datetime) -> Phase:
    """Day between adjusted sunrise (inclusive) and sunset, else Night."""
    return Phase.DAY if sunrise <= now < sunset else Phase.NIGHT


def _describe_delay(delay: timedelta) -> str:
    total = int(delay.total_seconds())
    return f"{total // 3600}h {(total % 3600) // 60}m"


class DayNightScheduler:
    """
    Timer state machine for one endpoint.

    Every reschedule cancels the whole timer table before arming anything,
    so at most one timer of each kind is ever live.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        key: str,
        name: str,
        store: KeyValueStore,
        global_store: KeyValueStore,
        sun_cache: SunTimesCache,
        executor: ActionExecutor,
    ):
        """Initialize scheduler."""
        self._hass = hass
        self._key = key
        self._name = name
        self._store = store
        self._global_store = global_store
        self._sun_cache = sun_cache
        self._executor = executor
        self._timers: Dict[TimerKind, ArmedTimer] = {}
        self._state = SchedulerState.DISABLED
        self._released = False

    @property
    def key(self) -> str:
        return self._key

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def config(self) -> EffectiveConfig:
        """Resolved configuration, re-derived on every read."""
        return resolve_from_stores(self._global_store.get, self._store.get)

    @property
    def timer_targets(self) -> Dict[TimerKind, datetime]:
        return {kind: timer.when for kind, timer in self._timers.items()}

    @property
    def last_phase(self) -> Optional[Phase]:
        raw = self._store.get(KEY_LAST_PHASE)
        return Phase(raw) if raw in (Phase.DAY, Phase.NIGHT) else None

    @property
    def preview(self) -> str:
        return self._store.get(KEY_PREVIEW) or ""

    @property
    def preview_details(self) -> Dict[str, Any]:
        raw = self._store.get(KEY_PREVIEW_DETAILS)
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except ValueError:
            return {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @callback
    def async_start(self) -> None:
        """Start scheduling if the endpoint is enabled."""
        if self.config.enabled:
            self.async_reschedule()
        else:
            _LOGGER.debug("%s: loaded disabled", self._name)

    @callback
    def release(self) -> None:
        """Cancel every timer; no further transitions happen."""
        self._cancel_timers()
        self._released = True
        self._state = SchedulerState.RELEASED
        _LOGGER.debug("%s: released, timers cleared", self._name)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @callback
    def async_put_setting(self, key: str, value: Any) -> None:
        self.async_put_settings({key: value})

    @callback
    def async_put_settings(self, values: Mapping[str, Any]) -> None:
        """Normalise, persist and react to a batch of setting changes."""
        was_enabled = self.config.enabled
        normalized = {key: normalize_setting(key, value) for key, value in values.items()}

        if normalized.get(KEY_ENABLED) == "true":
            merged = {**self._store.as_dict(), **normalized}
            if not merged.get(f"{Phase.DAY}_{ACTION_URL}") or not merged.get(
                f"{Phase.NIGHT}_{ACTION_URL}"
            ):
                _LOGGER.warning(
                    "%s: enabled but Day and/or Night URLs are not configured",
                    self._name,
                )

        self._store.set_many(normalized)

        if not SCHEDULE_KEYS.intersection(normalized):
            return

        enabled = self.config.enabled
        if enabled:
            _LOGGER.info("%s: rescheduling due to setting change", self._name)
            self.async_reschedule()
        elif was_enabled or KEY_ENABLED in normalized:
            self.async_disable()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    @callback
    def async_disable(self) -> None:
        """Cancel all timers and show the disabled preview."""
        if self._released:
            return
        _LOGGER.info("%s: disabling schedules", self._name)
        self._cancel_timers()
        self._state = SchedulerState.DISABLED
        self._save_preview(status_preview(PREVIEW_DISABLED, "disabled"))

    @callback
    def async_reschedule(self) -> None:
        """Recompute the schedule and re-arm every timer."""
        if self._released:
            return

        self._cancel_timers()
        config = self.config
        now = dt_util.utcnow()

        jitter = random.uniform(0, RECOMPUTE_JITTER_SECONDS)
        self._arm_later(
            TimerKind.RECOMPUTE,
            RECOMPUTE_INTERVAL + timedelta(seconds=jitter),
            self._handle_recompute,
        )

        if not config.enabled:
            _LOGGER.info("%s: scheduling disabled", self._name)
            self._state = SchedulerState.DISABLED
            self._save_preview(status_preview(PREVIEW_DISABLED, "disabled"))
            return

        self._arm_later(TimerKind.GUARD, GUARD_INTERVAL, self._handle_guard)

        if not valid_location(config):
            _LOGGER.warning(
                "%s: invalid latitude/longitude; scheduling skipped", self._name
            )
            self._state = SchedulerState.ERROR
            self._save_preview(status_preview(PREVIEW_INVALID_LOCATION, "error"))
            return

        window = self._solar_window(config, now)
        if window is None:
            _LOGGER.warning(
                "%s: no sunrise/sunset for this date at the configured location",
                self._name,
            )
            self._state = SchedulerState.ERROR
            self._save_preview(status_preview(PREVIEW_NO_SOLAR_EVENT, "error"))
            return

        self._arm_action(TimerKind.SUNRISE, window.next_sunrise, Phase.DAY, now)
        self._arm_action(TimerKind.SUNSET, window.next_sunset, Phase.NIGHT, now)
        self._state = SchedulerState.SCHEDULED

        preview = self._build_preview(config, window, now)
        self._save_preview(preview)
        _LOGGER.info("%s: scheduled: %s", self._name, preview.text)

        if config.sync_on_startup:
            self._check_current_phase(config, window, now)

    @callback
    def async_refresh_preview(self) -> None:
        """Recompute the preview only; timers and network are untouched."""
        config = self.config
        now = dt_util.utcnow()

        if not config.enabled:
            self._save_preview(status_preview(PREVIEW_DISABLED, "disabled"))
            return
        if not valid_location(config):
            self._save_preview(status_preview(PREVIEW_INVALID_LOCATION, "error"))
            return

        window = self._solar_window(config, now)
        if window is None:
            self._save_preview(status_preview(PREVIEW_NO_SOLAR_EVENT, "error"))
            return
        self._save_preview(self._build_preview(config, window, now))

    def _solar_window(
        self, config: EffectiveConfig, now: datetime
    ) -> Optional[SolarWindow]:
        """Today's adjusted events and the next future instant of each.

        None when today has no sunrise or no sunset.
        """
        today: SunTimes = self._sun_cache.get(now, config.latitude, config.longitude)
        if today.sunrise is None or today.sunset is None:
            return None

        sunrise_today = apply_offset(today.sunrise, config.sunrise_offset)
        sunset_today = apply_offset(today.sunset, config.sunset_offset)

        tomorrow: Optional[SunTimes] = None

        def _next(
            today_adjusted: datetime,
            pick: Callable[[SunTimes], Optional[datetime]],
            offset: float,
        ) -> datetime:
            nonlocal tomorrow
            if today_adjusted > now:
                return today_adjusted
            if tomorrow is None:
                tomorrow = self._sun_cache.get(
                    now + timedelta(days=1), config.latitude, config.longitude
                )
            raw = pick(tomorrow)
            # No event tomorrow: keep today's so there is always a value
            return apply_offset(raw, offset) if raw is not None else today_adjusted

        return SolarWindow(
            sunrise_raw=today.sunrise,
            sunset_raw=today.sunset,
            sunrise_today=sunrise_today,
            sunset_today=sunset_today,
            next_sunrise=_next(sunrise_today, lambda t: t.sunrise, config.sunrise_offset),
            next_sunset=_next(sunset_today, lambda t: t.sunset, config.sunset_offset),
        )

    def _build_preview(
        self, config: EffectiveConfig, window: SolarWindow, now: datetime
    ) -> Preview:
        return build_preview(
            window.next_sunrise,
            window.next_sunset,
            now,
            config.time_zone,
            config.use_24h,
            PreviewMeta(
                latitude=config.latitude,
                longitude=config.longitude,
                location_source=config.location_source,
                sunrise_offset=config.sunrise_offset,
                sunset_offset=config.sunset_offset,
                offsets_source=config.offsets_source,
            ),
        )

    def _check_current_phase(
        self, config: EffectiveConfig, window: SolarWindow, now: datetime
    ) -> None:
        """Send the expected phase now if it differs from the last one sent."""
        expected = expected_phase(now, window.sunrise_today, window.sunset_today)
        last = self.last_phase

        zone = resolve_time_zone(config.time_zone)

        def fmt(when: datetime) -> str:
            return format_local(when, zone, config.use_24h)

        _LOGGER.debug(
            "%s: phase check at %s: sunrise %s (offset %s min) -> %s; "
            "sunset %s (offset %s min) -> %s; expected %s; last %s",
            self._name,
            fmt(now),
            fmt(window.sunrise_raw),
            config.sunrise_offset,
            fmt(window.sunrise_today),
            fmt(window.sunset_raw),
            config.sunset_offset,
            fmt(window.sunset_today),
            expected,
            last or "unknown",
        )

        if last is expected:
            _LOGGER.debug("%s: already in %s mode", self._name, expected)
            return

        _LOGGER.info("%s: switching to %s mode now", self._name, expected)
        self._hass.async_create_task(self.async_switch_phase(expected))

    async def async_switch_phase(self, phase: Phase) -> bool:
        """Invoke the action for ``phase``; record it on success."""
        _LOGGER.info("%s: switching to %s mode...", self._name, phase)
        try:
            await self._executor.async_invoke(phase, self.config)
        except ActionError as err:
            _LOGGER.error("%s: failed to switch to %s mode: %s", self._name, phase, err)
            return False

        self._store.set(KEY_LAST_PHASE, phase.value)
        async_dispatcher_send(self._hass, SIGNAL_PREVIEW_UPDATED.format(self._key))
        _LOGGER.info("%s: successfully switched to %s mode", self._name, phase)
        return True

    async def async_manual_switch(self, phase: Phase) -> bool:
        if not self.config.enabled:
            _LOGGER.info("%s: manual %s with switching disabled", self._name, phase)
        return await self.async_switch_phase(phase)

    # ------------------------------------------------------------------
    # Timer table
    # ------------------------------------------------------------------

    def _cancel_timers(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def _cancel_timer(self, kind: TimerKind) -> None:
        timer = self._timers.pop(kind, None)
        if timer is not None:
            timer.cancel()

    def _arm_later(
        self,
        kind: TimerKind,
        delay: timedelta,
        action: Callable[[datetime], None],
    ) -> None:
        self._cancel_timer(kind)
        cancel = async_call_later(self._hass, delay, action)
        self._timers[kind] = ArmedTimer(when=dt_util.utcnow() + delay, cancel=cancel)
        _LOGGER.debug("%s: %s timer in %s", self._name, kind, _describe_delay(delay))

    def _arm_action(
        self, kind: TimerKind, when: datetime, phase: Phase, now: datetime
    ) -> None:
        """Arm a one-shot action timer, clamped to the 24 h horizon."""
        self._cancel_timer(kind)
        delay = when - now
        if delay <= timedelta(0):
            _LOGGER.debug("%s: %s target %s is not in the future", self._name, kind, when)
            return

        clamped = delay > MAX_TIMER_HORIZON
        point = now + MAX_TIMER_HORIZON if clamped else when

        @callback
        def _fire(fired_at: datetime) -> None:
            self._timers.pop(kind, None)
            if clamped:
                self.async_reschedule()
                return
            self._hass.async_create_task(self.async_switch_phase(phase))
            self._arm_later(TimerKind.SETTLE, SETTLE_DELAY, self._handle_settle)

        cancel = async_track_point_in_utc_time(self._hass, _fire, point)
        self._timers[kind] = ArmedTimer(when=point, cancel=cancel, clamped=clamped)
        _LOGGER.debug(
            "%s: scheduled %s action in %s at %s",
            self._name,
            phase,
            _describe_delay(point - now),
            when.isoformat(),
        )

    @callback
    def _handle_recompute(self, _now: datetime) -> None:
        self._timers.pop(TimerKind.RECOMPUTE, None)
        self._sun_cache.clear()
        self.async_reschedule()

    @callback
    def _handle_guard(self, _now: datetime) -> None:
        self._timers.pop(TimerKind.GUARD, None)
        self.async_reschedule()

    @callback
    def _handle_settle(self, _now: datetime) -> None:
        self._timers.pop(TimerKind.SETTLE, None)
        self.async_reschedule()

    # ------------------------------------------------------------------
    # Preview persistence
    # ------------------------------------------------------------------

    def _save_preview(self, preview: Preview) -> None:
        self._store.set_many(
            {
                KEY_PREVIEW: preview.text,
                KEY_PREVIEW_DETAILS: json.dumps(preview.details),
            }
        )
        async_dispatcher_send(self._hass, SIGNAL_PREVIEW_UPDATED.format(self._key))
