"""
Config Resolver
Parses stored string settings into typed configs and merges global defaults
with per-endpoint overrides.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional

from .const import (
    ACTION_BODY,
    ACTION_CONTENT_TYPE,
    ACTION_HEADERS,
    ACTION_METHOD,
    ACTION_URL,
    DEFAULT_METHOD,
    HTTP_METHODS,
    KEY_AUTH_TYPE,
    KEY_ENABLED,
    KEY_LAST_PHASE,
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
    LATITUDE_RANGE,
    LONGITUDE_RANGE,
    OFFSET_RANGE,
)
from .models import (
    ActionSettings,
    AuthSettings,
    AuthType,
    ConfigSource,
    EffectiveConfig,
    EntityConfig,
    GlobalConfig,
    LocationSettings,
    OffsetSettings,
    Phase,
    ReliabilitySettings,
)

_LOGGER = logging.getLogger(__name__)

Getter = Callable[[str], Optional[str]]

_RANGES = {
    KEY_LATITUDE: LATITUDE_RANGE,
    KEY_LONGITUDE: LONGITUDE_RANGE,
    KEY_SUNRISE_OFFSET: OFFSET_RANGE,
    KEY_SUNSET_OFFSET: OFFSET_RANGE,
}


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def is_number_like(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str) and value.strip():
        try:
            return math.isfinite(float(value))
        except ValueError:
            return False
    return False


def parse_number(value: Optional[str]) -> Optional[float]:
    """Parse numeric text; empty or invalid input is None, never zero."""
    if value is None or not is_number_like(value):
        return None
    return float(value)


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value == "true":
        return True
    if value == "false":
        return False
    return default


def parse_text(value: Optional[str]) -> Optional[str]:
    return value if value else None


def format_number(value: float) -> str:
    """Render a number as decimal text without a trailing '.0'."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def normalize_method(value: Any) -> str:
    method = str(value if value is not None else DEFAULT_METHOD).strip().upper()
    return method if method in HTTP_METHODS else DEFAULT_METHOD


def normalize_setting(key: str, value: Any) -> str:
    """Normalise a setting value into its stored string form.

    Numeric location/offset input is clamped to range; non-numeric input is
    kept verbatim so the resolver treats it as unset.
    """
    if isinstance(value, bool):
        return "true" if value else "false"

    if key in _RANGES:
        if is_number_like(value):
            low, high = _RANGES[key]
            return format_number(clamp(float(value), low, high))
        return "" if value is None else str(value)

    if key.endswith(f"_{ACTION_URL}"):
        return "" if value is None else str(value).strip()

    if key.endswith(f"_{ACTION_METHOD}"):
        return normalize_method(value)

    if key == KEY_AUTH_TYPE:
        auth = str(value or "").strip().lower()
        return auth if auth in {t.value for t in AuthType} else AuthType.DIGEST.value

    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def _ranged(get: Getter, key: str) -> Optional[float]:
    number = parse_number(get(key))
    if number is None:
        return None
    low, high = _RANGES[key]
    return clamp(number, low, high)


def _location(get: Getter) -> LocationSettings:
    return LocationSettings(
        latitude=_ranged(get, KEY_LATITUDE),
        longitude=_ranged(get, KEY_LONGITUDE),
        time_zone=parse_text(get(KEY_TIME_ZONE)),
        use_24h=parse_bool(get(KEY_USE_24H), True),
        sync_on_startup=parse_bool(get(KEY_SYNC_ON_STARTUP), True),
    )


def _offsets(get: Getter) -> OffsetSettings:
    return OffsetSettings(
        sunrise_offset=_ranged(get, KEY_SUNRISE_OFFSET),
        sunset_offset=_ranged(get, KEY_SUNSET_OFFSET),
    )


def _reliability(get: Getter) -> ReliabilitySettings:
    retries = parse_number(get(KEY_RETRIES))
    return ReliabilitySettings(
        retries=int(retries) if retries is not None else None,
        retry_base_delay_ms=parse_number(get(KEY_RETRY_BASE_DELAY)),
        log_responses=parse_bool(get(KEY_LOG_RESPONSES), False),
    )


def _action(get: Getter, phase: Phase) -> ActionSettings:
    prefix = f"{phase.value}_"
    return ActionSettings(
        url=(get(prefix + ACTION_URL) or "").strip(),
        method=normalize_method(get(prefix + ACTION_METHOD)),
        content_type=parse_text(get(prefix + ACTION_CONTENT_TYPE)),
        headers=parse_text(get(prefix + ACTION_HEADERS)),
        body=parse_text(get(prefix + ACTION_BODY)),
    )


def read_global_config(get: Getter) -> GlobalConfig:
    """Read the global defaults from a store getter."""
    return GlobalConfig(
        location=_location(get),
        offsets=_offsets(get),
        reliability=_reliability(get),
    )


def read_entity_config(get: Getter) -> EntityConfig:
    """Read one endpoint's stored settings."""
    auth_raw = (get(KEY_AUTH_TYPE) or "").lower()
    try:
        auth_type = AuthType(auth_raw) if auth_raw else AuthType.DIGEST
    except ValueError:
        _LOGGER.warning("Unknown auth type '%s', using digest", auth_raw)
        auth_type = AuthType.DIGEST

    last_raw = get(KEY_LAST_PHASE)
    last_phase = Phase(last_raw) if last_raw in (Phase.DAY, Phase.NIGHT) else None

    return EntityConfig(
        enabled=parse_bool(get(KEY_ENABLED), False),
        override_location=parse_bool(get(KEY_OVERRIDE_LOCATION), False),
        override_offsets=parse_bool(get(KEY_OVERRIDE_OFFSETS), False),
        override_reliability=parse_bool(get(KEY_OVERRIDE_RELIABILITY), False),
        location=_location(get),
        offsets=_offsets(get),
        reliability=_reliability(get),
        auth=AuthSettings(
            auth_type=auth_type,
            username=parse_text(get(KEY_USERNAME)),
            password=parse_text(get(KEY_PASSWORD)),
        ),
        day=_action(get, Phase.DAY),
        night=_action(get, Phase.NIGHT),
        last_phase=last_phase,
    )


def resolve(global_cfg: GlobalConfig, entity: EntityConfig) -> EffectiveConfig:
    """Merge global defaults and endpoint overrides, one category at a time.

    A category whose override flag is off always takes the global value,
    whatever the endpoint has stored for it. Auth and actions are endpoint
    only.
    """
    location = entity.location if entity.override_location else global_cfg.location
    offsets = entity.offsets if entity.override_offsets else global_cfg.offsets
    reliability = (
        entity.reliability if entity.override_reliability else global_cfg.reliability
    )

    retries = reliability.retries if reliability.retries is not None else 1
    base_delay = reliability.retry_base_delay_ms or 0.0

    return EffectiveConfig(
        enabled=entity.enabled,
        latitude=location.latitude,
        longitude=location.longitude,
        time_zone=location.time_zone,
        use_24h=location.use_24h,
        sync_on_startup=location.sync_on_startup,
        sunrise_offset=offsets.sunrise_offset or 0.0,
        sunset_offset=offsets.sunset_offset or 0.0,
        retries=max(1, retries),
        retry_base_delay_ms=max(0.0, base_delay),
        log_responses=reliability.log_responses,
        auth=entity.auth,
        day=entity.day,
        night=entity.night,
        location_source=(
            ConfigSource.ENTITY if entity.override_location else ConfigSource.GLOBAL
        ),
        offsets_source=(
            ConfigSource.ENTITY if entity.override_offsets else ConfigSource.GLOBAL
        ),
    )


def resolve_from_stores(global_get: Getter, entity_get: Getter) -> EffectiveConfig:
    return resolve(read_global_config(global_get), read_entity_config(entity_get))
