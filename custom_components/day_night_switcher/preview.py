"""Day/Night: human readable schedule previews."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Dict, Optional

from homeassistant.util import dt as dt_util

from .models import ConfigSource, Phase

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewMeta:
    """Location and offsets shown next to the next switch times."""

    latitude: Optional[float]
    longitude: Optional[float]
    location_source: ConfigSource
    sunrise_offset: float
    sunset_offset: float
    offsets_source: ConfigSource


@dataclass(frozen=True)
class Preview:
    text: str
    details: Dict[str, Any]


def resolve_time_zone(tz_id: Optional[str]) -> tzinfo:
    """Return the zone for ``tz_id``, or Home Assistant's zone if invalid."""
    if tz_id:
        try:
            zone = dt_util.get_time_zone(tz_id)
        except ValueError:
            zone = None
        if zone is not None:
            return zone
        _LOGGER.warning("Invalid time zone '%s', falling back to server time", tz_id)
    return dt_util.get_default_time_zone()


def format_local(
    when: datetime, zone: tzinfo | str | None = None, use_24h: bool = True
) -> str:
    if not isinstance(zone, tzinfo):
        zone = resolve_time_zone(zone)
    local = when.astimezone(zone)
    clock = "%H:%M" if use_24h else "%I:%M %p"
    return local.strftime(f"%a, %b %d, {clock} %Z")


def format_relative(when: datetime, now: datetime) -> str:
    """Short relative text such as 'in 3h 12m' or '5m ago'."""
    seconds = (when - now).total_seconds()
    past = seconds < 0
    seconds = abs(seconds)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes or not hours:
        parts.append(f"{minutes}m")
    text = " ".join(parts)
    return f"{text} ago" if past else f"in {text}"


def format_coord(value: Optional[float]) -> str:
    return f"{value:.6f}" if value is not None else "—"


def format_signed(value: float) -> str:
    number = int(value) if float(value).is_integer() else value
    return f"+{number}" if value >= 0 else f"{number}"


def preview_text(
    next_sunrise: datetime,
    next_sunset: datetime,
    zone: tzinfo | str | None = None,
    use_24h: bool = True,
) -> str:
    if not isinstance(zone, tzinfo):
        zone = resolve_time_zone(zone)
    return (
        f"Sunrise → Day: {format_local(next_sunrise, zone, use_24h)}"
        f" | Sunset → Night: {format_local(next_sunset, zone, use_24h)}"
    )


def build_preview(
    next_sunrise: datetime,
    next_sunset: datetime,
    now: datetime,
    tz_id: Optional[str],
    use_24h: bool,
    meta: PreviewMeta,
) -> Preview:
    """Project the next switch instants into display text and details.

    Pure function: nothing here feeds back into scheduling.
    """
    zone = resolve_time_zone(tz_id)
    next_is_sunrise = next_sunrise < next_sunset
    next_when = next_sunrise if next_is_sunrise else next_sunset
    next_phase = Phase.DAY if next_is_sunrise else Phase.NIGHT

    details: Dict[str, Any] = {
        "status": "scheduled",
        "next_phase": next_phase.value,
        "next_switch": next_when.isoformat(),
        "next_switch_local": format_local(next_when, zone, use_24h),
        "next_switch_relative": format_relative(next_when, now),
        "next_sunrise": next_sunrise.isoformat(),
        "next_sunset": next_sunset.isoformat(),
        "time_zone": tz_id or str(dt_util.get_default_time_zone()),
        "location": f"{format_coord(meta.latitude)}, {format_coord(meta.longitude)}",
        "location_source": meta.location_source.value,
        "offsets": (
            f"sunrise {format_signed(meta.sunrise_offset)} min, "
            f"sunset {format_signed(meta.sunset_offset)} min"
        ),
        "offsets_source": meta.offsets_source.value,
    }

    return Preview(
        text=preview_text(next_sunrise, next_sunset, zone, use_24h),
        details=details,
    )


def status_preview(text: str, status: str) -> Preview:
    """Preview for the disabled and error states."""
    return Preview(text=text, details={"status": status, "message": text})
