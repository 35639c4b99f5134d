# custom_components/day_night_switcher/tests/test_preview.py
from datetime import UTC, datetime, timedelta

import pytest

from custom_components.day_night_switcher.models import ConfigSource
from custom_components.day_night_switcher.preview import (
    PreviewMeta,
    build_preview,
    format_local,
    format_relative,
    preview_text,
    resolve_time_zone,
    status_preview,
)

SUNRISE = datetime(2024, 6, 1, 6, 47, tzinfo=UTC)
SUNSET = datetime(2024, 6, 1, 20, 12, tzinfo=UTC)


@pytest.mark.asyncio
async def test_format_local_24h_and_12h():
    assert format_local(SUNRISE, "UTC") == "Sat, Jun 01, 06:47 UTC"
    assert format_local(SUNSET, "UTC", use_24h=False) == "Sat, Jun 01, 08:12 PM UTC"


@pytest.mark.asyncio
async def test_format_local_in_named_zone():
    assert format_local(SUNRISE, "Europe/London") == "Sat, Jun 01, 07:47 BST"


@pytest.mark.asyncio
async def test_invalid_zone_falls_back_to_server_zone(caplog):
    assert format_local(SUNRISE, "Not/AZone") == "Sat, Jun 01, 06:47 UTC"
    assert resolve_time_zone(None) is resolve_time_zone("")
    assert "Invalid time zone 'Not/AZone'" in caplog.text


@pytest.mark.asyncio
async def test_format_relative():
    now = datetime(2024, 6, 1, 3, 35, tzinfo=UTC)
    assert format_relative(now + timedelta(hours=3, minutes=12), now) == "in 3h 12m"
    assert format_relative(now - timedelta(minutes=5), now) == "5m ago"
    assert format_relative(now + timedelta(hours=2), now) == "in 2h"
    assert format_relative(now, now) == "in 0m"


@pytest.mark.asyncio
async def test_preview_text():
    assert preview_text(SUNRISE, SUNSET, "UTC") == (
        "Sunrise → Day: Sat, Jun 01, 06:47 UTC | Sunset → Night: Sat, Jun 01, 20:12 UTC"
    )


@pytest.mark.asyncio
async def test_build_preview_details():
    meta = PreviewMeta(
        latitude=51.507351,
        longitude=-0.127758,
        location_source=ConfigSource.ENTITY,
        sunrise_offset=-15,
        sunset_offset=0,
        offsets_source=ConfigSource.GLOBAL,
    )
    now = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
    tomorrow_sunrise = SUNRISE + timedelta(days=1)

    preview = build_preview(tomorrow_sunrise, SUNSET, now, None, True, meta)

    details = preview.details
    assert details["status"] == "scheduled"
    assert details["next_phase"] == "night"
    assert details["next_switch"] == SUNSET.isoformat()
    assert details["next_switch_relative"] == "in 8h 12m"
    assert details["location"] == "51.507351, -0.127758"
    assert details["location_source"] == "entity"
    assert details["offsets"] == "sunrise -15 min, sunset +0 min"
    assert details["time_zone"] == "UTC"
    assert preview.text.startswith("Sunrise → Day: Sun, Jun 02, 06:47 UTC")


@pytest.mark.asyncio
async def test_status_preview():
    preview = status_preview("Switching is disabled", "disabled")
    assert preview.text == "Switching is disabled"
    assert preview.details == {"status": "disabled", "message": "Switching is disabled"}


@pytest.mark.asyncio
async def test_invalid_zone_warns_once_per_preview(caplog):
    meta = PreviewMeta(
        latitude=51.5,
        longitude=-0.1,
        location_source=ConfigSource.GLOBAL,
        sunrise_offset=0,
        sunset_offset=0,
        offsets_source=ConfigSource.GLOBAL,
    )
    now = datetime(2024, 6, 1, 3, 0, tzinfo=UTC)

    preview = build_preview(SUNRISE, SUNSET, now, "Not/AZone", True, meta)

    assert preview.details["next_switch_local"] == "Sat, Jun 01, 06:47 UTC"
    warnings = [r for r in caplog.records if "Invalid time zone" in r.getMessage()]
    assert len(warnings) == 1
