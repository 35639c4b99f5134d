"""Typed configuration models for Day/Night Switcher."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Optional


class Phase(StrEnum):
    """Target state of an endpoint."""

    DAY = "day"
    NIGHT = "night"


class AuthType(StrEnum):
    """Authentication mode for action requests."""

    DIGEST = "digest"
    BASIC = "basic"
    NONE = "none"


class ConfigSource(StrEnum):
    """Where a resolved category came from."""

    ENTITY = "entity"
    GLOBAL = "global"


@dataclass(frozen=True)
class SunTimes:
    """Raw sunrise/sunset for one location and local day.

    Either instant is None when the sun does not rise or set that day.
    """

    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None


@dataclass
class LocationSettings:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    time_zone: Optional[str] = None
    use_24h: bool = True
    sync_on_startup: bool = True


@dataclass
class OffsetSettings:
    sunrise_offset: Optional[float] = None  # minutes
    sunset_offset: Optional[float] = None


@dataclass
class ReliabilitySettings:
    retries: Optional[int] = None
    retry_base_delay_ms: Optional[float] = None
    log_responses: bool = False


@dataclass
class AuthSettings:
    auth_type: AuthType = AuthType.DIGEST
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass
class ActionSettings:
    """HTTP request template for one phase."""

    url: str = ""
    method: str = "GET"
    content_type: Optional[str] = None
    headers: Optional[str] = None  # JSON object text
    body: Optional[str] = None


@dataclass
class GlobalConfig:
    """Defaults shared by every endpoint."""

    location: LocationSettings = field(default_factory=LocationSettings)
    offsets: OffsetSettings = field(default_factory=OffsetSettings)
    reliability: ReliabilitySettings = field(default_factory=ReliabilitySettings)


@dataclass
class EntityConfig:
    """Per-endpoint settings as stored."""

    enabled: bool = False
    override_location: bool = False
    override_offsets: bool = False
    override_reliability: bool = False
    location: LocationSettings = field(default_factory=LocationSettings)
    offsets: OffsetSettings = field(default_factory=OffsetSettings)
    reliability: ReliabilitySettings = field(default_factory=ReliabilitySettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    day: ActionSettings = field(default_factory=ActionSettings)
    night: ActionSettings = field(default_factory=ActionSettings)
    last_phase: Optional[Phase] = None


@dataclass(frozen=True)
class EffectiveConfig:
    """Fully resolved configuration for one decision. Never persisted."""

    enabled: bool
    latitude: Optional[float]
    longitude: Optional[float]
    time_zone: Optional[str]
    use_24h: bool
    sync_on_startup: bool
    sunrise_offset: float
    sunset_offset: float
    retries: int
    retry_base_delay_ms: float
    log_responses: bool
    auth: AuthSettings
    day: ActionSettings
    night: ActionSettings
    location_source: ConfigSource = ConfigSource.GLOBAL
    offsets_source: ConfigSource = ConfigSource.GLOBAL

    def action(self, phase: Phase) -> ActionSettings:
        return self.day if phase is Phase.DAY else self.night
