"""Constants for Day/Night Switcher."""

from datetime import timedelta

DOMAIN = "day_night_switcher"

# Storage
STORAGE_VERSION = 1
STORAGE_KEY_GLOBAL = f"{DOMAIN}.global"
STORAGE_SAVE_DELAY = 1  # seconds

# Platforms
PLATFORMS = ["sensor"]

# Per-entity setting keys
KEY_ENABLED = "enabled"
KEY_OVERRIDE_LOCATION = "override_location"
KEY_OVERRIDE_OFFSETS = "override_offsets"
KEY_OVERRIDE_RELIABILITY = "override_reliability"
KEY_LATITUDE = "latitude"
KEY_LONGITUDE = "longitude"
KEY_TIME_ZONE = "time_zone"
KEY_USE_24H = "use_24h"
KEY_SYNC_ON_STARTUP = "sync_on_startup"
KEY_SUNRISE_OFFSET = "sunrise_offset"
KEY_SUNSET_OFFSET = "sunset_offset"
KEY_RETRIES = "retries"
KEY_RETRY_BASE_DELAY = "retry_base_delay_ms"
KEY_LOG_RESPONSES = "log_responses"
KEY_AUTH_TYPE = "auth_type"
KEY_USERNAME = "username"
KEY_PASSWORD = "password"
KEY_LAST_PHASE = "last_phase"
KEY_PREVIEW = "preview"
KEY_PREVIEW_DETAILS = "preview_details"

# Action keys are "<phase>_<field>", e.g. "day_url"
ACTION_URL = "url"
ACTION_METHOD = "method"
ACTION_CONTENT_TYPE = "content_type"
ACTION_HEADERS = "headers"
ACTION_BODY = "body"
ACTION_FIELDS = [ACTION_URL, ACTION_METHOD, ACTION_CONTENT_TYPE, ACTION_HEADERS, ACTION_BODY]

# Keys whose change affects the schedule
SCHEDULE_KEYS = {
    KEY_ENABLED,
    KEY_OVERRIDE_LOCATION,
    KEY_OVERRIDE_OFFSETS,
    KEY_OVERRIDE_RELIABILITY,
    KEY_LATITUDE,
    KEY_LONGITUDE,
    KEY_TIME_ZONE,
    KEY_USE_24H,
    KEY_SYNC_ON_STARTUP,
    KEY_SUNRISE_OFFSET,
    KEY_SUNSET_OFFSET,
    KEY_RETRIES,
    KEY_RETRY_BASE_DELAY,
    KEY_LOG_RESPONSES,
}

# Keys accepted by the global store
GLOBAL_KEYS = {
    KEY_LATITUDE,
    KEY_LONGITUDE,
    KEY_TIME_ZONE,
    KEY_USE_24H,
    KEY_SYNC_ON_STARTUP,
    KEY_SUNRISE_OFFSET,
    KEY_SUNSET_OFFSET,
    KEY_RETRIES,
    KEY_RETRY_BASE_DELAY,
    KEY_LOG_RESPONSES,
}

# Keys accepted by set_setting
ENTITY_SETTING_KEYS = SCHEDULE_KEYS | {KEY_AUTH_TYPE, KEY_USERNAME, KEY_PASSWORD} | {
    f"{phase}_{field}" for phase in ("day", "night") for field in ACTION_FIELDS
}

# Defaults
PREVIEW_EMPTY = "—"
PREVIEW_DISABLED = "Switching is disabled"
PREVIEW_INVALID_LOCATION = "Invalid latitude/longitude"
PREVIEW_NO_SOLAR_EVENT = "No sunrise/sunset today at this location"

ENTITY_DEFAULTS = {
    KEY_ENABLED: "false",
    KEY_OVERRIDE_LOCATION: "false",
    KEY_OVERRIDE_OFFSETS: "false",
    KEY_OVERRIDE_RELIABILITY: "false",
    KEY_SUNRISE_OFFSET: "0",
    KEY_SUNSET_OFFSET: "0",
    KEY_USE_24H: "true",
    KEY_SYNC_ON_STARTUP: "true",
    KEY_AUTH_TYPE: "digest",
    f"day_{ACTION_METHOD}": "GET",
    f"night_{ACTION_METHOD}": "GET",
    KEY_PREVIEW: PREVIEW_EMPTY,
}

GLOBAL_DEFAULTS = {
    KEY_USE_24H: "true",
    KEY_SYNC_ON_STARTUP: "true",
    KEY_SUNRISE_OFFSET: "0",
    KEY_SUNSET_OFFSET: "0",
    KEY_RETRIES: "1",
    KEY_RETRY_BASE_DELAY: "0",
    KEY_LOG_RESPONSES: "false",
}

# Value ranges
LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)
OFFSET_RANGE = (-720.0, 720.0)  # minutes

# HTTP
HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]
BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
DEFAULT_METHOD = "GET"
AUTH_TYPES = ["digest", "basic", "none"]
ACTION_TIMEOUT = 10  # seconds per attempt
RETRY_JITTER_MS = 250
MAX_LOG_BYTES = 64 * 1024
LOG_CHUNK_SIZE = 800

# Timers
MAX_TIMER_HORIZON = timedelta(hours=24)
RECOMPUTE_INTERVAL = timedelta(hours=1)
RECOMPUTE_JITTER_SECONDS = 60
GUARD_INTERVAL = timedelta(hours=6)
SETTLE_DELAY = timedelta(seconds=60)
GLOBAL_CHANGE_COOLDOWN = 0.3  # seconds

# Astronomical cache
SUN_TIMES_CACHE_LIMIT = 1000
KEY_PRECISION_DP = 6

# Dispatcher signal, formatted with the endpoint key
SIGNAL_PREVIEW_UPDATED = f"{DOMAIN}_preview_updated_{{}}"

# Services
SERVICE_SWITCH_TO_DAY = "switch_to_day"
SERVICE_SWITCH_TO_NIGHT = "switch_to_night"
SERVICE_REFRESH_PREVIEW = "refresh_preview"
SERVICE_SET_SETTING = "set_setting"
SERVICE_SET_GLOBAL_SETTING = "set_global_setting"
ATTR_CONFIG_ENTRY_ID = "config_entry_id"
ATTR_KEY = "key"
ATTR_VALUE = "value"

# Device info
DEVICE_MANUFACTURER = "Day/Night Switcher"
DEVICE_MODEL = "Solar schedule"

# Version
VERSION = "0.3.0"
