"""
Sun Times Cache
Memoizes sunrise/sunset per (location, local calendar day).
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from collections import OrderedDict
from datetime import date, datetime, tzinfo
from typing import Any, Callable, Dict, Optional, Tuple

from astral import Observer
from astral.sun import sunrise, sunset

from homeassistant.util import dt as dt_util

from .const import KEY_PRECISION_DP, SUN_TIMES_CACHE_LIMIT
from .models import SunTimes

_LOGGER = logging.getLogger(__name__)

CacheKey = Tuple[str, str, str]
SunTimesFunc = Callable[[date, float, float, tzinfo], SunTimes]


def compute_sun_times(
    day: date, latitude: float, longitude: float, tz: tzinfo
) -> SunTimes:
    """Compute sunrise/sunset in UTC for a local calendar day.

    astral raises ValueError when the sun never rises or never sets; that
    instant is reported as None.
    """
    observer = Observer(latitude=latitude, longitude=longitude)

    def _event(func) -> Optional[datetime]:
        try:
            return dt_util.as_utc(func(observer, date=day, tzinfo=tz))
        except ValueError:
            return None

    return SunTimes(sunrise=_event(sunrise), sunset=_event(sunset))


def cache_key(when: datetime, latitude: float, longitude: float) -> CacheKey:
    """Rounded coordinates plus the local (not UTC) calendar day."""
    local_day = dt_util.as_local(when).date()
    return (
        f"{latitude:.{KEY_PRECISION_DP}f}",
        f"{longitude:.{KEY_PRECISION_DP}f}",
        local_day.isoformat(),
    )


class SunTimesCache:
    """Bounded LRU cache of sun times, shared by every endpoint."""

    def __init__(
        self,
        compute: SunTimesFunc = compute_sun_times,
        max_size: int = SUN_TIMES_CACHE_LIMIT,
    ):
        """
        Initialize sun times cache.

        Args:
            compute: Function producing raw sun times for a local day
            max_size: Maximum number of entries in cache
        """
        self._compute = compute
        self._cache: OrderedDict[CacheKey, SunTimes] = OrderedDict()
        self._max_size = max_size
        self._lock = threading.Lock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._cache

    def get(self, when: datetime, latitude: float, longitude: float) -> SunTimes:
        """
        Get sun times for the local day containing ``when``.

        Args:
            when: Any instant on the wanted local day
            latitude: Decimal degrees
            longitude: Decimal degrees

        Returns:
            A copy of the cached entry; callers may not share cached state
        """
        key = cache_key(when, latitude, longitude)

        with self._lock:
            hit = self._cache.get(key)
            if hit is not None:
                # Move to end (LRU)
                self._cache.move_to_end(key)
                self._hits += 1
                return dataclasses.replace(hit)

            self._misses += 1
            local = dt_util.as_local(when)
            value = self._compute(local.date(), latitude, longitude, local.tzinfo)
            self._cache[key] = value

            if len(self._cache) > self._max_size:
                oldest = next(iter(self._cache))
                del self._cache[oldest]
                self._evictions += 1

            return dataclasses.replace(value)

    def clear(self) -> None:
        """Clear entire cache."""
        with self._lock:
            self._cache.clear()
        _LOGGER.debug("Sun times cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            "size": len(self._cache),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate_percent": round(hit_rate, 2),
            "evictions": self._evictions,
        }
