# backend/fisio_booking/services/slots/cache.py
"""
Process-local cache of admin windows.

Key: (date, audience) where audience is "admin" or "client".
Value: list of TimeWindow, stored with the time it was loaded.

The cache only saves reads for slot listing. The booking finalizer never
reads through it.
"""

import logging
import threading
import time
from collections.abc import Callable
from datetime import date

from .config import BookingConfig, get_booking_config
from .entities import TimeWindow, date_key


class AvailabilityCache:
    """TTL cache of admin windows per (date, audience)."""

    def __init__(
        self,
        config: BookingConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ):
        self.config = config or get_booking_config()
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._entries: dict[tuple[str, str], tuple[float, list[TimeWindow]]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> int:
        return self.config.cache_ttl_seconds

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, target_date: date | str, audience: str) -> list[TimeWindow] | None:
        """
        Get cached windows.

        Returns:
            List of windows (possibly empty), or None on miss / expiry.
        """
        if self.ttl_seconds == 0:
            return None

        key = (date_key(target_date), audience)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, windows = entry
            if self.clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return list(windows)

    # ── Write ────────────────────────────────────────────────────────────

    def store(self, target_date: date | str, audience: str, windows: list[TimeWindow]) -> None:
        if self.ttl_seconds == 0:
            return
        key = (date_key(target_date), audience)
        with self._lock:
            self._entries[key] = (self.clock(), list(windows))

    # ── Delete ───────────────────────────────────────────────────────────

    def clear(self, target_date: date | str | None = None) -> int:
        """
        Drop cached windows.

        Args:
            target_date: Date to clear (both audiences), or None for everything.

        Returns:
            Number of dropped entries.
        """
        with self._lock:
            if target_date is None:
                dropped = len(self._entries)
                self._entries.clear()
            else:
                day = date_key(target_date)
                keys = [key for key in self._entries if key[0] == day]
                for key in keys:
                    del self._entries[key]
                dropped = len(keys)

        self.logger.debug(f"Availability cache cleared for {target_date or 'all dates'} ({dropped} entries)")
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
