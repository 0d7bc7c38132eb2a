# backend/fisio_booking/services/slots/invalidator.py
"""
Cache invalidation for admin windows.

Triggers:
✓ Admin window created / updated / soft-deleted → invalidate that date
✓ Booking created / cancelled / confirmed → invalidate that date
✓ Manual admin invalidation → one date or everything
"""

import logging
from datetime import date, timedelta

from .cache import AvailabilityCache
from .channel import SlotChange, SlotChangeChannel
from .entities import date_key

logger = logging.getLogger(__name__)


def invalidate_cache_and_notify(
    cache: AvailabilityCache | None,
    channel: SlotChangeChannel | None,
    target_date: date | str | None = None,
    reason: str = "updated",
) -> int:
    """
    Drop cached windows and tell every open session to recompute slots.

    Args:
        cache: Availability cache of this process (None = broadcast only)
        channel: Change channel (None = cache only)
        target_date: Date to invalidate, or None for all dates
        reason: Short tag carried by the change event

    Returns:
        Number of dropped cache entries
    """
    day = date_key(target_date) if target_date is not None else None
    dropped = cache.clear(day) if cache is not None else 0

    if channel is not None:
        channel.publish(SlotChange(date=day, reason=reason))

    logger.info(f"Slots invalidated for {day or 'all dates'} ({reason})")
    return dropped


def attach_cache(cache: AvailabilityCache, channel: SlotChangeChannel):
    """Keep `cache` in step with changes published by other processes."""
    def on_change(change: SlotChange) -> None:
        cache.clear(change.date)

    return channel.subscribe(on_change)


def get_affected_dates(
    date_start: date,
    date_end: date,
) -> list[date]:
    """
    Get list of dates in range [date_start, date_end].

    Args:
        date_start: Start date (inclusive)
        date_end: End date (inclusive)

    Returns:
        List of dates
    """
    if date_start > date_end:
        date_start, date_end = date_end, date_start

    dates = []
    current = date_start
    while current <= date_end:
        dates.append(current)
        current += timedelta(days=1)

    return dates
