# backend/fisio_booking/services/slots/availability.py
"""
Level 2: Service availability calculation.

Calculates bookable start times for a specific service on a specific day.

Takes into account:
- Admin windows for the audience (Level 1, cached for a few seconds)
- Existing center bookings and their rest buffers
- Home visits that block the center
- Today's lead time
"""

import logging
from datetime import date, datetime

from .cache import AvailabilityCache
from .calculator import candidate_minutes, merge_consecutive_windows
from .config import BookingConfig, get_booking_config, minutes_to_time_str, time_str_to_minutes
from .conflicts import is_time_slot_blocked
from .entities import ExistingBooking, ServiceInfo, TimeWindow, audience_for, partition_bookings
from .repository import BookingStore

logger = logging.getLogger(__name__)

DAY_PAST = "past"
DAY_FULL = "full"
DAY_AVAILABLE = "available"


def generate_filtered_time_slots(
    service: ServiceInfo,
    target_date: date,
    center_bookings: list[ExistingBooking] | None = None,
    home_visits: list[ExistingBooking] | None = None,
    is_admin_context: bool = False,
    *,
    store: BookingStore,
    cache: AvailabilityCache | None = None,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> list[str]:
    """
    Calculate available start times for a service.

    When bookings are not passed in, the freshest same-day bookings are
    read from `store`.

    Returns:
        Sorted list of "HH:MM". Empty list = no availability.

    Raises:
        TransientQueryFailure: a read failed (not the same as "no slots").
    """
    config = config or get_booking_config()
    now = now or datetime.now()

    if target_date < now.date():
        return []

    # Step 1: Admin windows for this audience
    windows = load_windows(store, cache, target_date, audience_for(is_admin_context))

    # Step 2: No admin config → no availability
    if not windows:
        return []

    # Step 3: Same-day bookings
    if center_bookings is None or home_visits is None:
        day = partition_bookings(store.list_active_bookings(target_date))
        center_bookings, home_visits = day.center, day.home_visits

    # Step 4: Walk merged windows
    merged = merge_consecutive_windows(windows)
    if service.is_home_visit:
        probe_duration = config.home_visit_probe_minutes
    else:
        probe_duration = service.duration_minutes

    possible: set[int] = set()
    for window in merged:
        for t in candidate_minutes(window, service.duration_minutes, service.is_home_visit, config):
            if not is_time_slot_blocked(
                minutes_to_time_str(t),
                probe_duration,
                service.service_type,
                center_bookings,
                home_visits,
            ):
                possible.add(t)

    # Step 5: Deduplicate, sort, drop what is too close to now
    slots = [minutes_to_time_str(t) for t in sorted(possible)]
    slots = filter_today_slots(slots, target_date, now, config)

    logger.debug(
        f"{service.service_type} on {target_date}: {len(windows)} windows "
        f"({len(merged)} merged), {len(slots)} slots"
    )
    return slots


def filter_today_slots(
    slots: list[str],
    target_date: date,
    now: datetime,
    config: BookingConfig | None = None,
) -> list[str]:
    """Drop today's slots starting sooner than the lead time from now."""
    config = config or get_booking_config()
    if target_date != now.date():
        return slots

    min_required = now.hour * 60 + now.minute + config.today_lead_minutes
    return [slot for slot in slots if time_str_to_minutes(slot) >= min_required]


def calculate_day_availability(
    service: ServiceInfo,
    days: list[date],
    is_admin_context: bool = False,
    *,
    store: BookingStore,
    cache: AvailabilityCache | None = None,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> dict[date, str]:
    """
    Classify days for a calendar view.

    Returns:
        Dict mapping date → "past" | "full" | "available".
    """
    config = config or get_booking_config()
    now = now or datetime.now()

    result: dict[date, str] = {}
    for day in days:
        if day < now.date():
            result[day] = DAY_PAST
            continue

        slots = generate_filtered_time_slots(
            service,
            day,
            is_admin_context=is_admin_context,
            store=store,
            cache=cache,
            config=config,
            now=now,
        )
        result[day] = DAY_AVAILABLE if slots else DAY_FULL

    return result


# ── Windows (Level 1 with cache) ────────────────────────────────────────


def load_windows(
    store: BookingStore,
    cache: AvailabilityCache | None,
    target_date: date,
    audience: str,
) -> list[TimeWindow]:
    """Get admin windows, using the cache when available."""
    if cache is not None:
        cached = cache.get(target_date, audience)
        if cached is not None:
            return cached

        windows = store.list_available_windows(target_date, audience)
        cache.store(target_date, audience, windows)
        return windows

    return store.list_available_windows(target_date, audience)
