# backend/fisio_booking/services/slots/calculator.py
"""
Level 1: admin windows → merged windows → candidate start times.

Contains:
✓ Merging of contiguous admin windows (09:00-12:00 + 12:00-15:00)
✓ Candidate start times for a service inside a merged window

Does NOT contain:
✗ Bookings (checked at Level 2, see availability.py)
✗ Today lead time (applied last, see availability.py)
"""

from .config import BookingConfig, get_booking_config, time_str_to_minutes
from .entities import TimeWindow


def merge_consecutive_windows(windows: list[TimeWindow]) -> list[TimeWindow]:
    """
    Merge windows where one ends exactly where the next starts.

    Windows with a gap between them stay separate.
    """
    if not windows:
        return []

    ordered = sorted(windows, key=lambda w: time_str_to_minutes(w.start))

    merged: list[TimeWindow] = []
    current = ordered[0]
    for nxt in ordered[1:]:
        if time_str_to_minutes(current.end) == time_str_to_minutes(nxt.start):
            current = TimeWindow(
                start=current.start,
                end=nxt.end,
                admin_only=current.admin_only and nxt.admin_only,
            )
        else:
            merged.append(current)
            current = nxt
    merged.append(current)

    return merged


def candidate_minutes(
    window: TimeWindow,
    duration_minutes: int,
    is_home_visit: bool,
    config: BookingConfig | None = None,
) -> list[int]:
    """
    Candidate start times (minutes) for a service inside one merged window.

    Fixed-duration services must fit entirely in the window.
    Home visits may start anywhere up to and including the window end,
    since their end time is picked later.
    """
    config = config or get_booking_config()
    step = config.slot_step_minutes

    start_min = time_str_to_minutes(window.start)
    end_min = time_str_to_minutes(window.end)

    last_start = end_min if is_home_visit else end_min - duration_minutes

    result = []
    t = start_min
    while t <= last_start:
        result.append(t)
        t += step
    return result
