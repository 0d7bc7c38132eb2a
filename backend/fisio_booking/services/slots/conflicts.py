# backend/fisio_booking/services/slots/conflicts.py
"""
Conflict detection for a candidate start time.

Pure and deterministic: the same inputs always give the same answer, so
the slot generator, the booking finalizer and the atomic insert can all
share it.

Ranges are half-open [start, end) in minutes since midnight.
A booking occupies [start, start + duration + rest(type)).
A home visit that blocks the center occupies [start, end) with no rest.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .config import minutes_to_time_str, time_str_to_minutes
from .entities import ExistingBooking
from .policy import rest_time_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conflict:
    """Why a candidate is blocked."""
    kind: str  # "home_visit" | "center_booking"
    booking: ExistingBooking
    occupied_start: int
    occupied_end: int

    def describe(self) -> str:
        return (
            f"{self.kind} {minutes_to_time_str(self.occupied_start)}-"
            f"{minutes_to_time_str(self.occupied_end)}"
        )


def occupied_range(booking: ExistingBooking) -> tuple[int, int]:
    """Minutes occupied by an existing booking, rest buffer included."""
    start = time_str_to_minutes(booking.start_time)
    end = start + (booking.duration_minutes or 0) + rest_time_minutes(booking.service_type)
    return start, end


def find_conflict(
    candidate_start: str,
    duration_minutes: int,
    service_type: str | None,
    center_bookings: Iterable[ExistingBooking],
    home_visits: Iterable[ExistingBooking],
) -> Conflict | None:
    """Return the first booking blocking the candidate, or None."""
    slot_start = time_str_to_minutes(candidate_start)
    slot_end = slot_start + duration_minutes
    # The candidate carries its own buffer, once booked it blocks the same way
    candidate_end = slot_end + rest_time_minutes(service_type)

    # Step 1: home visits take the practitioner away from the center
    for visit in home_visits:
        visit_start, visit_end = occupied_range(visit)
        if candidate_end == visit_start or slot_start == visit_end:
            continue
        if slot_start < visit_end and candidate_end > visit_start:
            return Conflict("home_visit", visit, visit_start, visit_end)

    # Step 2: center bookings, each extended by its rest buffer
    for booking in center_bookings:
        booking_start, booking_end = occupied_range(booking)
        if candidate_end == booking_start or slot_start == booking_end:
            continue
        if slot_start < booking_end and candidate_end > booking_start:
            return Conflict("center_booking", booking, booking_start, booking_end)

    return None


def is_time_slot_blocked(
    candidate_start: str,
    duration_minutes: int,
    service_type: str | None,
    center_bookings: Iterable[ExistingBooking],
    home_visits: Iterable[ExistingBooking],
) -> bool:
    """
    Decide whether a candidate start time is blocked.

    Args:
        candidate_start: "HH:MM"
        duration_minutes: Duration of the service being booked
        service_type: Type of the service being booked
        center_bookings: Same-day active bookings at the center
        home_visits: Same-day home visits that block the center

    Returns:
        True if blocked, False if the start time is free.
    """
    conflict = find_conflict(
        candidate_start, duration_minutes, service_type, center_bookings, home_visits
    )
    if conflict is not None:
        logger.debug(
            f"Slot {candidate_start} ({duration_minutes} min, {service_type}) "
            f"blocked by {conflict.describe()}"
        )
        return True
    return False
