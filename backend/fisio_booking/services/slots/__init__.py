# backend/fisio_booking/services/slots/__init__.py
"""
Slots calculation module.

Level 1: Admin windows per date and audience (cached in process for a few seconds)
Level 2: Service availability (calculated on-the-fly from fresh bookings)
"""

from .config import BookingConfig, get_booking_config
from .cache import AvailabilityCache
from .channel import SlotChange, SlotChangeChannel
from .conflicts import find_conflict, is_time_slot_blocked
from .invalidator import invalidate_cache_and_notify
from .availability import calculate_day_availability, generate_filtered_time_slots
from .repository import SqlBookingStore

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "AvailabilityCache",
    "SlotChange",
    "SlotChangeChannel",
    "find_conflict",
    "is_time_slot_blocked",
    "invalidate_cache_and_notify",
    "calculate_day_availability",
    "generate_filtered_time_slots",
    "SqlBookingStore",
]
