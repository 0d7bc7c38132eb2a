# backend/fisio_booking/services/slots/config.py
"""
Booking configuration and time arithmetic for slots calculation.
"""

from dataclasses import dataclass
from functools import lru_cache

from ...config import settings


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for booking/slots system.

    Attributes:
        slot_step_minutes: Step between candidate start times
        today_lead_minutes: Today's slots must start at least this far from now
        admin_confirmation_cutoff_hour: From this hour on, bookings for
            tomorrow need manual admin confirmation
        admin_confirmation_until: Optional "HH:MM"; when set, only tomorrow's
            bookings starting before it need confirmation
        home_visit_probe_minutes: Duration used to screen home-visit starts
        min_home_visit_minutes: Shortest home visit that can be booked
        min_window_minutes: Shortest admin window that can be granted
        cache_ttl_seconds: Availability cache TTL (0 disables caching)
        late_cancellation_hours: Cancelling closer than this adds a surcharge
        home_visit_hourly_rate: Home visit price per hour
        reminder_hours_before: When the reminder goes out
        horizon_days: How many days ahead the calendar covers
    """
    slot_step_minutes: int = 15
    today_lead_minutes: int = 120
    admin_confirmation_cutoff_hour: int = 18
    admin_confirmation_until: str | None = None
    home_visit_probe_minutes: int = 30
    min_home_visit_minutes: int = 30
    min_window_minutes: int = 30
    cache_ttl_seconds: int = 10
    late_cancellation_hours: int = 24
    home_visit_hourly_rate: float = 80.0
    reminder_hours_before: int = 24
    horizon_days: int = 60

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (5, 10, 15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 5, 10, 15, 30 or 60, got {self.slot_step_minutes}")
        if not 0 <= self.admin_confirmation_cutoff_hour <= 23:
            raise ValueError(
                f"admin_confirmation_cutoff_hour must be 0-23, got {self.admin_confirmation_cutoff_hour}"
            )
        if self.cache_ttl_seconds < 0:
            raise ValueError(f"cache_ttl_seconds must be >= 0, got {self.cache_ttl_seconds}")
        if self.home_visit_probe_minutes <= 0 or self.min_home_visit_minutes <= 0:
            raise ValueError("home visit durations must be positive")


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton)."""
    return BookingConfig(cache_ttl_seconds=settings.availability_cache_ttl_seconds)


# ── Time arithmetic ──────────────────────────────────────────────────────


def time_str_to_minutes(time_str: str | None) -> int:
    """
    Convert "HH:MM" (or "HH:MM:SS") to minutes since midnight.

    Empty or malformed input gives 0.
    """
    if not time_str:
        return 0
    parts = str(time_str).strip().split(":")
    if len(parts) < 2:
        return 0
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return 0
    if hours < 0 or minutes < 0 or minutes > 59:
        return 0
    return hours * 60 + minutes


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM". Negative input gives "00:00"."""
    if minutes < 0:
        return "00:00"
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
