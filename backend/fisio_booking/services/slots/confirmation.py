# backend/fisio_booking/services/slots/confirmation.py
"""
Late-night bookings for the next day need a manual admin confirmation.

A booking placed at or after the cutoff hour (18:00) for tomorrow may not
be seen by the admin in time, so it is created as pendiente_confirmacion
instead of pendiente.
"""

from datetime import date, datetime, timedelta

from .config import BookingConfig, get_booking_config, time_str_to_minutes


def requires_admin_confirmation(
    target_date: date,
    time_str: str | None = None,
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> bool:
    """
    True if `target_date` is tomorrow and it is past the cutoff hour now.

    With `admin_confirmation_until` configured, only start times before it
    count ("first hours of the day"); by default the whole day counts.
    """
    config = config or get_booking_config()
    now = now or datetime.now()

    if target_date != now.date() + timedelta(days=1):
        return False
    if now.hour < config.admin_confirmation_cutoff_hour:
        return False

    if config.admin_confirmation_until and time_str:
        return time_str_to_minutes(time_str) < time_str_to_minutes(config.admin_confirmation_until)
    return True
