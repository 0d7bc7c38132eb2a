# backend/fisio_booking/services/slots/entities.py
"""
Plain values passed between the persistence adapter and the slot engine.
"""

from dataclasses import dataclass
from datetime import date


HOME_VISIT = "rehabilitacion_domicilio"

ACTIVE_STATES = ("pendiente", "pendiente_confirmacion", "confirmada")

AUDIENCE_ADMIN = "admin"
AUDIENCE_CLIENT = "client"


@dataclass(frozen=True)
class TimeWindow:
    """Admin-configured open window ("HH:MM" bounds)."""
    start: str
    end: str
    admin_only: bool = False


@dataclass(frozen=True)
class ExistingBooking:
    """An active booking as seen by the conflict detector."""
    start_time: str  # "HH:MM"
    duration_minutes: int
    service_type: str | None
    blocks_center: bool = True
    booking_id: int | None = None


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    service_type: str
    duration_minutes: int
    price: float

    @property
    def is_home_visit(self) -> bool:
        return self.service_type == HOME_VISIT


@dataclass(frozen=True)
class DayBookings:
    """Same-day active bookings split into center bookings and home visits."""
    center: list[ExistingBooking]
    home_visits: list[ExistingBooking]


def partition_bookings(bookings: list[ExistingBooking]) -> DayBookings:
    """
    Split bookings by service type.

    Home visits that do not block the center take part in neither list.
    """
    center = []
    home_visits = []
    for booking in bookings:
        if booking.service_type == HOME_VISIT:
            if booking.blocks_center:
                home_visits.append(booking)
        else:
            center.append(booking)
    return DayBookings(center=center, home_visits=home_visits)


def audience_for(is_admin_context: bool) -> str:
    return AUDIENCE_ADMIN if is_admin_context else AUDIENCE_CLIENT


def date_key(target_date: date | str) -> str:
    if isinstance(target_date, str):
        return date.fromisoformat(target_date).isoformat()
    return target_date.isoformat()
