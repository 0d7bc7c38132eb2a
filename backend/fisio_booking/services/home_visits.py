"""
Home visit pricing and selection.

Home visits have no fixed duration: the admin picks start and end, the
price follows from the hourly rate.
"""

from dataclasses import dataclass
from datetime import date

from ..errors import BookingValidationError
from .booking_finalizer import BookingSelection
from .slots.config import BookingConfig, get_booking_config, time_str_to_minutes
from .slots.entities import ServiceInfo


@dataclass(frozen=True)
class HomeVisitQuote:
    duration_minutes: int
    price: float


def quote_home_visit(
    start_time: str,
    end_time: str,
    config: BookingConfig | None = None,
) -> HomeVisitQuote:
    """Duration and price of a home visit, or BookingValidationError."""
    config = config or get_booking_config()

    start_min = time_str_to_minutes(start_time)
    end_min = time_str_to_minutes(end_time)
    if end_min <= start_min:
        raise BookingValidationError("End time must be after start time")

    duration = end_min - start_min
    if duration < config.min_home_visit_minutes:
        raise BookingValidationError(
            f"Home visits last at least {config.min_home_visit_minutes} minutes"
        )

    price = round(duration / 60 * config.home_visit_hourly_rate, 2)
    return HomeVisitQuote(duration_minutes=duration, price=price)


def build_home_visit_selection(
    service: ServiceInfo,
    client_id: int,
    dog_id: int,
    target_date: date,
    start_time: str,
    end_time: str,
    address: str,
    notes: str | None = None,
    config: BookingConfig | None = None,
) -> BookingSelection:
    """Admin-initiated home visit, priced and ready for the finalizer."""
    if not service.is_home_visit:
        raise BookingValidationError(f"Service {service.id} is not a home visit service")

    quote = quote_home_visit(start_time, end_time, config)
    return BookingSelection(
        client_id=client_id,
        dog_id=dog_id,
        service=service,
        target_date=target_date,
        start_time=start_time,
        end_time=end_time,
        price=quote.price,
        notes=notes,
        home_address=address,
        initiated_by_admin=True,
    )
