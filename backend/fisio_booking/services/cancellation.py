"""
Booking cancellation and admin confirmation.

Cancelling less than `late_cancellation_hours` before the start charges
the full price as a surcharge.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import AtomicInsertTechnicalError, BookingValidationError
from ..models.generated import Bookings as DBBooking, Services as DBService
from .events import (
    ADMIN_CANCELLATION_NOTICE,
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    Notifier,
    dispatch_all,
    emit_event,
)
from .slots.cache import AvailabilityCache
from .slots.channel import SlotChangeChannel
from .slots.config import BookingConfig, get_booking_config
from .slots.invalidator import invalidate_cache_and_notify
from .slots.repository import parse_date_start

logger = logging.getLogger(__name__)

CANCELLABLE_STATES = ("pendiente", "pendiente_confirmacion", "confirmada")
LATE_SURCHARGE_REASON = "Cancelled less than 24 hours before the appointment"


@dataclass(frozen=True)
class CancellationResult:
    booking_id: int
    hours_before: float
    surcharge: float | None


def hours_until(booking: DBBooking, now: datetime) -> float:
    start = parse_date_start(booking.date_start)
    return (start - now).total_seconds() / 3600


def cancel_booking(
    db: Session,
    booking_id: int,
    *,
    by_admin: bool = False,
    reason: str | None = None,
    now: datetime | None = None,
    cache: AvailabilityCache | None = None,
    channel: SlotChangeChannel | None = None,
    notifier: Notifier = emit_event,
    config: BookingConfig | None = None,
) -> CancellationResult:
    """
    Cancel a booking and free its slot.

    Raises:
        LookupError: booking does not exist
        BookingValidationError: booking is already cancelled or completed
    """
    config = config or get_booking_config()
    now = now or datetime.now()

    booking = db.get(DBBooking, booking_id)
    if booking is None:
        raise LookupError(f"Booking {booking_id} not found")
    if booking.status not in CANCELLABLE_STATES:
        raise BookingValidationError(f"A booking in state '{booking.status}' cannot be cancelled")

    hours_before = hours_until(booking, now)
    late = hours_before < config.late_cancellation_hours

    booking.status = "cancelada"
    booking.updated_at = now.strftime("%Y-%m-%d %H:%M:%S")
    if by_admin:
        booking.cancel_reason = reason or "Cancelled by the clinic"
    else:
        booking.cancel_reason = reason or (
            "Late cancellation by the client" if late else "Cancelled by the client"
        )
    # The clinic does not charge itself for its own cancellations
    surcharge = booking.price if late and not by_admin else None
    if surcharge is not None:
        booking.cancellation_surcharge = surcharge
        booking.surcharge_reason = LATE_SURCHARGE_REASON

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise AtomicInsertTechnicalError(f"Could not cancel booking {booking_id}") from e

    day = parse_date_start(booking.date_start).date()
    logger.info(
        f"Booking {booking_id} cancelled ({hours_before:.1f}h before start, "
        f"surcharge={surcharge})"
    )

    invalidate_cache_and_notify(cache, channel, day, reason="booking-cancelled")

    service = db.get(DBService, booking.service_id)
    payload = {
        "booking_id": booking.id,
        "client_id": booking.client_id,
        "dog_id": booking.dog_id,
        "service_name": service.name if service else None,
        "date": day.isoformat(),
        "time": parse_date_start(booking.date_start).strftime("%H:%M"),
        "reason": booking.cancel_reason,
        "has_late_charge": surcharge is not None,
        "charge_amount": surcharge or 0,
    }
    events = [(BOOKING_CANCELLED, payload)]
    if not by_admin:
        events.append((ADMIN_CANCELLATION_NOTICE, payload))
    dispatch_all(notifier, events)

    return CancellationResult(booking_id=booking.id, hours_before=hours_before, surcharge=surcharge)


def confirm_booking(
    db: Session,
    booking_id: int,
    *,
    now: datetime | None = None,
    notifier: Notifier = emit_event,
) -> DBBooking:
    """Admin confirms a booking waiting in pendiente_confirmacion."""
    now = now or datetime.now()

    booking = db.get(DBBooking, booking_id)
    if booking is None:
        raise LookupError(f"Booking {booking_id} not found")
    if booking.status != "pendiente_confirmacion":
        raise BookingValidationError(
            f"Only bookings awaiting confirmation can be confirmed (state '{booking.status}')"
        )

    booking.status = "confirmada"
    booking.updated_at = now.strftime("%Y-%m-%d %H:%M:%S")
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise AtomicInsertTechnicalError(f"Could not confirm booking {booking_id}") from e
    db.refresh(booking)

    logger.info(f"Booking {booking_id} confirmed by admin")

    start = parse_date_start(booking.date_start)
    dispatch_all(notifier, [(BOOKING_CONFIRMED, {
        "booking_id": booking.id,
        "client_id": booking.client_id,
        "dog_id": booking.dog_id,
        "date": start.date().isoformat(),
        "time": start.strftime("%H:%M"),
        "duration_minutes": booking.duration_minutes,
        "price": booking.price,
    })])
    return booking
