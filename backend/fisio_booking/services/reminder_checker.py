"""
Booking reminder checker.

Periodically checks for upcoming bookings and emits booking-reminder events
so the client is reminded before the appointment.

Runs as an asyncio task in backend lifespan.
Uses synchronous DB and Redis (via asyncio.to_thread).
"""

import asyncio
import logging
from datetime import datetime, timedelta

from redis import Redis
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models.generated import Bookings, Dogs, Services
from ..redis_client import redis_client
from .events import BOOKING_REMINDER, Notifier, emit_event
from .slots.config import BookingConfig, get_booking_config
from .slots.repository import parse_date_start

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 60  # seconds between checks
SENT_KEY_TTL = 2 * 86400  # reminder is sent once per booking
REMINDABLE_STATES = ("pendiente", "pendiente_confirmacion", "confirmada")


async def reminder_checker_loop() -> None:
    """
    Periodic loop that checks for bookings needing a reminder.

    For each active booking where date_start - reminder_hours_before <= now < date_start:
    - Emit booking-reminder event to events:p2p
    - Mark as sent in Redis to avoid duplicates
    """
    logger.info("reminder_checker_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(_check_upcoming_bookings)
            except asyncio.CancelledError:
                logger.info("reminder_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("reminder_checker_loop error")

            await asyncio.sleep(CHECK_INTERVAL)
    except asyncio.CancelledError:
        pass


def _check_upcoming_bookings() -> None:
    db = SessionLocal()
    try:
        send_due_reminders(db, redis_client, datetime.now())
    finally:
        db.close()


def send_due_reminders(
    db: Session,
    redis: Redis,
    now: datetime,
    notifier: Notifier = emit_event,
    config: BookingConfig | None = None,
) -> list[int]:
    """
    Emit reminders that are due.

    Returns:
        IDs of the reminded bookings.
    """
    config = config or get_booking_config()
    horizon = now + timedelta(hours=config.reminder_hours_before)

    rows = (
        db.query(Bookings, Services.name, Dogs.name)
        .join(Services, Bookings.service_id == Services.id)
        .join(Dogs, Bookings.dog_id == Dogs.id)
        .filter(
            Bookings.status.in_(REMINDABLE_STATES),
            Bookings.date_start >= now.strftime("%Y-%m-%dT%H:%M:%S"),
            Bookings.date_start < horizon.strftime("%Y-%m-%dT%H:%M:%S"),
        )
        .all()
    )

    reminded = []
    for booking, service_name, dog_name in rows:
        try:
            if _process_single_booking(redis, notifier, booking, service_name, dog_name):
                reminded.append(booking.id)
        except Exception:
            logger.exception(f"Error processing booking {booking.id} for reminder")

    return reminded


def _process_single_booking(
    redis: Redis,
    notifier: Notifier,
    booking,
    service_name: str,
    dog_name: str,
) -> bool:
    """Emit the reminder unless it was already sent."""
    sent_key = f"bkremind:sent:{booking.id}"
    if redis.exists(sent_key):
        return False

    start = parse_date_start(booking.date_start)
    notifier(BOOKING_REMINDER, {
        "booking_id": booking.id,
        "client_id": booking.client_id,
        "pet_name": dog_name,
        "service_name": service_name,
        "date": start.date().isoformat(),
        "time": start.strftime("%H:%M"),
        "duration_minutes": booking.duration_minutes,
    })
    redis.setex(sent_key, SENT_KEY_TTL, "1")

    logger.info(
        f"booking-reminder emitted for booking={booking.id} "
        f"(starts at {start.strftime('%Y-%m-%d %H:%M')})"
    )
    return True
