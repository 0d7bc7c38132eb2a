"""
Booking completion checker.

Periodically marks bookings whose service time has ended
(date_start + duration_minutes <= now) as completada.

Bookings still waiting for admin confirmation are left alone.

Runs as an asyncio task in backend lifespan.
Uses synchronous DB (via asyncio.to_thread).
"""

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models.generated import Bookings
from .slots.repository import parse_date_start

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 60  # seconds between checks
COMPLETABLE_STATES = ("pendiente", "confirmada")


async def completion_checker_loop() -> None:
    """Periodic loop that completes finished bookings."""
    logger.info("completion_checker_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(_check_completed_bookings)
            except asyncio.CancelledError:
                logger.info("completion_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("completion_checker_loop error")

            await asyncio.sleep(CHECK_INTERVAL)
    except asyncio.CancelledError:
        pass


def _check_completed_bookings() -> None:
    db = SessionLocal()
    try:
        complete_finished_bookings(db, datetime.now())
    finally:
        db.close()


def complete_finished_bookings(db: Session, now: datetime) -> list[int]:
    """
    Mark finished bookings as completada.

    Returns:
        IDs of the bookings that were completed.
    """
    bookings = (
        db.query(Bookings)
        .filter(
            Bookings.status.in_(COMPLETABLE_STATES),
            Bookings.date_start < now.strftime("%Y-%m-%dT%H:%M:%S"),
        )
        .all()
    )

    completed = []
    for booking in bookings:
        try:
            start = parse_date_start(booking.date_start)
        except (ValueError, TypeError):
            logger.warning(f"Booking {booking.id} has an unreadable start: {booking.date_start!r}")
            continue

        if start + timedelta(minutes=booking.duration_minutes or 0) > now:
            continue

        booking.status = "completada"
        booking.updated_at = now.strftime("%Y-%m-%d %H:%M:%S")
        completed.append(booking.id)

    if completed:
        db.commit()
        logger.info(f"Bookings completed: {len(completed)} ({completed})")

    return completed
