"""
backend/fisio_booking/services/events.py

Notification dispatcher: pushes events to a Redis queue for the mail worker.

Fire-and-forget: a failed push is logged and never raised, a booking is
never rolled back because a notification could not be queued.
"""

import json
import time
import logging
from collections.abc import Callable

from ..redis_client import notify_redis_client

logger = logging.getLogger(__name__)

EVENTS_QUEUE = "events:p2p"

BOOKING_CONFIRMED = "booking-confirmed"
BOOKING_CANCELLED = "booking-cancelled"
BOOKING_PENDING_CONFIRMATION = "booking-pending-confirmation"
BOOKING_REMINDER = "booking-reminder"
ADMIN_NEW_BOOKING = "admin-new-booking"
ADMIN_PENDING_CONFIRMATION = "admin-pending-confirmation"
ADMIN_CANCELLATION_NOTICE = "admin-cancellation-notice"

Notifier = Callable[[str, dict], None]


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit an event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        notify_redis_client.rpush(EVENTS_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {EVENTS_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")


def dispatch_all(notifier: Notifier, events: list[tuple[str, dict]]) -> None:
    """Send several events; one failing does not stop the rest."""
    for event_type, payload in events:
        try:
            notifier(event_type, payload)
        except Exception:
            logger.exception(f"Notifier failed for {event_type}")
