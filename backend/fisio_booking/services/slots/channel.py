# backend/fisio_booking/services/slots/channel.py
"""
Slot change channel.

Anything that changes availability for a date (a booking created or
cancelled, an admin window edited) publishes a SlotChange. Subscribers
(open slot listings, the availability cache of other processes) re-run
their work for that date.

In-process fan-out is synchronous. With a Redis client attached, every
change is also PUBLISHed on `slots:changed` for other processes, and
slot_change_listener_loop() feeds remote changes back in.
"""

import asyncio
import json
import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from redis import Redis
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

REDIS_CHANNEL = "slots:changed"


@dataclass(frozen=True)
class SlotChange:
    """Availability changed for `date` ("YYYY-MM-DD"), or for every date if None."""
    date: str | None
    reason: str
    ts: int = field(default_factory=lambda: int(time.time()))


Subscriber = Callable[[SlotChange], None]


class SlotChangeChannel:
    """Typed publish/subscribe of slot changes."""

    def __init__(self, redis: Redis | None = None):
        self.redis = redis
        self.origin = uuid.uuid4().hex
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, change: SlotChange) -> None:
        """Deliver locally, then to other processes."""
        self.deliver_local(change)

        if self.redis is None:
            return
        message = json.dumps({
            "date": change.date,
            "reason": change.reason,
            "ts": change.ts,
            "origin": self.origin,
        })
        try:
            self.redis.publish(REDIS_CHANNEL, message)
        except Exception as e:
            logger.error(f"Failed to publish slot change for {change.date}: {e}")

    def deliver_local(self, change: SlotChange) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(change)
            except Exception:
                logger.exception(f"Slot change subscriber failed for {change.date}")

    def handle_remote(self, raw: str) -> SlotChange | None:
        """Turn a Redis message into a local delivery. Own messages are skipped."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Ignoring malformed slot change message: {raw!r}")
            return None

        if data.get("origin") == self.origin:
            return None

        change = SlotChange(
            date=data.get("date"),
            reason=data.get("reason") or "remote",
            ts=int(data.get("ts") or time.time()),
        )
        self.deliver_local(change)
        return change


async def slot_change_listener_loop(redis_url: str, channel: SlotChangeChannel) -> None:
    """
    Relay slot changes published by other processes into `channel`.

    Started as asyncio task in backend lifespan.
    """
    r = aioredis.from_url(redis_url, decode_responses=True)
    logger.info("slot_change_listener_loop started")

    try:
        while True:
            pubsub = r.pubsub()
            try:
                await pubsub.subscribe(REDIS_CHANNEL)
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    channel.handle_remote(message.get("data"))
            except asyncio.CancelledError:
                logger.info("slot_change_listener_loop cancelled")
                raise
            except Exception:
                logger.exception("slot_change_listener_loop error, retrying in 5s")
                await asyncio.sleep(5)
            finally:
                await pubsub.aclose()
    finally:
        await r.aclose()
