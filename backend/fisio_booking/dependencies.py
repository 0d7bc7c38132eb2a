# backend/fisio_booking/dependencies.py
"""
FastAPI dependency providers.

One availability cache and one change channel per process; tests override
these through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .redis_client import notify_redis_client
from .services.events import Notifier, emit_event
from .services.slots.cache import AvailabilityCache
from .services.slots.channel import SlotChangeChannel
from .services.slots.config import BookingConfig, get_booking_config
from .services.slots.invalidator import attach_cache
from .services.slots.repository import SqlBookingStore


def get_config() -> BookingConfig:
    return get_booking_config()


def get_store(db: Session = Depends(get_db)) -> SqlBookingStore:
    return SqlBookingStore(db)


@lru_cache
def get_availability_cache() -> AvailabilityCache:
    return AvailabilityCache(get_booking_config())


@lru_cache
def get_slot_channel() -> SlotChangeChannel:
    channel = SlotChangeChannel(notify_redis_client)
    # Changes made by other processes drop this process's cached windows
    attach_cache(get_availability_cache(), channel)
    return channel


def get_notifier() -> Notifier:
    return emit_event
