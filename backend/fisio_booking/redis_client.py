# backend/fisio_booking/redis_client.py

from redis import Redis

from .config import settings

# Connection is opened lazily on the first command
redis_client = Redis.from_url(
    settings.redis_url,
    socket_timeout=settings.query_timeout_seconds,
    socket_connect_timeout=2.0,
    decode_responses=True,
)

# Notifications and slot-change broadcasts run inside request handlers
notify_redis_client = Redis.from_url(
    settings.redis_url,
    socket_timeout=settings.redis_notify_timeout_seconds,
    socket_connect_timeout=settings.redis_notify_timeout_seconds,
    decode_responses=True,
)
