# backend/fisio_booking/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .dependencies import get_slot_channel
from .errors import SlotConflictError
from .redis_client import redis_client
from .routers import available_time_slots, bookings, slots
from .services.completion_checker import completion_checker_loop
from .services.reminder_checker import reminder_checker_loop
from .services.slots.channel import slot_change_listener_loop

logging.basicConfig(level=logging.DEBUG if settings.clinic_debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    tasks = []
    if settings.background_tasks_enabled:
        tasks = [
            asyncio.create_task(completion_checker_loop()),
            asyncio.create_task(reminder_checker_loop()),
            asyncio.create_task(slot_change_listener_loop(settings.redis_url, get_slot_channel())),
        ]
        logger.info(f"Background tasks started: {len(tasks)}")

    yield

    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


app = FastAPI(title="Fisio Booking API", lifespan=lifespan)

app.include_router(slots.router)
app.include_router(bookings.router)
app.include_router(available_time_slots.router)


@app.exception_handler(SlotConflictError)
async def slot_conflict_handler(request: Request, exc: SlotConflictError):
    """Slot taken: 409 and the client re-fetches slots."""
    logger.warning(f"Slot conflict on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=409,
        content={
            "detail": {
                "message": exc.message,
                "error_code": exc.error_code,
                "refresh_slots": True,
            }
        },
    )


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}
