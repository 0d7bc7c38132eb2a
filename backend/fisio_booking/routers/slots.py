# backend/fisio_booking/routers/slots.py
"""
Slots API endpoints.

Level 1: GET /slots/calendar - Calendar of past/full/available days for a service
Level 2: GET /slots/day - Bookable start times for a service on a day
"""

from datetime import date, datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_availability_cache, get_config, get_slot_channel, get_store
from ..errors import TransientQueryFailure
from ..schemas.slots import (
    SlotsCalendarResponse,
    SlotsDayResponse,
    SlotsDayStatus,
    SlotsInvalidateRequest,
    SlotsInvalidateResponse,
)
from ..services.slots import (
    AvailabilityCache,
    BookingConfig,
    SlotChangeChannel,
    SqlBookingStore,
    calculate_day_availability,
    generate_filtered_time_slots,
    invalidate_cache_and_notify,
)
from ..services.slots.invalidator import get_affected_dates


router = APIRouter(prefix="/slots", tags=["slots"])


def _service_or_404(store: SqlBookingStore, service_id: int):
    try:
        service = store.get_service(service_id)
    except TransientQueryFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


@router.get("/day", response_model=SlotsDayResponse)
def get_slots_day(
    service_id: int,
    target_date: date = Query(..., alias="date"),
    admin: bool = False,
    store: SqlBookingStore = Depends(get_store),
    cache: AvailabilityCache = Depends(get_availability_cache),
    config: BookingConfig = Depends(get_config),
):
    """Get available start times for a service on a specific day (Level 2)."""
    max_date = date.today() + timedelta(days=config.horizon_days)
    if target_date > max_date:
        raise HTTPException(status_code=400, detail=f"Date cannot be more than {config.horizon_days} days ahead")

    service = _service_or_404(store, service_id)

    try:
        slots = generate_filtered_time_slots(
            service,
            target_date,
            is_admin_context=admin,
            store=store,
            cache=cache,
            config=config,
        )
    except TransientQueryFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    return SlotsDayResponse(
        service_id=service.id,
        service_type=service.service_type,
        date=target_date,
        slots=slots,
        duration_minutes=service.duration_minutes,
        slot_step_minutes=config.slot_step_minutes,
        is_admin_context=admin,
    )


@router.get("/calendar", response_model=SlotsCalendarResponse)
def get_slots_calendar(
    service_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    admin: bool = False,
    store: SqlBookingStore = Depends(get_store),
    cache: AvailabilityCache = Depends(get_availability_cache),
    config: BookingConfig = Depends(get_config),
):
    """Get calendar of past/full/available days for a service (Level 1)."""
    today = date.today()
    if start_date is None:
        start_date = today.replace(day=1)
    if end_date is None:
        end_date = start_date + timedelta(days=config.horizon_days)

    max_date = today + timedelta(days=config.horizon_days)
    if end_date > max_date:
        end_date = max_date
    if end_date < start_date:
        end_date = start_date

    service = _service_or_404(store, service_id)

    try:
        statuses = calculate_day_availability(
            service,
            get_affected_dates(start_date, end_date),
            is_admin_context=admin,
            store=store,
            cache=cache,
            config=config,
            now=datetime.now(),
        )
    except TransientQueryFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    return SlotsCalendarResponse(
        service_id=service.id,
        start_date=start_date,
        end_date=end_date,
        days=[SlotsDayStatus(date=day, status=value) for day, value in statuses.items()],
        horizon_days=config.horizon_days,
        slot_step_minutes=config.slot_step_minutes,
    )


@router.post("/invalidate", response_model=SlotsInvalidateResponse)
def invalidate_slots(
    data: SlotsInvalidateRequest,
    cache: AvailabilityCache = Depends(get_availability_cache),
    channel: SlotChangeChannel = Depends(get_slot_channel),
):
    """Drop cached windows (one date or all) and broadcast the change."""
    dropped = invalidate_cache_and_notify(cache, channel, data.target_date, reason=data.reason)
    return SlotsInvalidateResponse(target_date=data.target_date, dropped_entries=dropped)
