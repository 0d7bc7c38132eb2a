# backend/fisio_booking/routers/available_time_slots.py
# DELETE = soft delete (is_active = 0)

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_availability_cache, get_config, get_slot_channel
from ..errors import AtomicInsertTechnicalError, BookingValidationError, TransientQueryFailure
from ..models.generated import AvailableTimeSlots as DBTimeSlot
from ..schemas.available_time_slots import (
    AvailableTimeSlotBatchResponse,
    AvailableTimeSlotCreate,
    AvailableTimeSlotRead,
    AvailableTimeSlotUpdate,
)
from ..services.slots import AvailabilityCache, BookingConfig, SlotChangeChannel
from ..services.time_slot_admin import create_windows, deactivate_window, update_window

router = APIRouter(prefix="/available_time_slots", tags=["available_time_slots"])


@router.get("/", response_model=list[AvailableTimeSlotRead])
def list_time_slots(
    target_date: date | None = Query(None, alias="date"),
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    query = db.query(DBTimeSlot)
    if target_date is not None:
        query = query.filter(DBTimeSlot.date == target_date.isoformat())
    if not include_inactive:
        query = query.filter(DBTimeSlot.is_active == 1)
    return query.order_by(DBTimeSlot.date, DBTimeSlot.start_time).all()


@router.post("/", response_model=AvailableTimeSlotBatchResponse, status_code=status.HTTP_201_CREATED)
def create_time_slots(
    data: AvailableTimeSlotCreate,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_availability_cache),
    channel: SlotChangeChannel = Depends(get_slot_channel),
    config: BookingConfig = Depends(get_config),
):
    """Add one window to every listed date. Failures are reported per date."""
    try:
        result = create_windows(
            db,
            data.dates,
            data.start_time,
            data.end_time,
            admin_only=data.admin_only,
            cache=cache,
            channel=channel,
            config=config,
        )
    except TransientQueryFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    if not result.created:
        raise HTTPException(status_code=422, detail=result.failed)

    return AvailableTimeSlotBatchResponse(
        created=[AvailableTimeSlotRead.model_validate(w) for w in result.created],
        failed=result.failed,
    )


@router.patch("/{id}", response_model=AvailableTimeSlotRead)
def patch_time_slot(
    id: int,
    data: AvailableTimeSlotUpdate,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_availability_cache),
    channel: SlotChangeChannel = Depends(get_slot_channel),
    config: BookingConfig = Depends(get_config),
):
    try:
        return update_window(
            db,
            id,
            start_time=data.start_time,
            end_time=data.end_time,
            admin_only=data.admin_only,
            cache=cache,
            channel=channel,
            config=config,
        )
    except LookupError:
        raise HTTPException(status_code=404, detail="Not found")
    except BookingValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)
    except (TransientQueryFailure, AtomicInsertTechnicalError) as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.delete("/{id}", response_model=AvailableTimeSlotRead)
def delete_time_slot(
    id: int,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_availability_cache),
    channel: SlotChangeChannel = Depends(get_slot_channel),
):
    try:
        return deactivate_window(db, id, cache=cache, channel=channel)
    except LookupError:
        raise HTTPException(status_code=404, detail="Not found")
    except AtomicInsertTechnicalError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
