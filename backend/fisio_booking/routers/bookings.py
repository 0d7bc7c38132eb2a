# backend/fisio_booking/routers/bookings.py
# PATCH = 405, DELETE = 405: bookings change state only through cancel/confirm

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import (
    get_availability_cache,
    get_config,
    get_notifier,
    get_slot_channel,
    get_store,
)
from ..errors import (
    AtomicInsertTechnicalError,
    BookingValidationError,
    SlotConflictError,
    TransientQueryFailure,
)
from ..models.generated import Bookings as DBBookings
from ..schemas.bookings import (
    BookingAttemptResponse,
    BookingCreate,
    BookingRead,
    CancelRequest,
    CancelResponse,
    HomeVisitCreate,
    HomeVisitQuoteResponse,
)
from ..services.booking_finalizer import (
    SLOT_TAKEN_MESSAGE,
    BookingFinalizer,
    BookingSelection,
    FinalizeResult,
    FinalizeState,
)
from ..services.cancellation import cancel_booking, confirm_booking
from ..services.events import Notifier
from ..services.home_visits import build_home_visit_selection, quote_home_visit
from ..services.slots import (
    AvailabilityCache,
    BookingConfig,
    SlotChangeChannel,
    SqlBookingStore,
    generate_filtered_time_slots,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    target_date: date | None = Query(None, alias="date"),
    db: Session = Depends(get_db),
):
    query = db.query(DBBookings)
    if target_date is not None:
        day = target_date.isoformat()
        query = query.filter(
            DBBookings.date_start >= f"{day}T00:00:00",
            DBBookings.date_start <= f"{day}T23:59:59",
        )
    return query.order_by(DBBookings.date_start).all()


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBBookings, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=BookingAttemptResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    store: SqlBookingStore = Depends(get_store),
    cache: AvailabilityCache = Depends(get_availability_cache),
    channel: SlotChangeChannel = Depends(get_slot_channel),
    notifier: Notifier = Depends(get_notifier),
    config: BookingConfig = Depends(get_config),
):
    """
    Book a center service at a start time offered by /slots/day.

    409 → slot taken (re-fetch slots), 503 → retry, 422 → invalid request.
    """
    service = _service_or_404(store, data.service_id)
    if service.is_home_visit:
        raise HTTPException(
            status_code=422,
            detail="Home visits are booked through /bookings/home-visits",
        )

    target_date = date.fromisoformat(data.date)

    # The time must be one the generator offers to this audience
    try:
        offered = generate_filtered_time_slots(
            service,
            target_date,
            is_admin_context=data.is_admin_context,
            store=store,
            cache=cache,
            config=config,
        )
    except TransientQueryFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    if data.time not in offered:
        logger.warning(f"Booking request for unavailable slot {data.date} {data.time}")
        raise SlotConflictError(SLOT_TAKEN_MESSAGE)

    selection = BookingSelection(
        client_id=data.client_id,
        dog_id=data.dog_id,
        service=service,
        target_date=target_date,
        start_time=data.time,
        notes=data.notes,
        initiated_by_admin=data.is_admin_context,
    )
    finalizer = BookingFinalizer(store, cache=cache, channel=channel, notifier=notifier, config=config)
    return _finalize_or_raise(finalizer, selection)


@router.get("/home-visits/quote", response_model=HomeVisitQuoteResponse)
def quote_home_visit_price(
    start_time: str,
    end_time: str,
    config: BookingConfig = Depends(get_config),
):
    """Price of a home visit for the chosen start and end."""
    try:
        quote = quote_home_visit(start_time, end_time, config)
    except BookingValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)
    return HomeVisitQuoteResponse(duration_minutes=quote.duration_minutes, price=quote.price)


@router.post("/home-visits", response_model=BookingAttemptResponse, status_code=status.HTTP_201_CREATED)
def create_home_visit(
    data: HomeVisitCreate,
    store: SqlBookingStore = Depends(get_store),
    cache: AvailabilityCache = Depends(get_availability_cache),
    channel: SlotChangeChannel = Depends(get_slot_channel),
    notifier: Notifier = Depends(get_notifier),
    config: BookingConfig = Depends(get_config),
):
    """Admin books a home visit; price follows from the chosen duration."""
    service = _service_or_404(store, data.service_id)

    try:
        selection = build_home_visit_selection(
            service,
            client_id=data.client_id,
            dog_id=data.dog_id,
            target_date=date.fromisoformat(data.date),
            start_time=data.start_time,
            end_time=data.end_time,
            address=data.address,
            notes=data.notes,
            config=config,
        )
    except BookingValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)

    finalizer = BookingFinalizer(store, cache=cache, channel=channel, notifier=notifier, config=config)
    return _finalize_or_raise(finalizer, selection)


@router.post("/{id}/cancel", response_model=CancelResponse)
def cancel(
    id: int,
    data: CancelRequest,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_availability_cache),
    channel: SlotChangeChannel = Depends(get_slot_channel),
    notifier: Notifier = Depends(get_notifier),
    config: BookingConfig = Depends(get_config),
):
    try:
        result = cancel_booking(
            db,
            id,
            by_admin=data.by_admin,
            reason=data.reason,
            cache=cache,
            channel=channel,
            notifier=notifier,
            config=config,
        )
    except LookupError:
        raise HTTPException(status_code=404, detail="Not found")
    except BookingValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)
    except AtomicInsertTechnicalError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    return CancelResponse(
        booking_id=result.booking_id,
        hours_before=round(result.hours_before, 2),
        surcharge=result.surcharge,
    )


@router.post("/{id}/confirm", response_model=BookingRead)
def confirm(
    id: int,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Admin confirms a booking awaiting confirmation."""
    try:
        return confirm_booking(db, id, notifier=notifier)
    except LookupError:
        raise HTTPException(status_code=404, detail="Not found")
    except BookingValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)
    except AtomicInsertTechnicalError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _service_or_404(store: SqlBookingStore, service_id: int):
    try:
        service = store.get_service(service_id)
    except TransientQueryFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


def _finalize_or_raise(finalizer: BookingFinalizer, selection: BookingSelection) -> BookingAttemptResponse:
    try:
        result: FinalizeResult = finalizer.finalize(selection)
    except BookingValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)

    if result.state == FinalizeState.CONFLICT:
        raise SlotConflictError(result.message)
    if result.state == FinalizeState.ERROR:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": result.message, "retryable": result.retryable},
        )

    return BookingAttemptResponse(
        state=result.state.value,
        booking_id=result.booking_id,
        booking_status=result.booking_status,
        transitions=[t.value for t in result.transitions],
    )
