# backend/fisio_booking/services/booking_finalizer.py
"""
Booking finalizer: the commit step of a booking attempt.

    SELECTING → VALIDATING → COMMITTED | CONFLICT | ERROR

1. Validate the selection (no write happens on a validation error)
2. Re-read the day's bookings from the store (never from the cache)
3. Re-run the conflict detector with the real duration
4. Classify pendiente / pendiente_confirmacion
5. Call the atomic insert, which writes that state with the row;
   SLOT_CONFLICT is handled like step 3 failing
6. On commit: invalidate the date, notify (fire-and-forget)

The in-process check only gives fast feedback. Two attempts can pass it
together; the atomic insert decides which one wins.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..errors import AtomicInsertTechnicalError, BookingValidationError, TransientQueryFailure
from .events import (
    ADMIN_NEW_BOOKING,
    ADMIN_PENDING_CONFIRMATION,
    BOOKING_CONFIRMED,
    BOOKING_PENDING_CONFIRMATION,
    Notifier,
    dispatch_all,
    emit_event,
)
from .slots.cache import AvailabilityCache
from .slots.channel import SlotChangeChannel
from .slots.config import BookingConfig, get_booking_config, minutes_to_time_str, time_str_to_minutes
from .slots.confirmation import requires_admin_confirmation
from .slots.conflicts import find_conflict
from .slots.entities import ServiceInfo, partition_bookings
from .slots.invalidator import invalidate_cache_and_notify
from .slots.policy import space_for_service
from .slots.repository import SLOT_CONFLICT, AtomicBookingRequest, BookingStore

SLOT_TAKEN_MESSAGE = "This time slot was just booked by someone else. Please choose another time."
TECHNICAL_ERROR_MESSAGE = "The booking could not be created. Please try again."


class FinalizeState(str, enum.Enum):
    SELECTING = "selecting"
    VALIDATING = "validating"
    COMMITTED = "committed"
    CONFLICT = "conflict"
    ERROR = "error"


@dataclass(frozen=True)
class BookingSelection:
    """What the user picked."""
    client_id: int
    dog_id: int
    service: ServiceInfo
    target_date: date
    start_time: str  # "HH:MM"
    end_time: str | None = None  # home visits only
    price: float | None = None  # defaults to the service price
    notes: str | None = None
    home_address: str | None = None
    initiated_by_admin: bool = False

    @property
    def duration_minutes(self) -> int:
        if self.service.is_home_visit:
            return time_str_to_minutes(self.end_time) - time_str_to_minutes(self.start_time)
        return self.service.duration_minutes

    @property
    def start(self) -> datetime:
        return datetime.combine(self.target_date, datetime.min.time()) + timedelta(
            minutes=time_str_to_minutes(self.start_time)
        )


@dataclass
class FinalizeResult:
    state: FinalizeState
    booking_id: int | None = None
    booking_status: str | None = None
    message: str | None = None
    error_code: str | None = None
    # The caller must regenerate slots and clear the chosen time
    refresh_slots: bool = False
    retryable: bool = False
    transitions: list[FinalizeState] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.state == FinalizeState.COMMITTED


class BookingFinalizer:
    """Re-validates a selection and commits it through the atomic insert."""

    def __init__(
        self,
        store: BookingStore,
        *,
        cache: AvailabilityCache | None = None,
        channel: SlotChangeChannel | None = None,
        notifier: Notifier = emit_event,
        config: BookingConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.cache = cache
        self.channel = channel
        self.notifier = notifier
        self.config = config or get_booking_config()
        self.logger = logger or logging.getLogger(__name__)

    def finalize(self, selection: BookingSelection, now: datetime | None = None) -> FinalizeResult:
        """
        Commit a booking attempt.

        Raises:
            BookingValidationError: the selection itself is invalid
        """
        now = now or datetime.now()
        transitions = [FinalizeState.SELECTING]

        self.validate(selection, now)
        transitions.append(FinalizeState.VALIDATING)

        duration = selection.duration_minutes
        service = selection.service

        # Fresh same-day bookings, bypassing the cache
        try:
            day = partition_bookings(self.store.list_active_bookings(selection.target_date))
        except TransientQueryFailure as e:
            return self._error(transitions, str(e) or TECHNICAL_ERROR_MESSAGE)

        conflict = find_conflict(
            selection.start_time, duration, service.service_type, day.center, day.home_visits
        )
        if conflict is not None:
            self.logger.warning(
                f"Booking conflict on {selection.target_date} {selection.start_time}: "
                f"{conflict.describe()}"
            )
            return self._conflict(transitions)

        # Decided before the insert so the row is written with its final state
        needs_confirmation = not selection.initiated_by_admin and requires_admin_confirmation(
            selection.target_date, selection.start_time, now, self.config
        )
        status = "pendiente_confirmacion" if needs_confirmation else "pendiente"

        space = space_for_service(service.service_type)
        request = AtomicBookingRequest(
            client_id=selection.client_id,
            dog_id=selection.dog_id,
            service_id=service.id,
            service_type=service.service_type,
            space_id=space.space_id,
            start=selection.start,
            duration_minutes=duration,
            price=selection.price if selection.price is not None else service.price,
            notes=(selection.notes or "").strip() or None,
            spaces_display=space.display,
            is_home_visit=service.is_home_visit,
            blocks_center=service.is_home_visit,
            home_address=(selection.home_address or "").strip() or None,
            home_end_time=selection.end_time if service.is_home_visit else None,
            status=status,
        )

        try:
            result = self.store.create_booking_atomic(request)
        except AtomicInsertTechnicalError as e:
            self.logger.error(f"Atomic insert error on {selection.target_date}: {e}")
            return self._error(transitions, TECHNICAL_ERROR_MESSAGE)

        if not result.success:
            if result.error_code == SLOT_CONFLICT:
                self.logger.warning(
                    f"Atomic insert lost the race for {selection.target_date} {selection.start_time}"
                )
                return self._conflict(transitions)
            self.logger.error(f"Atomic insert failed: {result.error_code} {result.error}")
            return self._error(transitions, result.error or TECHNICAL_ERROR_MESSAGE)

        transitions.append(FinalizeState.COMMITTED)
        self.logger.info(
            f"Booking committed: booking_id={result.booking_id}, "
            f"service={service.service_type}, time={selection.target_date} "
            f"{selection.start_time}, status={status}"
        )

        self._after_commit(selection, result.booking_id, status, duration, request)

        return FinalizeResult(
            state=FinalizeState.COMMITTED,
            booking_id=result.booking_id,
            booking_status=status,
            transitions=transitions,
        )

    def validate(self, selection: BookingSelection, now: datetime) -> None:
        """Reject impossible selections before anything is written."""
        start_min = time_str_to_minutes(selection.start_time)
        if start_min >= 24 * 60 or minutes_to_time_str(start_min) != (selection.start_time or "")[:5]:
            raise BookingValidationError("Start time must be in HH:MM format")

        if selection.start < now:
            raise BookingValidationError("Bookings cannot start in the past")

        if selection.service.is_home_visit:
            if not selection.end_time:
                raise BookingValidationError("Home visits need an end time")
            if time_str_to_minutes(selection.end_time) <= start_min:
                raise BookingValidationError("End time must be after start time")
            if selection.duration_minutes < self.config.min_home_visit_minutes:
                raise BookingValidationError(
                    f"Home visits last at least {self.config.min_home_visit_minutes} minutes"
                )
            if not (selection.home_address or "").strip():
                raise BookingValidationError("Home visits need an address")
        elif selection.duration_minutes <= 0:
            raise BookingValidationError("Service has no duration")

    # ── Outcomes ─────────────────────────────────────────────────────────

    def _conflict(self, transitions: list[FinalizeState]) -> FinalizeResult:
        transitions.append(FinalizeState.CONFLICT)
        return FinalizeResult(
            state=FinalizeState.CONFLICT,
            message=SLOT_TAKEN_MESSAGE,
            error_code=SLOT_CONFLICT,
            refresh_slots=True,
            transitions=transitions,
        )

    def _error(self, transitions: list[FinalizeState], message: str) -> FinalizeResult:
        transitions.append(FinalizeState.ERROR)
        return FinalizeResult(
            state=FinalizeState.ERROR,
            message=message,
            retryable=True,
            transitions=transitions,
        )

    def _after_commit(
        self,
        selection: BookingSelection,
        booking_id: int,
        status: str,
        duration: int,
        request: AtomicBookingRequest,
    ) -> None:
        if self.cache is not None or self.channel is not None:
            try:
                invalidate_cache_and_notify(
                    self.cache, self.channel, selection.target_date, reason="booking-created"
                )
            except Exception:
                self.logger.exception(f"Slot invalidation failed after booking {booking_id}")

        payload = {
            "booking_id": booking_id,
            "client_id": selection.client_id,
            "dog_id": selection.dog_id,
            "service_name": selection.service.name,
            "service_type": selection.service.service_type,
            "date": selection.target_date.isoformat(),
            "time": selection.start_time,
            "end_time": selection.end_time,
            "duration_minutes": duration,
            "price": request.price,
            "spaces": request.spaces_display,
            "notes": request.notes,
        }

        if status == "pendiente_confirmacion":
            events = [
                (BOOKING_PENDING_CONFIRMATION, payload),
                (ADMIN_PENDING_CONFIRMATION, payload),
            ]
        elif selection.initiated_by_admin:
            events = [(BOOKING_CONFIRMED, payload)]
        else:
            events = [(BOOKING_CONFIRMED, payload), (ADMIN_NEW_BOOKING, payload)]

        dispatch_all(self.notifier, events)
