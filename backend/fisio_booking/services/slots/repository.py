# backend/fisio_booking/services/slots/repository.py
"""
Persistence contracts used by the slot engine and the booking finalizer.

BookingStore is the port; SqlBookingStore implements it with SQLAlchemy.

Reads raise TransientQueryFailure when the database times out or fails,
so "could not read" never looks like "no availability".
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import AtomicInsertTechnicalError, SlotConflictError, TransientQueryFailure
from ...models.generated import (
    AvailableTimeSlots as DBAvailableTimeSlots,
    BookingDayLocks as DBBookingDayLocks,
    Bookings as DBBookings,
    Services as DBServices,
)
from .config import minutes_to_time_str, time_str_to_minutes
from .conflicts import find_conflict
from .entities import (
    ACTIVE_STATES,
    AUDIENCE_ADMIN,
    ExistingBooking,
    ServiceInfo,
    TimeWindow,
    date_key,
    partition_bookings,
)

logger = logging.getLogger(__name__)

SLOT_CONFLICT = SlotConflictError.error_code
TECHNICAL_ERROR = "TECHNICAL_ERROR"


@dataclass(frozen=True)
class AtomicBookingRequest:
    client_id: int
    dog_id: int
    service_id: int
    service_type: str
    space_id: int | None
    start: datetime
    duration_minutes: int
    price: float
    notes: str | None = None
    spaces_display: str | None = None
    is_home_visit: bool = False
    blocks_center: bool = False
    home_address: str | None = None
    home_end_time: str | None = None  # "HH:MM"
    status: str = "pendiente"


@dataclass(frozen=True)
class AtomicInsertResult:
    success: bool
    booking_id: int | None = None
    error_code: str | None = None
    error: str | None = None


class BookingStore(Protocol):
    def list_available_windows(self, target_date: date, audience: str) -> list[TimeWindow]: ...

    def list_active_bookings(self, target_date: date) -> list[ExistingBooking]: ...

    def create_booking_atomic(self, request: AtomicBookingRequest) -> AtomicInsertResult: ...

    def update_booking_state(self, booking_id: int, new_state: str) -> None: ...

    def get_service(self, service_id: int) -> ServiceInfo | None: ...


def format_date_start(start: datetime) -> str:
    return start.strftime("%Y-%m-%dT%H:%M:%S")


def parse_date_start(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", ""))


def to_existing_booking(booking: DBBookings, service_type: str | None) -> ExistingBooking:
    start = parse_date_start(booking.date_start)
    return ExistingBooking(
        start_time=start.strftime("%H:%M"),
        duration_minutes=booking.duration_minutes,
        service_type=service_type,
        blocks_center=bool(booking.blocks_center) or service_type != "rehabilitacion_domicilio",
        booking_id=booking.id,
    )


class SqlBookingStore:
    """BookingStore on a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # ── Reads ────────────────────────────────────────────────────────────

    def list_available_windows(self, target_date: date, audience: str) -> list[TimeWindow]:
        """Active admin windows for a date, ordered by start time."""
        try:
            query = self.db.query(DBAvailableTimeSlots).filter(
                DBAvailableTimeSlots.date == date_key(target_date),
                DBAvailableTimeSlots.is_active == 1,
            )
            if audience != AUDIENCE_ADMIN:
                query = query.filter(DBAvailableTimeSlots.admin_only == 0)
            rows = query.all()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to load windows for {target_date}: {e}")
            raise TransientQueryFailure("Could not load opening hours, please retry") from e

        windows = [
            TimeWindow(
                start=minutes_to_time_str(time_str_to_minutes(row.start_time)),
                end=minutes_to_time_str(time_str_to_minutes(row.end_time)),
                admin_only=bool(row.admin_only),
            )
            for row in rows
        ]
        windows.sort(key=lambda w: time_str_to_minutes(w.start))
        return windows

    def list_active_bookings(self, target_date: date) -> list[ExistingBooking]:
        """Active bookings of the date joined with their service type."""
        try:
            return self._active_bookings(date_key(target_date))
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to load bookings for {target_date}: {e}")
            raise TransientQueryFailure("Could not load bookings, please retry") from e

    def get_service(self, service_id: int) -> ServiceInfo | None:
        try:
            service = self.db.query(DBServices).filter(
                DBServices.id == service_id,
                DBServices.is_active == 1,
            ).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientQueryFailure("Could not load service, please retry") from e

        if not service:
            return None
        return ServiceInfo(
            id=service.id,
            name=service.name,
            service_type=service.service_type,
            duration_minutes=service.duration_minutes,
            price=service.price,
        )

    def get_booking(self, booking_id: int) -> DBBookings | None:
        return self.db.get(DBBookings, booking_id)

    # ── Writes ───────────────────────────────────────────────────────────

    def create_booking_atomic(self, request: AtomicBookingRequest) -> AtomicInsertResult:
        """
        Insert a booking unless it overlaps an active booking of that date.

        The day lock row is bumped first, so two inserts for the same date
        run one after the other and the second sees the first's row.
        """
        day = request.start.date().isoformat()
        try:
            self._lock_day(day)

            existing = partition_bookings(self._active_bookings(day))
            conflict = find_conflict(
                request.start.strftime("%H:%M"),
                request.duration_minutes,
                request.service_type,
                existing.center,
                existing.home_visits,
            )
            if conflict is not None:
                self.db.rollback()
                logger.warning(
                    f"Atomic insert rejected: {day} {request.start:%H:%M} "
                    f"overlaps {conflict.describe()}"
                )
                return AtomicInsertResult(
                    success=False,
                    error_code=SLOT_CONFLICT,
                    error="Time slot overlaps an existing booking",
                )

            booking = DBBookings(
                client_id=request.client_id,
                dog_id=request.dog_id,
                service_id=request.service_id,
                space_id=request.space_id,
                date_start=format_date_start(request.start),
                duration_minutes=request.duration_minutes,
                price=request.price,
                status=request.status,
                notes=request.notes,
                spaces_display=request.spaces_display,
                is_home_visit=1 if request.is_home_visit else 0,
                blocks_center=1 if request.blocks_center else 0,
                home_address=request.home_address,
                home_end_time=request.home_end_time,
            )
            self.db.add(booking)
            self.db.commit()
            self.db.refresh(booking)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Atomic insert failed for {day}: {e}")
            raise AtomicInsertTechnicalError("Could not create the booking") from e

        return AtomicInsertResult(success=True, booking_id=booking.id)

    def update_booking_state(self, booking_id: int, new_state: str) -> None:
        try:
            booking = self.db.get(DBBookings, booking_id)
            if booking is None:
                raise AtomicInsertTechnicalError(f"Booking {booking_id} not found")
            booking.status = new_state
            booking.updated_at = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise AtomicInsertTechnicalError(f"Could not update booking {booking_id}") from e

    # ── Helpers ──────────────────────────────────────────────────────────

    def _active_bookings(self, day: str) -> list[ExistingBooking]:
        next_day = (date.fromisoformat(day) + timedelta(days=1)).isoformat()
        rows = (
            self.db.query(DBBookings, DBServices.service_type)
            .join(DBServices, DBBookings.service_id == DBServices.id)
            .filter(
                DBBookings.date_start >= f"{day}T00:00:00",
                DBBookings.date_start < f"{next_day}T00:00:00",
                DBBookings.status.in_(ACTIVE_STATES),
            )
            .all()
        )
        return [to_existing_booking(booking, service_type) for booking, service_type in rows]

    def _lock_day(self, day: str) -> None:
        """Take the per-date write lock (row update; creates the row once)."""
        for _ in range(2):
            result = self.db.execute(
                update(DBBookingDayLocks)
                .where(DBBookingDayLocks.day == day)
                .values(version=DBBookingDayLocks.version + 1)
            )
            if result.rowcount:
                return
            try:
                self.db.add(DBBookingDayLocks(day=day, version=1))
                self.db.flush()
                return
            except IntegrityError:
                # Another insert created the row first; take it by update
                self.db.rollback()
        raise AtomicInsertTechnicalError(f"Could not lock bookings for {day}")
