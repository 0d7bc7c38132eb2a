"""
Integration tests for the SQLAlchemy booking store.

The atomic insert must refuse an overlapping booking even when the caller's
own pre-check read stale data.
"""

import pytest
from dataclasses import replace
from datetime import datetime, time, timedelta
from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from fisio_booking.errors import TransientQueryFailure
from fisio_booking.models.generated import BookingDayLocks, Bookings
from fisio_booking.services.booking_finalizer import BookingFinalizer, BookingSelection, FinalizeState
from fisio_booking.services.slots.entities import AUDIENCE_ADMIN, AUDIENCE_CLIENT, TimeWindow
from fisio_booking.services.slots.repository import (
    SLOT_CONFLICT,
    AtomicBookingRequest,
    SqlBookingStore,
)


def request_for(seeded, start: datetime, service_type: str = "rehabilitacion", duration: int = 45):
    service = seeded["services"][service_type]
    return AtomicBookingRequest(
        client_id=seeded["client"].id,
        dog_id=seeded["dog"].id,
        service_id=service.id,
        service_type=service_type,
        space_id=1,
        start=start,
        duration_minutes=duration,
        price=service.price,
        spaces_display="Rehabilitation cabin",
    )


class StaleSqlStore(SqlBookingStore):
    """Pre-check reads see an empty day."""

    def list_active_bookings(self, target_date):
        return []


class TestWindows:
    """Reading admin windows."""

    def test_audience_filter(self, db_session, add_window, future_day):
        add_window(future_day, "09:00", "12:00")
        add_window(future_day, "16:00", "18:00", admin_only=True)
        store = SqlBookingStore(db_session)

        assert store.list_available_windows(future_day, AUDIENCE_CLIENT) == [
            TimeWindow("09:00", "12:00", False),
        ]
        assert len(store.list_available_windows(future_day, AUDIENCE_ADMIN)) == 2

    def test_inactive_and_other_dates_excluded(self, db_session, add_window, future_day):
        window = add_window(future_day, "09:00", "12:00")
        window.is_active = 0
        db_session.commit()
        add_window(future_day + timedelta(days=1), "09:00", "12:00")

        assert SqlBookingStore(db_session).list_available_windows(future_day, AUDIENCE_ADMIN) == []

    def test_times_with_seconds_are_normalized(self, db_session, add_window, future_day):
        add_window(future_day, "09:00:00", "12:00:00")
        windows = SqlBookingStore(db_session).list_available_windows(future_day, AUDIENCE_CLIENT)
        assert windows == [TimeWindow("09:00", "12:00", False)]

    @pytest.mark.parametrize("audience", [AUDIENCE_CLIENT, AUDIENCE_ADMIN])
    def test_read_failure_is_transient(self, future_day, audience):
        db = Mock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("timeout"))

        with pytest.raises(TransientQueryFailure):
            SqlBookingStore(db).list_available_windows(future_day, audience)
        db.rollback.assert_called_once()


class TestActiveBookings:
    """Reading same-day bookings."""

    def test_only_active_bookings_of_the_day(self, db_session, add_booking, future_day):
        add_booking(datetime.combine(future_day, time(10, 0)))
        add_booking(datetime.combine(future_day, time(12, 0)), status="confirmada")
        add_booking(datetime.combine(future_day, time(14, 0)), status="cancelada")
        add_booking(datetime.combine(future_day, time(16, 0)), status="completada")
        add_booking(datetime.combine(future_day + timedelta(days=1), time(10, 0)))

        bookings = SqlBookingStore(db_session).list_active_bookings(future_day)

        assert sorted(b.start_time for b in bookings) == ["10:00", "12:00"]

    def test_service_type_joined(self, db_session, add_booking, future_day):
        add_booking(datetime.combine(future_day, time(10, 0)), service_type="hidroterapia")

        [booking] = SqlBookingStore(db_session).list_active_bookings(future_day)

        assert booking.service_type == "hidroterapia"
        assert booking.duration_minutes == 30

    def test_home_visit_blocking_flag(self, db_session, add_booking, future_day):
        add_booking(datetime.combine(future_day, time(10, 0)), "rehabilitacion_domicilio", 60, blocks_center=True)
        add_booking(datetime.combine(future_day, time(15, 0)), "rehabilitacion_domicilio", 60, blocks_center=False)

        bookings = SqlBookingStore(db_session).list_active_bookings(future_day)

        assert {b.start_time: b.blocks_center for b in bookings} == {"10:00": True, "15:00": False}


class TestAtomicInsert:
    """create_booking_atomic: all-or-nothing with overlap check."""

    def test_inserts_pending_booking(self, db_session, seeded, future_day):
        start = datetime.combine(future_day, time(10, 0))

        result = SqlBookingStore(db_session).create_booking_atomic(request_for(seeded, start))

        assert result.success
        booking = db_session.get(Bookings, result.booking_id)
        assert booking.status == "pendiente"
        assert booking.date_start == start.strftime("%Y-%m-%dT%H:%M:%S")
        assert booking.spaces_display == "Rehabilitation cabin"
        assert db_session.get(BookingDayLocks, future_day.isoformat()).version == 1

    def test_writes_requested_status(self, db_session, seeded, future_day):
        request = replace(
            request_for(seeded, datetime.combine(future_day, time(8, 0))),
            status="pendiente_confirmacion",
        )

        result = SqlBookingStore(db_session).create_booking_atomic(request)

        assert db_session.get(Bookings, result.booking_id).status == "pendiente_confirmacion"

    def test_rejects_overlap(self, db_session, seeded, add_booking, future_day):
        add_booking(datetime.combine(future_day, time(10, 0)), "hidroterapia", 45)
        store = SqlBookingStore(db_session)

        result = store.create_booking_atomic(request_for(seeded, datetime.combine(future_day, time(10, 45))))

        assert not result.success
        assert result.error_code == SLOT_CONFLICT
        assert db_session.query(Bookings).count() == 1

    def test_allows_back_to_back(self, db_session, seeded, add_booking, future_day):
        add_booking(datetime.combine(future_day, time(10, 0)), "hidroterapia", 45)
        store = SqlBookingStore(db_session)

        result = store.create_booking_atomic(request_for(seeded, datetime.combine(future_day, time(11, 0))))

        assert result.success
        assert db_session.query(Bookings).count() == 2

    def test_cancelled_booking_frees_the_slot(self, db_session, seeded, add_booking, future_day):
        add_booking(datetime.combine(future_day, time(10, 0)), status="cancelada")

        result = SqlBookingStore(db_session).create_booking_atomic(
            request_for(seeded, datetime.combine(future_day, time(10, 0)))
        )

        assert result.success

    def test_day_lock_bumped_per_insert(self, db_session, seeded, future_day):
        store = SqlBookingStore(db_session)
        store.create_booking_atomic(request_for(seeded, datetime.combine(future_day, time(9, 0))))
        store.create_booking_atomic(request_for(seeded, datetime.combine(future_day, time(12, 0))))

        assert db_session.get(BookingDayLocks, future_day.isoformat()).version == 2

    def test_stale_precheck_still_conflicts(self, db_session, seeded, add_booking, future_day):
        """Finalizer + SQL store: the atomic insert is the final word."""
        add_booking(datetime.combine(future_day, time(10, 0)))
        service = SqlBookingStore(db_session).get_service(seeded["services"]["rehabilitacion"].id)
        finalizer = BookingFinalizer(StaleSqlStore(db_session), notifier=Mock())

        result = finalizer.finalize(
            BookingSelection(
                client_id=seeded["client"].id,
                dog_id=seeded["dog"].id,
                service=service,
                target_date=future_day,
                start_time="10:15",
            ),
            now=datetime.combine(future_day - timedelta(days=3), time(9, 0)),
        )

        assert result.state == FinalizeState.CONFLICT
        assert db_session.query(Bookings).count() == 1


class TestServicesAndState:

    def test_get_service(self, db_session, seeded):
        rehab = seeded["services"]["rehabilitacion"]
        service = SqlBookingStore(db_session).get_service(rehab.id)
        assert service.service_type == "rehabilitacion"
        assert service.duration_minutes == 45
        assert not service.is_home_visit

    def test_inactive_or_missing_service(self, db_session, seeded):
        rehab = seeded["services"]["rehabilitacion"]
        rehab.is_active = 0
        db_session.commit()
        store = SqlBookingStore(db_session)

        assert store.get_service(rehab.id) is None
        assert store.get_service(999) is None

    def test_update_booking_state(self, db_session, add_booking, future_day):
        booking = add_booking(datetime.combine(future_day, time(10, 0)))

        SqlBookingStore(db_session).update_booking_state(booking.id, "pendiente_confirmacion")

        db_session.refresh(booking)
        assert booking.status == "pendiente_confirmacion"
