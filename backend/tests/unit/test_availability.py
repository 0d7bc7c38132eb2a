"""
Unit tests for the slot generator and day availability.

Uses the in-memory store; `now` is always pinned.
"""

import pytest
from datetime import datetime, time, timedelta

from fisio_booking.errors import TransientQueryFailure
from fisio_booking.services.slots.availability import (
    DAY_AVAILABLE,
    DAY_FULL,
    DAY_PAST,
    calculate_day_availability,
    filter_today_slots,
    generate_filtered_time_slots,
)
from fisio_booking.services.slots.cache import AvailabilityCache
from fisio_booking.services.slots.config import BookingConfig, time_str_to_minutes
from fisio_booking.services.slots.entities import ExistingBooking, ServiceInfo


@pytest.fixture
def now(future_day):
    """Noon, six days before `future_day`."""
    return datetime.combine(future_day - timedelta(days=6), time(12, 0))


def long_service(minutes: int) -> ServiceInfo:
    return ServiceInfo(id=9, name="Long rehab", service_type="rehabilitacion", duration_minutes=minutes, price=90.0)


class TestFailClosed:
    """No admin windows means no availability."""

    def test_no_windows_returns_empty(self, fake_store, rehab_service, future_day, now):
        slots = generate_filtered_time_slots(
            rehab_service, future_day, [], [], False, store=fake_store, now=now
        )
        assert slots == []

    def test_past_date_returns_empty(self, fake_store, rehab_service, future_day):
        fake_store.add_window(future_day, "09:00", "12:00")
        later = datetime.combine(future_day + timedelta(days=1), time(8, 0))

        slots = generate_filtered_time_slots(rehab_service, future_day, [], [], store=fake_store, now=later)

        assert slots == []

    def test_read_failure_is_not_empty(self, fake_store, rehab_service, future_day, now):
        """A failed read raises instead of looking like a full day."""
        fake_store.fail_reads = True
        with pytest.raises(TransientQueryFailure):
            generate_filtered_time_slots(rehab_service, future_day, store=fake_store, now=now)


class TestGeneration:
    """Test candidate generation and filtering."""

    def test_slots_fit_in_window(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "10:00", "11:30")

        slots = generate_filtered_time_slots(rehab_service, future_day, [], [], store=fake_store, now=now)

        assert slots == ["10:00", "10:15", "10:30", "10:45"]

    def test_existing_booking_removes_overlapping_starts(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "09:00", "12:00")
        bookings = [ExistingBooking("10:00", 45, "hidroterapia")]

        slots = generate_filtered_time_slots(
            rehab_service, future_day, bookings, [], store=fake_store, now=now
        )

        # 45-minute rehab must end by 10:00 or start at 11:00 (after drying time)
        assert slots == ["09:00", "09:15", "11:00", "11:15"]

    def test_home_visit_blocks_center(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "14:00", "17:00")
        visits = [ExistingBooking("14:30", 90, "rehabilitacion_domicilio", blocks_center=True)]

        slots = generate_filtered_time_slots(
            rehab_service, future_day, [], visits, store=fake_store, now=now
        )

        assert slots == ["16:00", "16:15"]

    def test_sorted_and_unique_across_windows(self, fake_store, hydro_service, future_day, now):
        fake_store.add_window(future_day, "15:00", "16:00")
        fake_store.add_window(future_day, "09:00", "10:00")

        slots = generate_filtered_time_slots(hydro_service, future_day, [], [], store=fake_store, now=now)

        assert slots == sorted(set(slots))
        assert slots == ["09:00", "09:15", "09:30", "15:00", "15:15", "15:30"]


class TestWindowMerge:
    """A long service may straddle windows entered separately."""

    def test_service_spans_merged_windows(self, fake_store, future_day, now):
        fake_store.add_window(future_day, "09:00", "12:00")
        fake_store.add_window(future_day, "12:00", "15:00")

        slots = generate_filtered_time_slots(long_service(90), future_day, [], [], store=fake_store, now=now)

        assert "11:00" in slots
        assert slots[0] == "09:00"
        assert slots[-1] == "13:30"

    def test_separate_windows_stay_separate(self, fake_store, future_day, now):
        fake_store.add_window(future_day, "09:00", "11:00")
        fake_store.add_window(future_day, "11:30", "13:00")

        slots = generate_filtered_time_slots(long_service(90), future_day, [], [], store=fake_store, now=now)

        assert slots == ["09:00", "09:15", "09:30", "11:30"]


class TestAudience:
    """Admin-only windows are invisible to clients."""

    def test_client_does_not_see_admin_only(self, fake_store, hydro_service, future_day, now):
        fake_store.add_window(future_day, "09:00", "10:00", admin_only=True)

        client_slots = generate_filtered_time_slots(
            hydro_service, future_day, [], [], False, store=fake_store, now=now
        )
        admin_slots = generate_filtered_time_slots(
            hydro_service, future_day, [], [], True, store=fake_store, now=now
        )

        assert client_slots == []
        assert admin_slots == ["09:00", "09:15", "09:30"]


class TestHomeVisitCandidates:
    """Home visits are screened with a 30-minute probe up to the window end."""

    def test_candidates_include_window_end(self, fake_store, home_service, future_day, now):
        fake_store.add_window(future_day, "16:00", "17:00")

        slots = generate_filtered_time_slots(home_service, future_day, [], [], store=fake_store, now=now)

        assert slots == ["16:00", "16:15", "16:30", "16:45", "17:00"]

    def test_probe_screens_around_center_booking(self, fake_store, home_service, future_day, now):
        fake_store.add_window(future_day, "16:00", "17:00")
        bookings = [ExistingBooking("16:30", 30, "rehabilitacion")]

        slots = generate_filtered_time_slots(
            home_service, future_day, bookings, [], store=fake_store, now=now
        )

        assert slots == ["16:00", "17:00"]


class TestFreshBookings:
    """Without caller-supplied bookings the generator reads them itself."""

    def test_reads_store_when_not_supplied(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "10:00", "12:00")
        fake_store.add_booking(future_day, "10:00", 60, "rehabilitacion")

        slots = generate_filtered_time_slots(rehab_service, future_day, store=fake_store, now=now)

        assert fake_store.booking_reads == 1
        assert slots == ["11:00", "11:15"]

    def test_uses_supplied_bookings(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "10:00", "12:00")

        generate_filtered_time_slots(rehab_service, future_day, [], [], store=fake_store, now=now)

        assert fake_store.booking_reads == 0

    def test_cancelled_bookings_do_not_block(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "10:00", "11:00")
        fake_store.add_booking(future_day, "10:00", 60, "rehabilitacion", status="cancelada")

        slots = generate_filtered_time_slots(rehab_service, future_day, store=fake_store, now=now)

        assert slots == ["10:00", "10:15"]


class TestTodayCutoff:
    """Today's slots must start at least two hours from now."""

    def test_nothing_before_lead_time(self, fake_store, hydro_service, future_day):
        fake_store.add_window(future_day, "09:00", "14:00")
        at_nine = datetime.combine(future_day, time(9, 0))

        slots = generate_filtered_time_slots(hydro_service, future_day, [], [], store=fake_store, now=at_nine)

        assert slots
        assert slots[0] == "11:00"
        assert all(time_str_to_minutes(s) >= 11 * 60 for s in slots)

    def test_other_days_untouched(self, future_day):
        slots = ["08:00", "09:00"]
        now = datetime.combine(future_day - timedelta(days=1), time(23, 0))
        assert filter_today_slots(slots, future_day, now, BookingConfig()) == slots

    def test_minutes_of_now_count(self, future_day):
        now = datetime.combine(future_day, time(9, 10))
        result = filter_today_slots(["11:00", "11:10", "11:15"], future_day, now, BookingConfig())
        assert result == ["11:10", "11:15"]


class TestWindowCache:
    """Windows are cached per (date, audience); bookings never are."""

    def test_second_call_hits_cache(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "10:00", "12:00")
        clock = [100.0]
        cache = AvailabilityCache(BookingConfig(), clock=lambda: clock[0])

        generate_filtered_time_slots(rehab_service, future_day, store=fake_store, cache=cache, now=now)
        generate_filtered_time_slots(rehab_service, future_day, store=fake_store, cache=cache, now=now)

        assert fake_store.window_reads == 1
        assert fake_store.booking_reads == 2

    def test_ttl_zero_always_reads(self, fake_store, rehab_service, future_day, now):
        fake_store.add_window(future_day, "10:00", "12:00")
        cache = AvailabilityCache(BookingConfig(cache_ttl_seconds=0))

        generate_filtered_time_slots(rehab_service, future_day, store=fake_store, cache=cache, now=now)
        generate_filtered_time_slots(rehab_service, future_day, store=fake_store, cache=cache, now=now)

        assert fake_store.window_reads == 2


class TestDayAvailability:
    """Test calendar classification."""

    def test_past_full_available(self, fake_store, rehab_service, future_day):
        now = datetime.combine(future_day - timedelta(days=1), time(12, 0))
        yesterday = now.date() - timedelta(days=1)
        full_day = now.date() + timedelta(days=2)

        fake_store.add_window(future_day, "10:00", "12:00")
        fake_store.add_window(full_day, "10:00", "11:00")
        fake_store.add_booking(full_day, "10:00", 60, "rehabilitacion")

        result = calculate_day_availability(
            rehab_service,
            [yesterday, future_day, full_day],
            store=fake_store,
            now=now,
        )

        assert result == {
            yesterday: DAY_PAST,
            future_day: DAY_AVAILABLE,
            full_day: DAY_FULL,
        }

    def test_day_without_windows_is_full(self, fake_store, rehab_service, future_day, now):
        result = calculate_day_availability(rehab_service, [future_day], store=fake_store, now=now)
        assert result == {future_day: DAY_FULL}
