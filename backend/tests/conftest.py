"""
Test configuration and shared fixtures.

Repository and API tests use an in-memory SQLite database (StaticPool, so
every session shares the one connection). Tables are created per test.
"""

import pytest
from datetime import date, datetime, timedelta
from typing import Generator
from unittest.mock import Mock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fisio_booking.database import get_db
from fisio_booking.dependencies import (
    get_availability_cache,
    get_config,
    get_notifier,
    get_slot_channel,
)
from fisio_booking.main import app
from fisio_booking.models import Base
from fisio_booking.models.generated import (
    AvailableTimeSlots,
    Bookings,
    Dogs,
    Profiles,
    Services,
    Spaces,
)
from fisio_booking.services.slots.cache import AvailabilityCache
from fisio_booking.services.slots.channel import SlotChangeChannel
from fisio_booking.services.slots.config import BookingConfig
from fisio_booking.services.slots.entities import ServiceInfo

from fakes import FakeBookingStore


@pytest.fixture
def config() -> BookingConfig:
    return BookingConfig()


@pytest.fixture
def future_day() -> date:
    """A day far enough ahead that lead time and admin confirmation never apply."""
    return date.today() + timedelta(days=7)


@pytest.fixture
def fake_store() -> FakeBookingStore:
    return FakeBookingStore()


@pytest.fixture
def rehab_service() -> ServiceInfo:
    return ServiceInfo(id=1, name="Rehabilitation", service_type="rehabilitacion", duration_minutes=45, price=45.0)


@pytest.fixture
def hydro_service() -> ServiceInfo:
    return ServiceInfo(id=2, name="Hydrotherapy", service_type="hidroterapia", duration_minutes=30, price=40.0)


@pytest.fixture
def home_service() -> ServiceInfo:
    return ServiceInfo(
        id=4, name="Home rehabilitation", service_type="rehabilitacion_domicilio",
        duration_minutes=60, price=80.0,
    )


# ── Database ─────────────────────────────────────────────────────────────


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    SessionTesting = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db_session):
    """Spaces, one service per type, a client and a dog."""
    db_session.add_all([
        Spaces(id=1, name="Rehabilitation cabin"),
        Spaces(id=2, name="Pool"),
        Spaces(id=3, name="Client home"),
    ])
    services = {
        "rehabilitacion": Services(name="Rehabilitation", service_type="rehabilitacion", duration_minutes=45, price=45.0),
        "hidroterapia": Services(name="Hydrotherapy", service_type="hidroterapia", duration_minutes=30, price=40.0),
        "hidroterapia_rehabilitacion": Services(
            name="Hydro + Rehab", service_type="hidroterapia_rehabilitacion", duration_minutes=60, price=70.0,
        ),
        "rehabilitacion_domicilio": Services(
            name="Home rehabilitation", service_type="rehabilitacion_domicilio", duration_minutes=60, price=80.0,
        ),
    }
    db_session.add_all(services.values())
    client = Profiles(full_name="Marta Client", email="marta@example.com")
    db_session.add(client)
    db_session.flush()
    dog = Dogs(owner_id=client.id, name="Toby")
    db_session.add(dog)
    db_session.commit()

    return {"services": services, "client": client, "dog": dog}


@pytest.fixture
def add_window(db_session):
    def _add(day: date, start: str, end: str, admin_only: bool = False) -> AvailableTimeSlots:
        window = AvailableTimeSlots(
            date=day.isoformat(),
            start_time=start,
            end_time=end,
            admin_only=1 if admin_only else 0,
        )
        db_session.add(window)
        db_session.commit()
        return window

    return _add


@pytest.fixture
def add_booking(db_session, seeded):
    def _add(
        start: datetime,
        service_type: str = "rehabilitacion",
        duration: int | None = None,
        status: str = "pendiente",
        blocks_center: bool = False,
    ) -> Bookings:
        service = seeded["services"][service_type]
        booking = Bookings(
            client_id=seeded["client"].id,
            dog_id=seeded["dog"].id,
            service_id=service.id,
            date_start=start.strftime("%Y-%m-%dT%H:%M:%S"),
            duration_minutes=duration or service.duration_minutes,
            price=service.price,
            status=status,
            is_home_visit=1 if service_type == "rehabilitacion_domicilio" else 0,
            blocks_center=1 if blocks_center else 0,
        )
        db_session.add(booking)
        db_session.commit()
        return booking

    return _add


# ── API ──────────────────────────────────────────────────────────────────


@pytest.fixture
def notifier() -> Mock:
    return Mock()


@pytest.fixture
def api_cache(config) -> AvailabilityCache:
    return AvailabilityCache(config)


@pytest.fixture
def api_channel() -> SlotChangeChannel:
    return SlotChangeChannel(redis=None)


@pytest.fixture
def client(db_session, notifier, api_cache, api_channel, config) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_availability_cache] = lambda: api_cache
    app.dependency_overrides[get_slot_channel] = lambda: api_channel
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_config] = lambda: config

    # No `with`: the lifespan background loops are not started
    yield TestClient(app)

    app.dependency_overrides.clear()
