# backend/fisio_booking/init_db.py
"""
Create tables and seed the fixed reference rows.

    python -m fisio_booking.init_db

Idempotent: existing rows are left untouched.
"""

import logging
from pathlib import Path

from sqlalchemy.orm import Session

from .config import settings
from .database import SessionLocal, engine
from .models import Base
from .models.generated import Profiles, Services, Spaces
from .services.slots.policy import CLIENT_HOME_ID, POOL_ID, REHAB_CABIN_ID

logger = logging.getLogger(__name__)


# ======================================================
# SEED DATA
# ======================================================

SPACES = [
    (REHAB_CABIN_ID, "Rehabilitation cabin", "Physiotherapy and rehabilitation"),
    (POOL_ID, "Pool", "Hydrotherapy pool"),
    (CLIENT_HOME_ID, "Client home", "Home visits"),
]

SERVICES = [
    ("Rehabilitation", "rehabilitacion", 45, 45.0),
    ("Hydrotherapy", "hidroterapia", 30, 40.0),
    ("Hydrotherapy + Rehabilitation", "hidroterapia_rehabilitacion", 60, 70.0),
    # Duration is chosen per visit; 80€/h
    ("Home rehabilitation", "rehabilitacion_domicilio", 60, 80.0),
]


# ======================================================
# STEPS
# ======================================================

def ensure_sqlite_dir() -> None:
    url = settings.resolved_database_url
    if url.startswith("sqlite:///"):
        Path(url.replace("sqlite:///", "")).parent.mkdir(parents=True, exist_ok=True)


def seed(db: Session, admin_email: str | None = None) -> None:
    for space_id, name, description in SPACES:
        if db.get(Spaces, space_id) is None:
            db.add(Spaces(id=space_id, name=name, description=description))
            logger.info(f"Space created: {name}")

    for name, service_type, duration, price in SERVICES:
        exists = db.query(Services).filter(Services.service_type == service_type).first()
        if exists is None:
            db.add(Services(
                name=name,
                service_type=service_type,
                duration_minutes=duration,
                price=price,
            ))
            logger.info(f"Service created: {name} ({service_type})")

    if admin_email:
        exists = db.query(Profiles).filter(Profiles.email == admin_email).first()
        if exists is None:
            db.add(Profiles(full_name="Admin", role="admin", email=admin_email))
            logger.info(f"Admin profile created: {admin_email}")

    db.commit()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    ensure_sqlite_dir()
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created")

    db = SessionLocal()
    try:
        seed(db, settings.admin_email)
    finally:
        db.close()


if __name__ == "__main__":
    main()
