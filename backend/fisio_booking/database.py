# backend/fisio_booking/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def build_engine(url: str, timeout_seconds: float) -> Engine:
    """
    Create an engine whose queries give up after `timeout_seconds`.

    SQLite: busy timeout (a writer holding the day lock makes readers wait).
    PostgreSQL: server-side statement_timeout.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            # check_same_thread=False: FastAPI runs sync endpoints in a thread pool
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )

        @event.listens_for(engine, "connect")
        def enable_sqlite_fk(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    timeout_ms = int(timeout_seconds * 1000)
    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args={"options": f"-c statement_timeout={timeout_ms}"},
    )


engine = build_engine(settings.resolved_database_url, settings.query_timeout_seconds)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
