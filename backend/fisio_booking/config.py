# backend/fisio_booking/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # project root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/fisio_booking.db"
    redis_url: str = "redis://localhost:6379/0"

    # Reads used for availability give up after this many seconds
    query_timeout_seconds: float = 8.0
    # Fire-and-forget Redis writes (events, slot change broadcast) give up after this
    redis_notify_timeout_seconds: float = 0.5
    availability_cache_ttl_seconds: int = 10
    clinic_debug: bool = False
    # Completion, reminder and slot-change listener loops
    background_tasks_enabled: bool = True

    # init_db creates this admin profile when set
    admin_email: str | None = None

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
