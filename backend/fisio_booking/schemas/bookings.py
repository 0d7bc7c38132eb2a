# backend/fisio_booking/schemas/bookings.py

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_date(v: str) -> str:
    try:
        datetime.strptime(v, "%Y-%m-%d")
    except ValueError:
        raise ValueError("Date must be in YYYY-MM-DD format")
    return v


def _check_time(v: str) -> str:
    if not TIME_RE.match(v):
        raise ValueError("Time must be in HH:MM format")
    return v


class BookingCreate(BaseModel):
    """A client (or admin) booking a center service."""
    service_id: int
    client_id: int
    dog_id: int
    date: str = Field(description="Date in YYYY-MM-DD format")
    time: str = Field(description="Start time in HH:MM format")
    notes: Optional[str] = None
    is_admin_context: bool = False

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_date(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)


class HomeVisitCreate(BaseModel):
    """Admin booking a home visit with a free start/end."""
    service_id: int
    client_id: int
    dog_id: int
    date: str = Field(description="Date in YYYY-MM-DD format")
    start_time: str = Field(description="HH:MM")
    end_time: str = Field(description="HH:MM")
    address: str = Field(..., min_length=3)
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_date(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)


class BookingRead(BaseModel):
    id: int

    client_id: int
    dog_id: int
    service_id: int
    space_id: Optional[int] = None

    date_start: str
    duration_minutes: int
    price: float
    status: str

    is_home_visit: bool
    blocks_center: bool
    home_address: Optional[str] = None
    home_end_time: Optional[str] = None
    spaces_display: Optional[str] = None
    notes: Optional[str] = None

    cancellation_surcharge: Optional[float] = None
    surcharge_reason: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class BookingAttemptResponse(BaseModel):
    """Outcome of a committed booking attempt."""
    state: str
    booking_id: int
    booking_status: str
    transitions: list[str]


class CancelRequest(BaseModel):
    by_admin: bool = False
    reason: Optional[str] = None


class CancelResponse(BaseModel):
    booking_id: int
    status: str = "cancelada"
    hours_before: float
    surcharge: Optional[float] = None


class HomeVisitQuoteResponse(BaseModel):
    duration_minutes: int
    price: float
