# backend/fisio_booking/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field


class SlotsDayResponse(BaseModel):
    """Bookable start times of a service on one day."""
    service_id: int
    service_type: str
    date: date
    slots: list[str] = Field(description="Sorted start times, HH:MM")
    duration_minutes: int
    slot_step_minutes: int
    is_admin_context: bool = False

    model_config = {"from_attributes": True}


class SlotsDayStatus(BaseModel):
    """Status of a single day in calendar."""
    date: date
    status: Literal["past", "full", "available"]

    model_config = {"from_attributes": True}


class SlotsCalendarResponse(BaseModel):
    """Response with calendar of available days."""
    service_id: int
    start_date: date
    end_date: date
    days: list[SlotsDayStatus]

    # Metadata
    horizon_days: int
    slot_step_minutes: int = Field(description="Grid step in minutes (5/10/15/30/60)")

    model_config = {"from_attributes": True}


class SlotsInvalidateRequest(BaseModel):
    target_date: Optional[date] = None  # None = every date
    reason: str = "manual"


class SlotsInvalidateResponse(BaseModel):
    target_date: Optional[date] = None
    dropped_entries: int
