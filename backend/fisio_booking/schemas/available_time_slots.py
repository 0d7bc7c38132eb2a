# backend/fisio_booking/schemas/available_time_slots.py

import re
from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, field_validator

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class AvailableTimeSlotCreate(BaseModel):
    """Same opening window added to one or more dates."""
    dates: list[date] = Field(..., min_length=1)
    start_time: str = Field(description="HH:MM")
    end_time: str = Field(description="HH:MM")
    admin_only: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not TIME_RE.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v


class AvailableTimeSlotUpdate(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    admin_only: Optional[bool] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not TIME_RE.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v


class AvailableTimeSlotRead(BaseModel):
    id: int
    date: str
    start_time: str
    end_time: str
    is_active: bool
    admin_only: bool

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {"from_attributes": True}


class AvailableTimeSlotBatchResponse(BaseModel):
    created: list[AvailableTimeSlotRead]
    failed: dict[str, str] = Field(default_factory=dict, description="date → reason")
