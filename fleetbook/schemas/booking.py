from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from fleetbook.utils.datetime_utils import as_utc


def _strip_or_none(v):
    if v is None:
        return None
    v = v.strip()
    return v or None


class BookingCreateRequest(BaseModel):
    vehicleId:    int
    startDate:    datetime
    endDate:      datetime
    driverId:     Optional[int] = None
    requesterId:  Optional[int] = Field(None, description="Admin only: employee the booking is for")
    approverL1Id: Optional[int] = Field(None, description="Admin only: pre-assigned Level 1 approver")
    approverL2Id: Optional[int] = Field(None, description="Admin only: pre-assigned Level 2 approver")
    department:   Optional[str] = None
    notes:        Optional[str] = Field(None, max_length=2000)

    @field_validator("startDate", "endDate")
    @classmethod
    def normalize_dates(cls, v):
        return as_utc(v)

    @field_validator("department", "notes")
    @classmethod
    def strip_text(cls, v):
        return _strip_or_none(v)


class BookingUpdateRequest(BaseModel):
    """Every field is optional; only values that differ from the stored ones are written."""
    requesterId: Optional[int] = None
    vehicleId:   Optional[int] = None
    driverId:    Optional[int] = None
    startDate:   Optional[datetime] = None
    endDate:     Optional[datetime] = None
    department:  Optional[str] = None
    notes:       Optional[str] = Field(None, max_length=2000)

    @field_validator("startDate", "endDate")
    @classmethod
    def normalize_dates(cls, v):
        return as_utc(v)

    @field_validator("department", "notes")
    @classmethod
    def strip_text(cls, v):
        return _strip_or_none(v)


class CancelRequest(BaseModel):
    reason: str = Field(..., max_length=1000)

    @field_validator("reason")
    @classmethod
    def check_reason(cls, v):
        if not v.strip(): raise ValueError("Cancellation reason is required")
        return v.strip()
