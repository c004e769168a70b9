"""Leave Pydantic schemas — request / response validation."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.common.constants import HalfDaySession, LeaveStatus, LeaveType
from backend.common.schemas import PartialUpdate


# ── Requests ────────────────────────────────────────────────────────

class LeaveApply(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    half_day_session: Optional[HalfDaySession] = None
    reason: str = Field(..., min_length=1, max_length=2000)

    @model_validator(mode="after")
    def _check_dates(self) -> "LeaveApply":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.half_day_session is not None and self.start_date != self.end_date:
            raise ValueError("Half-day leave is only allowed for a single day")
        return self


class LeaveUpdate(PartialUpdate):
    """Partial update of a pending request; omitted fields are kept."""

    nullable_fields = frozenset({"half_day_session"})

    leave_type: Optional[LeaveType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    half_day_session: Optional[HalfDaySession] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=2000)


class LeaveRejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class LeaveCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


# ── Responses ───────────────────────────────────────────────────────

class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    half_day_session: Optional[HalfDaySession] = None
    days: Decimal
    reason: str
    status: LeaveStatus
    manager_id: Optional[uuid.UUID] = None
    reviewed_by_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime


class BalanceEntry(BaseModel):
    total: float
    used: float
    available: float
