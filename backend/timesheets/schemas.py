"""Timesheet Pydantic schemas — weekly grid in, entries and week views out."""


import uuid
from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from backend.common.constants import TimesheetApprovalStatus, TimesheetStatus

DAYS_PER_WEEK = 7


def _ensure_monday(value: date) -> date:
    if value.weekday() != 0:
        raise ValueError("week_start must be a Monday")
    return value


WeekStart = Annotated[date, AfterValidator(_ensure_monday)]


# ── Requests ────────────────────────────────────────────────────────

class TimesheetRow(BaseModel):
    """One grid row: a project/activity pair with a value per weekday.

    ``hours`` holds seven cells, Monday first, each "H:MM" or a decimal
    such as "7.5"; an empty cell means no time booked.
    """

    project_id: Optional[uuid.UUID] = None
    activity: str = Field(..., min_length=1, max_length=100)
    billable: bool = False
    hours: list[str] = Field(..., min_length=DAYS_PER_WEEK, max_length=DAYS_PER_WEEK)
    comments: list[Optional[str]] = Field(
        default_factory=lambda: [None] * DAYS_PER_WEEK,
        min_length=DAYS_PER_WEEK,
        max_length=DAYS_PER_WEEK,
    )


class TimesheetSubmit(BaseModel):
    week_start: WeekStart
    rows: list[TimesheetRow] = Field(..., min_length=1)
    draft: bool = False

    @model_validator(mode="after")
    def _unique_rows(self) -> "TimesheetSubmit":
        seen = set()
        for row in self.rows:
            key = (row.project_id, row.activity)
            if key in seen:
                raise ValueError(f"Duplicate row for activity '{row.activity}'")
            seen.add(key)
        return self


class EntryRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class WeekApprovalRequest(BaseModel):
    employee_id: uuid.UUID
    week_start: WeekStart
    project_id: Optional[uuid.UUID] = None


class DayApprovalRequest(WeekApprovalRequest):
    day_indexes: list[int] = Field(..., min_length=1, max_length=DAYS_PER_WEEK)

    @field_validator("day_indexes")
    @classmethod
    def _in_week(cls, value: list[int]) -> list[int]:
        if any(not 0 <= i < DAYS_PER_WEEK for i in value):
            raise ValueError("day_indexes must be between 0 (Monday) and 6 (Sunday)")
        return sorted(set(value))


class RevisionItem(BaseModel):
    day_index: int = Field(..., ge=0, lt=DAYS_PER_WEEK)
    activity: str = Field(..., min_length=1, max_length=100)
    reason: str = Field(..., min_length=1, max_length=2000)


class RevisionRequest(WeekApprovalRequest):
    reverts: list[RevisionItem] = Field(..., min_length=1)


class ReminderRequest(BaseModel):
    employee_id: uuid.UUID
    week_start: WeekStart
    project_id: Optional[uuid.UUID] = None


# ── Responses ───────────────────────────────────────────────────────

class TimesheetEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str
    work_date: date
    project_id: Optional[uuid.UUID] = None
    project_name: Optional[str] = None
    activity: str
    billable: bool
    minutes: int
    hours: str
    comment: Optional[str] = None
    status: TimesheetStatus
    approval_status: TimesheetApprovalStatus
    submitted_at: Optional[datetime] = None
    reviewed_by_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    review_comment: Optional[str] = None


class EntryMeta(BaseModel):
    id: uuid.UUID
    status: TimesheetStatus
    approval_status: TimesheetApprovalStatus
    review_comment: Optional[str] = None


class WeekRowOut(BaseModel):
    project_id: Optional[uuid.UUID] = None
    project_name: Optional[str] = None
    activity: str
    billable: bool
    hours: list[str]
    comments: list[Optional[str]]
    entry_meta: list[Optional[EntryMeta]]


class WeekOut(BaseModel):
    employee_id: uuid.UUID
    week_start: date
    week_end: date
    status: str
    total_hours: float
    rows: list[WeekRowOut]


class WeekSummary(BaseModel):
    week_start: date
    week_end: date
    status: str
    total_hours: float
    entries: int
