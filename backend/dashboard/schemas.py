"""Dashboard Pydantic v2 schemas — response models for all dashboard endpoints."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, Field


# ═════════════════════════════════════════════════════════════════════
# GET /helpdesk
# ═════════════════════════════════════════════════════════════════════


class HelpdeskSummaryResponse(BaseModel):
    """Ticket counts and resolution KPIs for the helpdesk dashboard."""

    total: int = 0
    open: int = Field(0, description="Tickets not yet resolved, closed, cancelled or rejected")
    closed: int = Field(0, description="Resolved or terminal tickets")
    pending_approvals: int = 0
    avg_resolution_hours: float = 0.0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_module: dict[str, int] = Field(default_factory=dict)
    by_urgency: dict[str, int] = Field(default_factory=dict)


# ═════════════════════════════════════════════════════════════════════
# GET /weekly-pattern
# ═════════════════════════════════════════════════════════════════════


class DayPattern(BaseModel):
    """Created/resolved counts and average timings for one weekday."""

    day: str
    created: int = 0
    resolved: int = 0
    avg_resolution_hours: float = 0.0
    avg_response_hours: float = 0.0


class HourlyCell(BaseModel):
    day: str
    hour: int
    count: int = 0


class PatternSummary(BaseModel):
    total_created: int = 0
    total_resolved: int = 0
    avg_resolution_hours: float = 0.0
    avg_response_hours: float = 0.0
    busiest_day: Optional[str] = None
    slowest_day: Optional[str] = None
    peak_hour: Optional[str] = None


class PatternComparison(BaseModel):
    """Current window against the window of equal length just before it."""

    previous_created: int = 0
    previous_resolved: int = 0
    previous_avg_resolution_hours: float = 0.0
    created_change_pct: float = 0.0
    resolved_change_pct: float = 0.0
    resolution_time_change_pct: float = 0.0


class WeeklyPatternResponse(BaseModel):
    start: dt.datetime
    end: dt.datetime
    days: list[DayPattern] = Field(default_factory=list)
    hourly: list[HourlyCell] = Field(default_factory=list)
    summary: PatternSummary
    comparison: PatternComparison


# ═════════════════════════════════════════════════════════════════════
# GET /me
# ═════════════════════════════════════════════════════════════════════


class UpcomingHolidayItem(BaseModel):
    id: uuid.UUID
    name: str
    date: dt.date
    type: str


class MyDashboardResponse(BaseModel):
    """Personal widgets for the signed-in employee."""

    leave_balance: dict[str, dict[str, float]] = Field(default_factory=dict)
    open_tickets: int = 0
    pending_approvals: int = Field(
        0, description="Tickets at the caller's approval level plus leave requests awaiting them",
    )
    unread_notifications: int = 0
    upcoming_holidays: list[UpcomingHolidayItem] = Field(default_factory=list)
