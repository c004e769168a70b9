"""Dashboard router — read-only endpoints for dashboard widgets.

All endpoints require authentication. The helpdesk views need
``ticket:read_all``; ``/me`` is available to every employee.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor, get_actor, require_permission
from backend.common.clock import as_utc
from backend.common.constants import TicketModule, TicketUrgency
from backend.common.exceptions import ValidationException
from backend.core_hr.models import Employee
from backend.dashboard.schemas import (
    HelpdeskSummaryResponse,
    MyDashboardResponse,
    WeeklyPatternResponse,
)
from backend.dashboard.service import DashboardService
from backend.database import get_db

router = APIRouter()


# ── GET /helpdesk ───────────────────────────────────────────────────

@router.get("/helpdesk", response_model=HelpdeskSummaryResponse)
async def helpdesk_summary(
    module: Optional[TicketModule] = Query(None),
    _: Employee = Depends(require_permission("ticket:read_all")),
    db: AsyncSession = Depends(get_db),
):
    """Ticket counts by status, module and urgency; open vs closed;
    pending approvals; average resolution time."""
    return await DashboardService.helpdesk_summary(db, module)


# ── GET /weekly-pattern ─────────────────────────────────────────────

@router.get("/weekly-pattern", response_model=WeeklyPatternResponse)
async def weekly_pattern(
    start: Optional[datetime] = Query(None, description="Window start (default: end - 7 days)"),
    end: Optional[datetime] = Query(None, description="Window end (default: now)"),
    sub_category: Optional[str] = Query(None),
    urgency: Optional[TicketUrgency] = Query(None),
    assignee_id: Optional[uuid.UUID] = Query(None),
    _: Employee = Depends(require_permission("ticket:read_all")),
    db: AsyncSession = Depends(get_db),
):
    if start and end and as_utc(start) >= as_utc(end):
        raise ValidationException({"start": ["start must be before end"]})
    return await DashboardService.weekly_pattern(
        db,
        start=start,
        end=end,
        sub_category=sub_category,
        urgency=urgency,
        assignee_id=assignee_id,
    )


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=MyDashboardResponse)
async def my_dashboard(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService.my_dashboard(db, actor)
