"""Dashboard service — read-only aggregation queries for the helpdesk and
the employee home page.

All methods are static async, following the project convention.
Plain counts are GROUP BY at DB level; the weekly pattern buckets rows in
Python because weekday/hour extraction differs per dialect.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor
from backend.common.clock import as_utc, hours_between, utcnow
from backend.common.constants import (
    APPROVER_ROLES,
    TIMEZONE,
    ApprovalStatus,
    TicketModule,
    TicketUrgency,
)
from backend.dashboard.schemas import (
    DayPattern,
    HelpdeskSummaryResponse,
    HourlyCell,
    MyDashboardResponse,
    PatternComparison,
    PatternSummary,
    UpcomingHolidayItem,
    WeeklyPatternResponse,
)
from backend.helpdesk.models import HelpdeskTicket
from backend.helpdesk.workflow import APPROVAL_PENDING_STATUSES, OPEN_STATUSES, RESOLVED_STATUSES
from backend.holidays.service import HolidayService
from backend.leave.service import LeaveService
from backend.notifications.service import NotificationService

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DEFAULT_WINDOW = timedelta(days=7)


def _today() -> date:
    """Current date in IST (Asia/Kolkata)."""
    return datetime.now(ZoneInfo(TIMEZONE)).date()


def _local(value: datetime) -> datetime:
    return as_utc(value).astimezone(ZoneInfo(TIMEZONE))


def _key(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _avg(values: list[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


def percent_change(current: float, previous: float) -> float:
    """Relative change in percent; a zero baseline reads as 100 (or 0 when both are 0)."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def _resolution_hours(ticket: HelpdeskTicket) -> Optional[float]:
    finished = ticket.closed_at or ticket.resolved_at
    if ticket.status not in RESOLVED_STATUSES or finished is None:
        return None
    return hours_between(ticket.created_at, finished)


def _response_hours(ticket: HelpdeskTicket) -> Optional[float]:
    if ticket.assigned_at is None:
        return None
    return hours_between(ticket.created_at, ticket.assigned_at)


class DashboardService:
    """Async dashboard aggregation queries."""

    # ═════════════════════════════════════════════════════════════════
    # GET /helpdesk
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _grouped(db: AsyncSession, column, module: Optional[TicketModule]) -> dict[str, int]:
        query = select(column, func.count(HelpdeskTicket.id)).group_by(column)
        if module is not None:
            query = query.where(HelpdeskTicket.module == module)
        rows = (await db.execute(query)).all()
        return {_key(value): count for value, count in rows}

    @staticmethod
    async def helpdesk_summary(
        db: AsyncSession,
        module: Optional[TicketModule] = None,
    ) -> HelpdeskSummaryResponse:
        """Counts by status, module and urgency plus open/closed split."""
        by_status = await DashboardService._grouped(db, HelpdeskTicket.status, module)
        by_module = await DashboardService._grouped(db, HelpdeskTicket.module, module)
        by_urgency = await DashboardService._grouped(db, HelpdeskTicket.urgency, module)

        open_values = {s.value for s in OPEN_STATUSES}
        open_count = sum(c for s, c in by_status.items() if s in open_values)
        total = sum(by_status.values())

        pending_q = select(func.count(HelpdeskTicket.id)).where(
            HelpdeskTicket.requires_approval.is_(True),
            HelpdeskTicket.approval_completed.is_(False),
            HelpdeskTicket.approval_status == ApprovalStatus.pending,
        )
        resolved_q = select(HelpdeskTicket).where(HelpdeskTicket.status.in_(RESOLVED_STATUSES))
        if module is not None:
            pending_q = pending_q.where(HelpdeskTicket.module == module)
            resolved_q = resolved_q.where(HelpdeskTicket.module == module)
        pending = (await db.execute(pending_q)).scalar_one()
        resolved = (await db.execute(resolved_q)).scalars().all()
        durations = [h for h in (_resolution_hours(t) for t in resolved) if h is not None]

        return HelpdeskSummaryResponse(
            total=total,
            open=open_count,
            closed=total - open_count,
            pending_approvals=pending,
            avg_resolution_hours=_avg(durations),
            by_status=by_status,
            by_module=by_module,
            by_urgency=by_urgency,
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /weekly-pattern
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _window(
        db: AsyncSession,
        start: datetime,
        end: datetime,
        *,
        end_inclusive: bool,
        sub_category: Optional[str],
        urgency: Optional[TicketUrgency],
        assignee_id: Optional[uuid.UUID],
    ) -> list[HelpdeskTicket]:
        query = select(HelpdeskTicket).where(
            HelpdeskTicket.created_at >= start,
            HelpdeskTicket.created_at <= end if end_inclusive else HelpdeskTicket.created_at < end,
        )
        if sub_category:
            query = query.where(HelpdeskTicket.sub_category.ilike(sub_category))
        if urgency is not None:
            query = query.where(HelpdeskTicket.urgency == urgency)
        if assignee_id is not None:
            query = query.where(HelpdeskTicket.assignee_id == assignee_id)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def weekly_pattern(
        db: AsyncSession,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        sub_category: Optional[str] = None,
        urgency: Optional[TicketUrgency] = None,
        assignee_id: Optional[uuid.UUID] = None,
    ) -> WeeklyPatternResponse:
        """Weekday/hour distribution of tickets created in ``[start, end]``.

        Days and hours are bucketed in IST. The comparison window is the
        same length immediately before *start*.
        """
        end = as_utc(end) if end else utcnow()
        start = as_utc(start) if start else end - DEFAULT_WINDOW
        filters = {"sub_category": sub_category, "urgency": urgency, "assignee_id": assignee_id}

        current = await DashboardService._window(db, start, end, end_inclusive=True, **filters)
        previous = await DashboardService._window(
            db, start - (end - start), start, end_inclusive=False, **filters,
        )

        created: dict[str, int] = defaultdict(int)
        resolved: dict[str, int] = defaultdict(int)
        resolution: dict[str, list[float]] = defaultdict(list)
        response: dict[str, list[float]] = defaultdict(list)
        matrix: dict[tuple[str, int], int] = defaultdict(int)

        for ticket in current:
            local = _local(ticket.created_at)
            day = WEEKDAYS[local.weekday()]
            created[day] += 1
            matrix[(day, local.hour)] += 1
            if ticket.status in RESOLVED_STATUSES:
                resolved[day] += 1
            hours = _resolution_hours(ticket)
            if hours is not None:
                resolution[day].append(hours)
            hours = _response_hours(ticket)
            if hours is not None:
                response[day].append(hours)

        days = [
            DayPattern(
                day=day,
                created=created[day],
                resolved=resolved[day],
                avg_resolution_hours=_avg(resolution[day]),
                avg_response_hours=_avg(response[day]),
            )
            for day in WEEKDAYS
        ]
        hourly = [
            HourlyCell(day=day, hour=hour, count=matrix[(day, hour)])
            for day in WEEKDAYS
            for hour in range(24)
        ]

        busiest = max(days, key=lambda d: d.created) if current else None
        slowest = max(days, key=lambda d: d.avg_resolution_hours)
        hour_totals = [sum(matrix[(day, hour)] for day in WEEKDAYS) for hour in range(24)]
        peak = max(range(24), key=lambda h: hour_totals[h]) if current else None

        all_resolution = [h for values in resolution.values() for h in values]
        all_response = [h for values in response.values() for h in values]
        summary = PatternSummary(
            total_created=len(current),
            total_resolved=sum(resolved.values()),
            avg_resolution_hours=_avg(all_resolution),
            avg_response_hours=_avg(all_response),
            busiest_day=busiest.day if busiest else None,
            slowest_day=slowest.day if slowest.avg_resolution_hours > 0 else None,
            peak_hour=f"{peak}:00" if peak is not None else None,
        )

        prev_resolved = sum(1 for t in previous if t.status in RESOLVED_STATUSES)
        prev_resolution = _avg([h for h in (_resolution_hours(t) for t in previous) if h is not None])
        comparison = PatternComparison(
            previous_created=len(previous),
            previous_resolved=prev_resolved,
            previous_avg_resolution_hours=prev_resolution,
            created_change_pct=percent_change(summary.total_created, len(previous)),
            resolved_change_pct=percent_change(summary.total_resolved, prev_resolved),
            resolution_time_change_pct=percent_change(summary.avg_resolution_hours, prev_resolution),
        )

        return WeeklyPatternResponse(
            start=start, end=end, days=days, hourly=hourly, summary=summary, comparison=comparison,
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /me
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def my_dashboard(db: AsyncSession, actor: Actor) -> MyDashboardResponse:
        today = _today()

        open_q = select(func.count(HelpdeskTicket.id)).where(
            HelpdeskTicket.owner_id == actor.id,
            HelpdeskTicket.status.in_(OPEN_STATUSES),
        )
        open_tickets = (await db.execute(open_q)).scalar_one()

        levels = [level for level, role in APPROVER_ROLES.items() if actor.has_role(role)]
        ticket_approvals = 0
        if levels:
            approvals_q = select(func.count(HelpdeskTicket.id)).where(
                HelpdeskTicket.status.in_(APPROVAL_PENDING_STATUSES),
                HelpdeskTicket.current_approval_level.in_(levels),
            )
            ticket_approvals = (await db.execute(approvals_q)).scalar_one()
        leave_approvals = [
            leave for leave in await LeaveService.pending_for(db, actor)
            if leave.employee_id != actor.id
        ]

        holidays = await HolidayService.upcoming(db, today=today)
        return MyDashboardResponse(
            leave_balance=await LeaveService.get_balance(db, actor.id, today.year),
            open_tickets=open_tickets,
            pending_approvals=ticket_approvals + len(leave_approvals),
            unread_notifications=await NotificationService.get_unread_count(db, actor.id),
            upcoming_holidays=[
                UpcomingHolidayItem(id=h.id, name=h.name, date=h.date, type=_key(h.type))
                for h in holidays
            ],
        )
