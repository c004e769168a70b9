"""Timesheet service — weekly submission, recall and the approval flow.

Employees submit a Monday-to-Sunday grid; each non-empty cell becomes one
entry. Entries booked on a project are reviewed by that project's managers,
entries without a project by the employee's reporting manager, and RMG can
review anything except their own time.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict, defaultdict
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor
from backend.common.audit import create_audit_entry
from backend.common.clock import utcnow
from backend.common.constants import (
    ProjectStatus,
    TimesheetApprovalStatus,
    TimesheetStatus,
    UserRole,
)
from backend.common.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backend.core_hr.models import Employee
from backend.notifications.service import (
    notify_timesheet_reminder,
    notify_timesheet_reviewed,
    notify_timesheet_submitted,
)
from backend.projects.models import Project
from backend.timesheets.models import TimesheetEntry
from backend.timesheets.schemas import (
    DAYS_PER_WEEK,
    DayApprovalRequest,
    ReminderRequest,
    RevisionRequest,
    TimesheetSubmit,
    WeekApprovalRequest,
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
MAX_RANGE_DAYS = 92
REVIEWABLE = (TimesheetApprovalStatus.pending, TimesheetApprovalStatus.revision_requested)


# ── Hours helpers ───────────────────────────────────────────────────

def parse_hours(value: Optional[str]) -> int:
    """Parse "8:30" or "8.5" into minutes; blank means zero."""
    text = (value or "").strip()
    if not text:
        return 0
    try:
        if ":" in text:
            hours, minutes = (int(part or 0) for part in text.split(":"))
            if not 0 <= minutes < 60:
                raise ValueError(text)
            total = hours * 60 + minutes
        else:
            total = round(float(text) * 60)
    except (ValueError, OverflowError):
        raise ValueError(f"'{value}' is not a valid duration; use H:MM or decimal hours")
    if not 0 <= total <= MINUTES_PER_DAY:
        raise ValueError(f"'{value}' must be between 0:00 and 24:00")
    return total


def total_hours(entries: Iterable[TimesheetEntry]) -> float:
    return round(sum(e.minutes for e in entries) / 60, 2)


def overall_status(entries: list[TimesheetEntry]) -> str:
    """Collapse a week's entries into one status for the week."""
    if not entries:
        return "draft"
    approvals = {e.approval_status for e in entries}
    if TimesheetApprovalStatus.rejected in approvals:
        return "rejected"
    if TimesheetApprovalStatus.revision_requested in approvals:
        return "revision_requested"
    if approvals == {TimesheetApprovalStatus.approved}:
        return "approved"
    if all(e.status == TimesheetStatus.draft for e in entries):
        return "draft"
    return "submitted"


def week_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def _require_monday(week_start: date) -> None:
    if week_start.weekday() != 0:
        raise ValidationException({"week_start": ["week_start must be a Monday"]})


class TimesheetService:
    """Business logic for timesheet entries."""

    # ── Loading ─────────────────────────────────────────────────────

    @staticmethod
    async def _week_entries(
        db: AsyncSession,
        employee_id: uuid.UUID,
        week_start: date,
        project_id: Optional[uuid.UUID] = None,
    ) -> list[TimesheetEntry]:
        query = select(TimesheetEntry).where(
            TimesheetEntry.employee_id == employee_id,
            TimesheetEntry.work_date >= week_start,
            TimesheetEntry.work_date <= week_start + timedelta(days=DAYS_PER_WEEK - 1),
        )
        if project_id is not None:
            query = query.where(TimesheetEntry.project_id == project_id)
        result = await db.execute(
            query.order_by(TimesheetEntry.work_date.asc(), TimesheetEntry.activity.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def _get_entry(db: AsyncSession, entry_id: uuid.UUID) -> TimesheetEntry:
        entry = await db.get(TimesheetEntry, entry_id)
        if entry is None:
            raise NotFoundException("TimesheetEntry", entry_id)
        return entry

    @staticmethod
    async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", employee_id)
        return employee

    # ── Access ──────────────────────────────────────────────────────

    @staticmethod
    async def _projects(db: AsyncSession, ids: Iterable[Optional[uuid.UUID]]) -> dict[uuid.UUID, Project]:
        wanted = {i for i in ids if i is not None}
        if not wanted:
            return {}
        result = await db.execute(select(Project).where(Project.id.in_(wanted)))
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    def _can_review(
        actor: Actor,
        entry: TimesheetEntry,
        projects: dict[uuid.UUID, Project],
        reporting_manager_id: Optional[uuid.UUID],
    ) -> bool:
        if actor.id == entry.employee_id:
            return False
        if actor.has_role(UserRole.rmg):
            return True
        project = projects.get(entry.project_id) if entry.project_id else None
        if project is not None:
            return project.manages(actor.id)
        return reporting_manager_id == actor.id

    @staticmethod
    async def _ensure_can_view(
        db: AsyncSession,
        actor: Actor,
        employee: Employee,
        entries: list[TimesheetEntry],
    ) -> None:
        if actor.id == employee.id or actor.has_role(UserRole.rmg):
            return
        if employee.reporting_manager_id == actor.id:
            return
        projects = await TimesheetService._projects(db, (e.project_id for e in entries))
        if any(p.manages(actor.id) for p in projects.values()):
            return
        raise ForbiddenException("You do not have access to this employee's timesheets.")

    # ── Week views ──────────────────────────────────────────────────

    @staticmethod
    def _build_week(employee_id: uuid.UUID, week_start: date, entries: list[TimesheetEntry]) -> dict[str, Any]:
        rows: OrderedDict[tuple, dict[str, Any]] = OrderedDict()
        for entry in sorted(entries, key=lambda e: ((e.project_name or ""), e.activity)):
            key = (entry.project_id, entry.activity)
            row = rows.get(key)
            if row is None:
                row = rows[key] = {
                    "project_id": entry.project_id,
                    "project_name": entry.project_name,
                    "activity": entry.activity,
                    "billable": entry.billable,
                    "hours": [""] * DAYS_PER_WEEK,
                    "comments": [None] * DAYS_PER_WEEK,
                    "entry_meta": [None] * DAYS_PER_WEEK,
                }
            day = (entry.work_date - week_start).days
            row["hours"][day] = entry.hours
            row["comments"][day] = entry.comment
            row["entry_meta"][day] = {
                "id": entry.id,
                "status": entry.status,
                "approval_status": entry.approval_status,
                "review_comment": entry.review_comment,
            }
        return {
            "employee_id": employee_id,
            "week_start": week_start,
            "week_end": week_start + timedelta(days=DAYS_PER_WEEK - 1),
            "status": overall_status(entries),
            "total_hours": total_hours(entries),
            "rows": list(rows.values()),
        }

    @staticmethod
    async def week_view(
        db: AsyncSession,
        actor: Actor,
        employee_id: uuid.UUID,
        week_start: date,
    ) -> dict[str, Any]:
        _require_monday(week_start)
        employee = await TimesheetService._get_employee(db, employee_id)
        entries = await TimesheetService._week_entries(db, employee_id, week_start)
        await TimesheetService._ensure_can_view(db, actor, employee, entries)
        return TimesheetService._build_week(employee_id, week_start, entries)

    @staticmethod
    async def list_weeks(
        db: AsyncSession,
        actor: Actor,
        employee_id: uuid.UUID,
        *,
        status: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """One summary per week the employee has booked time in, newest first."""
        employee = await TimesheetService._get_employee(db, employee_id)
        result = await db.execute(
            select(TimesheetEntry)
            .where(TimesheetEntry.employee_id == employee_id)
            .order_by(TimesheetEntry.work_date.desc())
        )
        entries = list(result.scalars().all())
        await TimesheetService._ensure_can_view(db, actor, employee, entries)

        weeks: dict[date, list[TimesheetEntry]] = defaultdict(list)
        for entry in entries:
            weeks[week_of(entry.work_date)].append(entry)
        summaries = [
            {
                "week_start": start,
                "week_end": start + timedelta(days=DAYS_PER_WEEK - 1),
                "status": overall_status(rows),
                "total_hours": total_hours(rows),
                "entries": len(rows),
            }
            for start, rows in sorted(weeks.items(), reverse=True)
        ]
        if status is not None:
            summaries = [s for s in summaries if s["status"] == status]
        return summaries

    @staticmethod
    async def date_range(
        db: AsyncSession,
        actor: Actor,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> list[TimesheetEntry]:
        if end < start:
            raise ValidationException({"end": ["end must be on or after start"]})
        if (end - start).days > MAX_RANGE_DAYS:
            raise ValidationException({"end": [f"Range cannot exceed {MAX_RANGE_DAYS} days"]})
        employee = await TimesheetService._get_employee(db, employee_id)
        result = await db.execute(
            select(TimesheetEntry)
            .where(
                TimesheetEntry.employee_id == employee_id,
                TimesheetEntry.work_date >= start,
                TimesheetEntry.work_date <= end,
            )
            .order_by(TimesheetEntry.work_date.asc(), TimesheetEntry.activity.asc())
        )
        entries = list(result.scalars().all())
        await TimesheetService._ensure_can_view(db, actor, employee, entries)
        return entries

    # ── Submit / recall ─────────────────────────────────────────────

    @staticmethod
    async def submit_week(
        db: AsyncSession,
        actor: Actor,
        data: TimesheetSubmit,
    ) -> dict[str, Any]:
        """Upsert the caller's grid for one week.

        Empty cells remove unapproved entries of the same row; approved
        entries are frozen and may only be resent unchanged.
        """
        employee = actor.employee
        projects = await TimesheetService._projects(db, (r.project_id for r in data.rows))
        for row in data.rows:
            if row.project_id is None:
                continue
            project = projects.get(row.project_id)
            if project is None:
                raise NotFoundException("Project", row.project_id)
            if project.status != ProjectStatus.active:
                raise BusinessRuleException(
                    "PROJECT_NOT_ACTIVE",
                    f"Time cannot be booked on '{project.project_code}' while it is "
                    f"{project.status.value}.",
                )

        errors: list[str] = []
        cells: dict[tuple, tuple[int, Optional[str], bool]] = {}
        for row in data.rows:
            for day in range(DAYS_PER_WEEK):
                try:
                    minutes = parse_hours(row.hours[day])
                except ValueError as exc:
                    errors.append(f"{row.activity}, day {day + 1}: {exc}")
                    continue
                work_date = data.week_start + timedelta(days=day)
                cells[(work_date, row.project_id, row.activity)] = (
                    minutes, row.comments[day], row.billable,
                )
        if errors:
            raise ValidationException({"hours": errors})
        if not any(minutes for minutes, _, _ in cells.values()):
            raise BusinessRuleException("NO_HOURS", "No hours entered.")

        existing = {
            (e.work_date, e.project_id, e.activity): e
            for e in await TimesheetService._week_entries(db, employee.id, data.week_start)
        }

        daily: dict[date, int] = defaultdict(int)
        for key, entry in existing.items():
            if key not in cells:
                daily[key[0]] += entry.minutes
        for key, (minutes, _, _) in cells.items():
            daily[key[0]] += minutes
        over = [d.isoformat() for d, minutes in sorted(daily.items()) if minutes > MINUTES_PER_DAY]
        if over:
            raise ValidationException({"hours": [f"More than 24 hours booked on {', '.join(over)}"]})

        now = utcnow()
        status = TimesheetStatus.draft if data.draft else TimesheetStatus.submitted
        written = removed = 0
        for key, (minutes, comment, billable) in cells.items():
            work_date, project_id, activity = key
            entry = existing.get(key)
            if entry is not None and entry.approval_status == TimesheetApprovalStatus.approved:
                if minutes != entry.minutes:
                    raise BusinessRuleException(
                        "ENTRY_APPROVED",
                        f"{activity} on {work_date.isoformat()} is already approved and cannot be changed.",
                    )
                continue
            if minutes == 0:
                if entry is not None:
                    await db.delete(entry)
                    removed += 1
                continue
            if entry is None:
                project = projects.get(project_id) if project_id else None
                entry = TimesheetEntry(
                    employee_id=employee.id,
                    employee_name=employee.name,
                    work_date=work_date,
                    project_id=project_id,
                    project_name=project.name if project else None,
                    activity=activity,
                )
                db.add(entry)
            entry.minutes = minutes
            entry.comment = comment
            entry.billable = billable
            entry.status = status
            entry.approval_status = TimesheetApprovalStatus.pending
            entry.submitted_at = None if data.draft else now
            entry.reviewed_by_id = None
            entry.reviewed_at = None
            entry.review_comment = None
            written += 1
        await db.flush()

        entries = await TimesheetService._week_entries(db, employee.id, data.week_start)
        week = TimesheetService._build_week(employee.id, data.week_start, entries)
        await create_audit_entry(
            db,
            action="save_draft" if data.draft else "submit",
            entity_type="timesheet_week",
            entity_id=employee.id,
            actor_id=employee.id,
            new_values={
                "week_start": data.week_start.isoformat(),
                "entries_written": written,
                "entries_removed": removed,
                "total_hours": week["total_hours"],
            },
        )
        if not data.draft:
            approver_ids = [p.project_manager_id for p in projects.values() if p.project_manager_id]
            if any(r.project_id is None for r in data.rows) and employee.reporting_manager_id:
                approver_ids.append(employee.reporting_manager_id)
            await notify_timesheet_submitted(
                db,
                employee_id=employee.id,
                employee_name=employee.name,
                week_start=data.week_start,
                approver_ids=[i for i in approver_ids if i != employee.id],
            )

        logger.info(
            "Timesheet week %s %s by %s: %d written, %d removed, %.2fh total",
            data.week_start, status.value, employee.id, written, removed, week["total_hours"],
        )
        return week

    @staticmethod
    async def recall_week(db: AsyncSession, actor: Actor, week_start: date) -> dict[str, int]:
        """Withdraw every unapproved entry of the caller's week."""
        _require_monday(week_start)
        entries = await TimesheetService._week_entries(db, actor.id, week_start)
        return await TimesheetService._remove(db, actor, week_start, entries, action="recall")

    @staticmethod
    async def delete_row(
        db: AsyncSession,
        actor: Actor,
        week_start: date,
        activity: str,
        project_id: Optional[uuid.UUID] = None,
    ) -> dict[str, int]:
        _require_monday(week_start)
        entries = [
            e for e in await TimesheetService._week_entries(db, actor.id, week_start)
            if e.project_id == project_id and e.activity == activity
        ]
        if not entries:
            raise NotFoundException("TimesheetRow", activity)
        return await TimesheetService._remove(db, actor, week_start, entries, action="delete_row")

    @staticmethod
    async def _remove(
        db: AsyncSession,
        actor: Actor,
        week_start: date,
        entries: list[TimesheetEntry],
        *,
        action: str,
    ) -> dict[str, int]:
        removable = [e for e in entries if e.approval_status != TimesheetApprovalStatus.approved]
        if not removable:
            raise BusinessRuleException(
                "NOTHING_TO_RECALL",
                f"No unapproved entries for the week of {week_start.isoformat()}.",
            )
        for entry in removable:
            await db.delete(entry)
        await db.flush()

        kept = len(entries) - len(removable)
        await create_audit_entry(
            db, action=action, entity_type="timesheet_week", entity_id=actor.id,
            actor_id=actor.id,
            old_values={"week_start": week_start.isoformat(), "entries": len(removable)},
        )
        logger.info(
            "Timesheet week %s %s by %s: %d removed, %d approved kept",
            week_start, action, actor.id, len(removable), kept,
        )
        return {"deleted": len(removable), "kept": kept}

    # ── Approvals ───────────────────────────────────────────────────

    @staticmethod
    async def pending_for(db: AsyncSession, actor: Actor) -> list[TimesheetEntry]:
        """Submitted entries waiting on the caller, oldest day first."""
        query = select(TimesheetEntry).where(
            TimesheetEntry.status == TimesheetStatus.submitted,
            TimesheetEntry.approval_status == TimesheetApprovalStatus.pending,
            TimesheetEntry.employee_id != actor.id,
        )
        if not actor.has_role(UserRole.rmg):
            managed = select(Project.id).where(
                or_(
                    Project.project_manager_id == actor.id,
                    Project.delivery_manager_id == actor.id,
                )
            )
            reportees = select(Employee.id).where(Employee.reporting_manager_id == actor.id)
            query = query.where(
                or_(
                    TimesheetEntry.project_id.in_(managed),
                    and_(
                        TimesheetEntry.project_id.is_(None),
                        TimesheetEntry.employee_id.in_(reportees),
                    ),
                )
            )
        result = await db.execute(
            query.order_by(TimesheetEntry.work_date.asc(), TimesheetEntry.employee_name.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def _reviewable(
        db: AsyncSession,
        actor: Actor,
        employee_id: uuid.UUID,
        entries: list[TimesheetEntry],
    ) -> list[TimesheetEntry]:
        """Filter *entries* to the ones the caller may decide on now.

        Raises when nothing is left, distinguishing "not yours" from
        "nothing waiting".
        """
        employee = await TimesheetService._get_employee(db, employee_id)
        projects = await TimesheetService._projects(db, (e.project_id for e in entries))
        allowed = [
            e for e in entries
            if TimesheetService._can_review(actor, e, projects, employee.reporting_manager_id)
        ]
        if entries and not allowed:
            raise ForbiddenException("You are not an approver for these timesheet entries.")
        waiting = [
            e for e in allowed
            if e.status == TimesheetStatus.submitted and e.approval_status in REVIEWABLE
        ]
        if not waiting:
            raise BusinessRuleException(
                "NOTHING_TO_REVIEW", "No submitted entries are waiting for review.",
            )
        return waiting

    @staticmethod
    async def _decide(
        db: AsyncSession,
        actor: Actor,
        entries: list[TimesheetEntry],
        outcome: TimesheetApprovalStatus,
        comment: Optional[str] = None,
    ) -> None:
        now = utcnow()
        for entry in entries:
            entry.approval_status = outcome
            entry.reviewed_by_id = actor.id
            entry.reviewed_at = now
            entry.review_comment = comment
        await db.flush()

        first = entries[0]
        await create_audit_entry(
            db,
            action=outcome.value,
            entity_type="timesheet_entry" if len(entries) == 1 else "timesheet_week",
            entity_id=first.id if len(entries) == 1 else first.employee_id,
            actor_id=actor.id,
            new_values={
                "approval_status": outcome,
                "entries": [str(e.id) for e in entries],
                "comment": comment,
            },
        )
        wording = {
            TimesheetApprovalStatus.approved: "approved",
            TimesheetApprovalStatus.rejected: "rejected",
            TimesheetApprovalStatus.revision_requested: "returned for revision",
        }[outcome]
        await notify_timesheet_reviewed(
            db,
            employee_id=first.employee_id,
            week_start=week_of(first.work_date),
            outcome=wording,
            entries=len(entries),
            reason=comment,
        )
        logger.info(
            "%d timesheet entries of %s %s by %s",
            len(entries), first.employee_id, outcome.value, actor.id,
        )

    @staticmethod
    async def approve_entry(db: AsyncSession, actor: Actor, entry_id: uuid.UUID) -> TimesheetEntry:
        entry = await TimesheetService._get_entry(db, entry_id)
        waiting = await TimesheetService._reviewable(db, actor, entry.employee_id, [entry])
        await TimesheetService._decide(db, actor, waiting, TimesheetApprovalStatus.approved)
        return entry

    @staticmethod
    async def reject_entry(
        db: AsyncSession,
        actor: Actor,
        entry_id: uuid.UUID,
        reason: str,
    ) -> TimesheetEntry:
        entry = await TimesheetService._get_entry(db, entry_id)
        waiting = await TimesheetService._reviewable(db, actor, entry.employee_id, [entry])
        await TimesheetService._decide(
            db, actor, waiting, TimesheetApprovalStatus.rejected, reason.strip(),
        )
        return entry

    @staticmethod
    async def approve_week(
        db: AsyncSession,
        actor: Actor,
        data: WeekApprovalRequest,
    ) -> list[TimesheetEntry]:
        entries = await TimesheetService._week_entries(
            db, data.employee_id, data.week_start, data.project_id,
        )
        waiting = await TimesheetService._reviewable(db, actor, data.employee_id, entries)
        await TimesheetService._decide(db, actor, waiting, TimesheetApprovalStatus.approved)
        return waiting

    @staticmethod
    async def approve_days(
        db: AsyncSession,
        actor: Actor,
        data: DayApprovalRequest,
    ) -> list[TimesheetEntry]:
        days = {data.week_start + timedelta(days=i) for i in data.day_indexes}
        entries = [
            e for e in await TimesheetService._week_entries(
                db, data.employee_id, data.week_start, data.project_id,
            )
            if e.work_date in days
        ]
        waiting = await TimesheetService._reviewable(db, actor, data.employee_id, entries)
        await TimesheetService._decide(db, actor, waiting, TimesheetApprovalStatus.approved)
        return waiting

    @staticmethod
    async def request_revision(
        db: AsyncSession,
        actor: Actor,
        data: RevisionRequest,
    ) -> list[TimesheetEntry]:
        """Send individual cells back to the employee with a reason each."""
        entries = await TimesheetService._week_entries(
            db, data.employee_id, data.week_start, data.project_id,
        )
        by_cell = {((e.work_date - data.week_start).days, e.activity): e for e in entries}
        targets: list[tuple[TimesheetEntry, str]] = []
        for item in data.reverts:
            entry = by_cell.get((item.day_index, item.activity))
            if entry is None:
                raise NotFoundException(
                    "TimesheetEntry",
                    f"{item.activity} on {data.week_start + timedelta(days=item.day_index)}",
                )
            targets.append((entry, item.reason))

        waiting = await TimesheetService._reviewable(
            db, actor, data.employee_id, [entry for entry, _ in targets],
        )
        if len(waiting) != len(targets):
            raise BusinessRuleException(
                "NOTHING_TO_REVIEW", "Only submitted, undecided entries can be sent back.",
            )
        for entry, reason in targets:
            await TimesheetService._decide(
                db, actor, [entry], TimesheetApprovalStatus.revision_requested, reason.strip(),
            )
        return waiting

    # ── Reminders ───────────────────────────────────────────────────

    @staticmethod
    async def send_reminder(db: AsyncSession, actor: Actor, data: ReminderRequest) -> None:
        employee = await TimesheetService._get_employee(db, data.employee_id)
        project = None
        if data.project_id is not None:
            project = await db.get(Project, data.project_id)
            if project is None:
                raise NotFoundException("Project", data.project_id)
        allowed = (
            actor.has_role(UserRole.rmg)
            or employee.reporting_manager_id == actor.id
            or (project is not None and project.manages(actor.id))
        )
        if not allowed:
            raise ForbiddenException("Only the employee's managers or RMG can send reminders.")

        await notify_timesheet_reminder(
            db,
            employee_id=employee.id,
            week_start=data.week_start,
            sender_name=actor.name,
            project_name=project.name if project else None,
        )
        logger.info(
            "Timesheet reminder for week %s sent to %s by %s",
            data.week_start, employee.id, actor.id,
        )
