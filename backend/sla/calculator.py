"""SLA arithmetic for helpdesk tickets.

Pure functions over timestamps; nothing here touches the database. Tickets
are read duck-typed (``created_at``, ``status``, ``urgency``,
``approval_deadline``, ``processing_deadline``, ``first_response_at``,
``assignee_id``, ``resolved_at``, ``closed_at``) so the same code serves the
service layer, the maintenance sweep and the tests.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from backend.common.clock import as_utc, hours_between
from backend.common.constants import SlaStatus, TicketUrgency
from backend.config import settings
from backend.helpdesk.workflow import (
    APPROVAL_PENDING_STATUSES,
    RESOLVED_STATUSES,
    SLA_STOPPED_STATUSES,
)

# Share of the window after which a ticket counts as at risk on dashboards.
DASHBOARD_AT_RISK_RATIO = 0.75

FIRST_RESPONSE_AT_RISK_HOURS = 1
RESOLUTION_AT_RISK_HOURS = 2


@dataclass(frozen=True)
class PriorityRule:
    first_response_hours: int
    resolution_hours: int
    escalation_hours: int


PRIORITY_RULES: dict[TicketUrgency, PriorityRule] = {
    TicketUrgency.critical: PriorityRule(1, 4, 2),
    TicketUrgency.high: PriorityRule(4, 24, 8),
    TicketUrgency.medium: PriorityRule(8, 72, 24),
    TicketUrgency.low: PriorityRule(24, 168, 72),
}


@dataclass(frozen=True)
class Deadlines:
    approval_deadline: Optional[datetime]
    processing_deadline: datetime
    due_at: datetime


# ── Deadlines ───────────────────────────────────────────────────────

def compute_deadlines(
    created_at: datetime,
    requires_approval: bool,
    *,
    approval_hours: Optional[int] = None,
    processing_hours: Optional[int] = None,
) -> Deadlines:
    """Fixed offsets from creation; the approval window only when needed."""
    created_at = as_utc(created_at)
    approval_hours = settings.APPROVAL_SLA_HOURS if approval_hours is None else approval_hours
    processing_hours = (
        settings.PROCESSING_SLA_HOURS if processing_hours is None else processing_hours
    )
    processing = created_at + timedelta(hours=processing_hours)
    return Deadlines(
        approval_deadline=(
            created_at + timedelta(hours=approval_hours) if requires_approval else None
        ),
        processing_deadline=processing,
        due_at=processing,
    )


def deadline_status(
    deadline: Optional[datetime],
    now: datetime,
    *,
    at_risk_hours: Optional[float] = None,
) -> tuple[SlaStatus, float]:
    """Classify one deadline. Returns ``(status, overdue_by_hours)``."""
    if deadline is None:
        return SlaStatus.on_track, 0.0
    at_risk_hours = settings.SLA_AT_RISK_HOURS if at_risk_hours is None else at_risk_hours
    remaining = hours_between(now, deadline)
    if remaining < 0:
        return SlaStatus.overdue, round(-remaining, 2)
    if remaining < at_risk_hours:
        return SlaStatus.at_risk, 0.0
    return SlaStatus.on_track, 0.0


def relevant_deadline(ticket: Any) -> Optional[datetime]:
    """Approval deadline while approval is pending, else processing deadline."""
    if ticket.status in APPROVAL_PENDING_STATUSES and ticket.approval_deadline:
        return as_utc(ticket.approval_deadline)
    return as_utc(ticket.processing_deadline)


def ticket_sla_status(ticket: Any, now: datetime) -> tuple[SlaStatus, float]:
    """Stored SLA status for a ticket; stopped tickets keep On Track."""
    if ticket.status in SLA_STOPPED_STATUSES:
        return SlaStatus.on_track, 0.0
    return deadline_status(relevant_deadline(ticket), now)


# ── Dashboard bucketing ─────────────────────────────────────────────

def dashboard_bucket(ticket: Any, now: datetime) -> str:
    """``"breached" | "at_risk" | "on_track"`` by elapsed share of the window."""
    deadline = relevant_deadline(ticket)
    if deadline is None:
        return "on_track"
    if now > deadline:
        return "breached"
    created = as_utc(ticket.created_at)
    total = (deadline - created).total_seconds()
    elapsed = (now - created).total_seconds()
    if total > 0 and elapsed / total > DASHBOARD_AT_RISK_RATIO:
        return "at_risk"
    return "on_track"


def compliance_rate(on_track: int, total: int) -> float:
    if total == 0:
        return 100.0
    return round(on_track / total * 100, 2)


# ── Per-priority rules ──────────────────────────────────────────────

def _whole_hours(start: datetime, end: datetime) -> int:
    """Whole hours from *start* to *end*, truncated toward zero."""
    return math.trunc(hours_between(start, end))


def _target_status(
    deadline: datetime,
    now: datetime,
    *,
    met: bool,
    met_at: Optional[datetime],
    at_risk_hours: int,
) -> str:
    if met:
        if met_at is None:
            return "met"
        return "met" if as_utc(met_at) <= deadline else "breached"
    if now > deadline:
        return "breached"
    if _whole_hours(now, deadline) <= at_risk_hours:
        return "at_risk"
    return "pending"


def evaluate_priority_rules(ticket: Any, now: datetime) -> dict[str, Any]:
    """First-response / resolution / escalation targets for the ticket's urgency."""
    rule = PRIORITY_RULES[TicketUrgency(ticket.urgency)]
    created = as_utc(ticket.created_at)
    first_response_deadline = created + timedelta(hours=rule.first_response_hours)
    resolution_deadline = created + timedelta(hours=rule.resolution_hours)
    escalation_deadline = created + timedelta(hours=rule.escalation_hours)

    responded = bool(ticket.first_response_at or ticket.assignee_id)
    resolved = ticket.status in RESOLVED_STATUSES
    resolved_at = ticket.resolved_at or ticket.closed_at

    first_response_status = _target_status(
        first_response_deadline, now,
        met=responded, met_at=None,
        at_risk_hours=FIRST_RESPONSE_AT_RISK_HOURS,
    )
    resolution_status = _target_status(
        resolution_deadline, now,
        met=resolved, met_at=resolved_at,
        at_risk_hours=RESOLUTION_AT_RISK_HOURS,
    )
    escalated = not resolved and now > escalation_deadline

    statuses = (first_response_status, resolution_status)
    if "breached" in statuses:
        overall = "critical"
    elif "at_risk" in statuses or escalated:
        overall = "warning"
    else:
        overall = "good"

    return {
        "urgency": TicketUrgency(ticket.urgency).value,
        "rule": {
            "first_response_hours": rule.first_response_hours,
            "resolution_hours": rule.resolution_hours,
            "escalation_hours": rule.escalation_hours,
        },
        "first_response_deadline": first_response_deadline,
        "resolution_deadline": resolution_deadline,
        "escalation_deadline": escalation_deadline,
        "first_response_status": first_response_status,
        "resolution_status": resolution_status,
        "escalated": escalated,
        "overall_status": overall,
        "hours_remaining": {
            "first_response": max(0, _whole_hours(now, first_response_deadline)),
            "resolution": max(0, _whole_hours(now, resolution_deadline)),
            "escalation": max(0, _whole_hours(now, escalation_deadline)),
        },
    }
