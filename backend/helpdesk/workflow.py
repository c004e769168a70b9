"""Ticket lifecycle rules.

Each operation on a ticket is allowed from a fixed set of source statuses.
The sets live here so the service, the approval engine, the SLA sweep and
the dashboards agree on what "open", "resolved" and "in approval" mean.
"""

from __future__ import annotations

from typing import Iterable, Optional

from backend.common.constants import ApprovalLevel, ProgressStatus, TicketStatus
from backend.common.exceptions import BusinessRuleException

# ── Status groups ───────────────────────────────────────────────────

LEVEL_STATUS: dict[ApprovalLevel, TicketStatus] = {
    ApprovalLevel.l1: TicketStatus.pending_l1,
    ApprovalLevel.l2: TicketStatus.pending_l2,
    ApprovalLevel.l3: TicketStatus.pending_l3,
}

APPROVAL_PENDING_STATUSES = frozenset(LEVEL_STATUS.values())

CANCEL_BLOCKED_STATUSES = frozenset({
    TicketStatus.cancelled,
    TicketStatus.closed,
    TicketStatus.auto_closed,
    TicketStatus.confirmed,
    TicketStatus.rejected,
    TicketStatus.completed,
    TicketStatus.awaiting_closure,
})

ASSIGNABLE_STATUSES = frozenset({
    TicketStatus.routed,
    TicketStatus.in_queue,
    TicketStatus.reopened,
})

PAUSABLE_STATUSES = frozenset({TicketStatus.in_progress, TicketStatus.assigned})

CLOSABLE_STATUSES = frozenset({TicketStatus.confirmed, TicketStatus.awaiting_closure})

REOPENABLE_STATUSES = frozenset({TicketStatus.closed, TicketStatus.completed})

# Work can be reported while a specialist holds the ticket.
WORKABLE_STATUSES = frozenset({
    TicketStatus.assigned,
    TicketStatus.in_progress,
    TicketStatus.on_hold,
    TicketStatus.paused,
    TicketStatus.reopened,
})

# Counted as "resolved" by analytics.
RESOLVED_STATUSES = frozenset({
    TicketStatus.closed,
    TicketStatus.completed,
    TicketStatus.confirmed,
    TicketStatus.auto_closed,
})

# No further work will happen on these.
TERMINAL_STATUSES = frozenset({
    TicketStatus.closed,
    TicketStatus.auto_closed,
    TicketStatus.cancelled,
    TicketStatus.rejected,
})

# The SLA clock stops once the specialist reports the work done.
SLA_STOPPED_STATUSES = TERMINAL_STATUSES | frozenset({
    TicketStatus.work_completed,
    TicketStatus.awaiting_closure,
    TicketStatus.completed,
    TicketStatus.confirmed,
})

OPEN_STATUSES = frozenset(TicketStatus) - TERMINAL_STATUSES - RESOLVED_STATUSES

PROGRESS_TO_STATUS: dict[ProgressStatus, TicketStatus] = {
    ProgressStatus.in_progress: TicketStatus.in_progress,
    ProgressStatus.on_hold: TicketStatus.on_hold,
    ProgressStatus.completed: TicketStatus.work_completed,
}

_LEVEL_ORDER: tuple[ApprovalLevel, ...] = (
    ApprovalLevel.l1,
    ApprovalLevel.l2,
    ApprovalLevel.l3,
)


# ── Guards ──────────────────────────────────────────────────────────

def ensure_status(
    current: TicketStatus,
    allowed: Iterable[TicketStatus],
    action: str,
    code: str = "INVALID_STATUS",
) -> None:
    """Raise ``BusinessRuleException`` unless *current* is in *allowed*."""
    allowed = frozenset(allowed)
    if current not in allowed:
        expected = ", ".join(sorted(s.value for s in allowed))
        raise BusinessRuleException(
            code,
            f"Cannot {action} a ticket in status '{current.value}'. Expected one of: {expected}.",
        )


def ensure_cancellable(current: TicketStatus) -> None:
    if current in CANCEL_BLOCKED_STATUSES:
        raise BusinessRuleException(
            "CANNOT_CANCEL",
            f"Ticket cannot be cancelled in status '{current.value}'.",
        )


# ── Approval routing ────────────────────────────────────────────────

def approval_levels(enabled: Optional[Iterable[ApprovalLevel]]) -> list[ApprovalLevel]:
    """The chain of levels a ticket walks through.

    Without a configured chain every level is used, L1 then L2 then L3.
    """
    if enabled is None:
        return list(_LEVEL_ORDER)
    wanted = set(enabled)
    return [lvl for lvl in _LEVEL_ORDER if lvl in wanted]


def first_level(enabled: Optional[Iterable[ApprovalLevel]]) -> ApprovalLevel:
    chain = approval_levels(enabled)
    return chain[0] if chain else ApprovalLevel.l1


def next_level(
    current: ApprovalLevel,
    enabled: Optional[Iterable[ApprovalLevel]],
) -> Optional[ApprovalLevel]:
    """The level after *current*, or ``None`` when the chain is finished."""
    chain = approval_levels(enabled)
    later = [lvl for lvl in chain if _LEVEL_ORDER.index(lvl) > _LEVEL_ORDER.index(current)]
    return later[0] if later else None
