"""SLA reporting and the stored-status refresh sweep."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor
from backend.common.clock import as_utc, hours_between, utcnow
from backend.common.constants import SlaStatus, TicketModule
from backend.helpdesk.models import HelpdeskTicket
from backend.helpdesk.service import HelpdeskService
from backend.helpdesk.workflow import SLA_STOPPED_STATUSES
from backend.sla.calculator import (
    compliance_rate,
    dashboard_bucket,
    evaluate_priority_rules,
    relevant_deadline,
    ticket_sla_status,
)

logger = logging.getLogger(__name__)

_BUCKETS = ("on_track", "at_risk", "breached")


def _empty_counts() -> dict[str, int]:
    return {"total": 0, **{b: 0 for b in _BUCKETS}}


class SlaService:

    @staticmethod
    async def _active_tickets(
        db: AsyncSession,
        module: Optional[TicketModule] = None,
    ) -> list[HelpdeskTicket]:
        query = select(HelpdeskTicket).where(
            HelpdeskTicket.status.not_in(list(SLA_STOPPED_STATUSES)),
        )
        if module is not None:
            query = query.where(HelpdeskTicket.module == module)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def ticket_sla(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Live SLA view of one ticket plus its per-priority targets."""
        now = now or utcnow()
        ticket = await HelpdeskService.get_ticket_for(db, actor, ticket_id)
        status, overdue_by = ticket_sla_status(ticket, now)
        return {
            "ticket_id": str(ticket.id),
            "ticket_number": ticket.ticket_number,
            "status": ticket.status.value,
            "sla_status": status.value,
            "overdue_by_hours": overdue_by,
            "approval_deadline": as_utc(ticket.approval_deadline),
            "processing_deadline": as_utc(ticket.processing_deadline),
            "due_at": as_utc(ticket.due_at),
            "bucket": dashboard_bucket(ticket, now),
            "priority": evaluate_priority_rules(ticket, now),
        }

    @staticmethod
    async def dashboard(
        db: AsyncSession,
        *,
        module: Optional[TicketModule] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        now = now or utcnow()
        tickets = await SlaService._active_tickets(db, module)

        totals = _empty_counts()
        by_module: dict[str, dict[str, int]] = defaultdict(_empty_counts)
        by_urgency: dict[str, dict[str, int]] = defaultdict(_empty_counts)
        overdue: list[dict[str, Any]] = []

        for ticket in tickets:
            bucket = dashboard_bucket(ticket, now)
            for counts in (totals, by_module[ticket.module.value], by_urgency[ticket.urgency.value]):
                counts["total"] += 1
                counts[bucket] += 1
            if bucket == "breached":
                deadline = relevant_deadline(ticket)
                overdue.append({
                    "ticket_id": str(ticket.id),
                    "ticket_number": ticket.ticket_number,
                    "subject": ticket.subject,
                    "module": ticket.module.value,
                    "urgency": ticket.urgency.value,
                    "status": ticket.status.value,
                    "assignee_name": ticket.assignee_name,
                    "overdue_by_hours": round(hours_between(deadline, now), 2),
                })

        overdue.sort(key=lambda item: item["overdue_by_hours"], reverse=True)
        return {
            "summary": totals,
            "compliance_rate": compliance_rate(totals["on_track"], totals["total"]),
            "by_module": dict(by_module),
            "by_urgency": dict(by_urgency),
            "overdue": overdue,
            "generated_at": now,
        }

    @staticmethod
    async def refresh(db: AsyncSession, *, now: Optional[datetime] = None) -> dict[str, int]:
        """Recompute the stored SLA status of every ticket still on the clock."""
        now = now or utcnow()
        tickets = await SlaService._active_tickets(db)
        changed = 0
        for ticket in tickets:
            status, overdue_by = ticket_sla_status(ticket, now)
            if status != ticket.sla_status or overdue_by != ticket.overdue_by_hours:
                if status == SlaStatus.overdue and ticket.sla_status != SlaStatus.overdue:
                    logger.warning(
                        "Ticket %s breached its SLA (%.2fh overdue)",
                        ticket.ticket_number, overdue_by,
                    )
                ticket.sla_status = status
                ticket.overdue_by_hours = overdue_by
                changed += 1
        await db.flush()
        logger.info("SLA refresh: %d tickets checked, %d updated", len(tickets), changed)
        return {"checked": len(tickets), "updated": changed}
