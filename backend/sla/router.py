"""SLA endpoints — per-ticket view, dashboard and refresh."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor, get_actor, require_permission
from backend.common.constants import TicketModule
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.sla.service import SlaService

router = APIRouter(prefix="", tags=["sla"])


@router.get("/tickets/{ticket_id}")
async def ticket_sla(
    ticket_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await SlaService.ticket_sla(db, actor, ticket_id)}


@router.get("/dashboard")
async def sla_dashboard(
    module: Optional[TicketModule] = Query(None),
    employee: Employee = Depends(require_permission("sla:read")),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await SlaService.dashboard(db, module=module)}


@router.post("/refresh")
async def refresh_sla(
    employee: Employee = Depends(require_permission("ticket:manage")),
    db: AsyncSession = Depends(get_db),
):
    result = await SlaService.refresh(db)
    await db.commit()
    return {"message": f"SLA status refreshed for {result['updated']} ticket(s)", "data": result}
