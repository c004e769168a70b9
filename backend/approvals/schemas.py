"""Approval decision request and queue item schemas."""


from typing import Optional

from pydantic import BaseModel, Field

from backend.common.constants import ApprovalDecision
from backend.helpdesk.schemas import TicketSummary


class DecisionRequest(BaseModel):
    decision: ApprovalDecision
    comments: Optional[str] = Field(None, max_length=2000)


class ApprovalQueueItem(TicketSummary):
    """A ticket as seen from the approvals queue."""

    can_approve: bool = False
    can_reject: bool = False
    view_only: bool = True
    is_historical: bool = False
