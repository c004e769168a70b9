"""Helpdesk sub-category configuration — approval flow and queue routing."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.common.clock import utcnow
from backend.common.constants import ApprovalLevel, TicketModule
from backend.database import Base, pg_enum

APPROVAL_LEVELS: tuple[ApprovalLevel, ...] = (
    ApprovalLevel.l1,
    ApprovalLevel.l2,
    ApprovalLevel.l3,
)


def default_approval_config() -> dict:
    return {level.value: {"enabled": False, "approvers": []} for level in APPROVAL_LEVELS}


class SubCategoryConfig(Base):
    """Per (module, sub_category) routing rules.

    ``approval_config`` maps ``"L1" | "L2" | "L3"`` to
    ``{"enabled": bool, "approvers": [{"employee_id", "name", "email", "designation"}]}``.
    """

    __tablename__ = "subcategory_configs"
    __table_args__ = (
        sa.UniqueConstraint("module", "sub_category", name="uq_subcategory_module_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    module: Mapped[TicketModule] = mapped_column(
        pg_enum(TicketModule, "ticket_module"), nullable=False,
    )
    sub_category: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    requires_approval: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    processing_queue: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    specialist_queue: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    order: Mapped[int] = mapped_column("sort_order", sa.Integer, default=999)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    approval_config: Mapped[dict] = mapped_column(JSONB, default=default_approval_config)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    # ── Helpers ─────────────────────────────────────────────────────

    def level_config(self, level: ApprovalLevel) -> dict:
        return (self.approval_config or {}).get(level.value) or {}

    def enabled_levels(self) -> list[ApprovalLevel]:
        """Approval levels switched on for this sub-category, in order."""
        return [lvl for lvl in APPROVAL_LEVELS if self.level_config(lvl).get("enabled")]

    def approver_ids(self, level: ApprovalLevel) -> list[uuid.UUID]:
        """Employee ids configured as approvers for *level* (may be empty)."""
        ids = []
        for approver in self.level_config(level).get("approvers") or []:
            try:
                ids.append(uuid.UUID(str(approver.get("employee_id"))))
            except ValueError:
                continue
        return ids

    def __repr__(self) -> str:
        return f"<SubCategoryConfig {self.module.value}/{self.sub_category}>"
