"""Sub-category configuration schemas."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backend.common.constants import TicketModule
from backend.common.schemas import PartialUpdate


class ApproverInfo(BaseModel):
    employee_id: uuid.UUID
    name: str
    email: EmailStr
    designation: str = ""


class ApprovalLevelConfig(BaseModel):
    enabled: bool = False
    approvers: list[ApproverInfo] = []


class ApprovalConfig(BaseModel):
    L1: ApprovalLevelConfig = Field(default_factory=ApprovalLevelConfig)
    L2: ApprovalLevelConfig = Field(default_factory=ApprovalLevelConfig)
    L3: ApprovalLevelConfig = Field(default_factory=ApprovalLevelConfig)


class SubCategoryCreate(BaseModel):
    module: TicketModule
    sub_category: str = Field(..., min_length=1, max_length=150)
    requires_approval: bool = False
    processing_queue: str = Field(..., min_length=1, max_length=150)
    specialist_queue: str = Field(..., min_length=1, max_length=150)
    order: int = 999
    is_active: bool = True
    approval_config: ApprovalConfig = Field(default_factory=ApprovalConfig)


class SubCategoryUpdate(PartialUpdate):
    """``module`` and ``sub_category`` form the identity and cannot change."""

    requires_approval: Optional[bool] = None
    processing_queue: Optional[str] = Field(None, min_length=1, max_length=150)
    specialist_queue: Optional[str] = Field(None, min_length=1, max_length=150)
    order: Optional[int] = None
    is_active: Optional[bool] = None
    approval_config: Optional[ApprovalConfig] = None


class SubCategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    module: TicketModule
    sub_category: str
    requires_approval: bool
    processing_queue: str
    specialist_queue: str
    order: int
    is_active: bool
    approval_config: ApprovalConfig
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
