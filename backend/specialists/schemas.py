"""Specialist roster schemas."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backend.common.constants import SpecialistStatus
from backend.common.schemas import PartialUpdate


class SpecialistCreate(BaseModel):
    employee_id: uuid.UUID
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    specializations: list[str] = []
    team: str = Field(..., min_length=1, max_length=150)
    designation: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=20)
    status: SpecialistStatus = SpecialistStatus.active
    max_capacity: int = Field(5, ge=1)


class SpecialistUpdate(PartialUpdate):
    nullable_fields = frozenset({"designation", "phone"})

    name: Optional[str] = Field(None, max_length=255)
    specializations: Optional[list[str]] = None
    team: Optional[str] = Field(None, min_length=1, max_length=150)
    designation: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=20)
    status: Optional[SpecialistStatus] = None
    max_capacity: Optional[int] = Field(None, ge=1)


class SpecialistResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    name: str
    email: str
    specializations: list[str]
    team: str
    designation: Optional[str] = None
    phone: Optional[str] = None
    status: SpecialistStatus
    active_ticket_count: int
    max_capacity: int
    utilization: float
    created_at: Optional[datetime] = None
