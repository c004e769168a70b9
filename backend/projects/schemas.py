"""Project / allocation Pydantic schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.common.constants import (
    AllocationStatus,
    BillingType,
    Currency,
    ProjectRegion,
    ProjectStatus,
)
from backend.common.schemas import PartialUpdate


# ── Projects ────────────────────────────────────────────────────────

class ProjectCreate(BaseModel):
    project_code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    account_name: Optional[str] = Field(None, max_length=255)
    legal_entity: Optional[str] = Field(None, max_length=255)
    billing_type: BillingType
    practice_unit: Optional[str] = Field(None, max_length=100)
    region: ProjectRegion
    project_manager_id: Optional[uuid.UUID] = None
    delivery_manager_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: Optional[date] = None
    currency: Currency = Currency.inr
    estimated_value: Optional[Decimal] = Field(None, ge=0)
    status: ProjectStatus = ProjectStatus.draft
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "ProjectCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class ProjectUpdate(PartialUpdate):
    nullable_fields = frozenset({
        "account_name", "legal_entity", "practice_unit", "project_manager_id",
        "delivery_manager_id", "end_date", "estimated_value", "description",
    })

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    account_name: Optional[str] = Field(None, max_length=255)
    legal_entity: Optional[str] = Field(None, max_length=255)
    billing_type: Optional[BillingType] = None
    practice_unit: Optional[str] = Field(None, max_length=100)
    region: Optional[ProjectRegion] = None
    project_manager_id: Optional[uuid.UUID] = None
    delivery_manager_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    currency: Optional[Currency] = None
    estimated_value: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_code: str
    name: str
    account_name: Optional[str] = None
    legal_entity: Optional[str] = None
    billing_type: BillingType
    practice_unit: Optional[str] = None
    region: ProjectRegion
    project_manager_id: Optional[uuid.UUID] = None
    delivery_manager_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: Optional[date] = None
    currency: Currency
    estimated_value: Optional[Decimal] = None
    status: ProjectStatus
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ── Allocations ─────────────────────────────────────────────────────

class AllocationCreate(BaseModel):
    employee_id: uuid.UUID
    project_id: uuid.UUID
    allocation: int = Field(..., ge=0, le=100)
    start_date: date
    end_date: Optional[date] = None
    role: Optional[str] = Field(None, max_length=100)
    billable: bool = True
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "AllocationCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class AllocationUpdate(PartialUpdate):
    nullable_fields = frozenset({"end_date", "role", "remarks"})

    allocation: Optional[int] = Field(None, ge=0, le=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    role: Optional[str] = Field(None, max_length=100)
    billable: Optional[bool] = None
    remarks: Optional[str] = None


class AllocationStatusUpdate(BaseModel):
    status: AllocationStatus


class AllocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    project_id: uuid.UUID
    allocation: int
    start_date: date
    end_date: Optional[date] = None
    role: Optional[str] = None
    billable: bool
    status: AllocationStatus
    remarks: Optional[str] = None
    created_at: datetime


class Utilization(BaseModel):
    employee_id: uuid.UUID
    total_allocation: int
    available: int
    is_fully_allocated: bool
    is_billable: bool
    allocations: int
