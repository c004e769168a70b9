"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Detail            → response bodies (read)
  - *Summary           → compact read representations
"""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backend.common.constants import UserRole
from backend.common.schemas import PartialUpdate


# ═════════════════════════════════════════════════════════════════════
# Employee — read
# ═════════════════════════════════════════════════════════════════════


class EmployeeSummary(BaseModel):
    """Minimal employee info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    display_name: Optional[str] = None
    email: str
    department: Optional[str] = None
    designation: Optional[str] = None


class EmployeeDetail(EmployeeSummary):
    """Full employee representation (HR view)."""

    first_name: str
    last_name: str
    phone: Optional[str] = None
    location: Optional[str] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    date_of_joining: date
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    roles: list[str] = []
    direct_reports_count: int = 0


# ═════════════════════════════════════════════════════════════════════
# Employee — write
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    employee_code: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=150)
    designation: Optional[str] = Field(None, max_length=150)
    location: Optional[str] = Field(None, max_length=100)
    reporting_manager_id: Optional[uuid.UUID] = None
    date_of_joining: date
    password: Optional[str] = Field(None, min_length=8, max_length=72)
    roles: list[UserRole] = Field(default_factory=lambda: [UserRole.employee])


class EmployeeUpdate(PartialUpdate):
    nullable_fields = frozenset({
        "display_name", "phone", "department", "designation", "location",
        "reporting_manager_id",
    })

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=150)
    designation: Optional[str] = Field(None, max_length=150)
    location: Optional[str] = Field(None, max_length=100)
    reporting_manager_id: Optional[uuid.UUID] = None
