"""Auth Pydantic schemas for request / response validation."""


import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from backend.common.constants import UserRole


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=72)


class RoleGrantRequest(BaseModel):
    employee_id: uuid.UUID
    role: UserRole


# ── Embedded / Shared ──────────────────────────────────────────────

class UserInfo(BaseModel):
    id: uuid.UUID
    employee_code: str
    display_name: str
    email: str
    role: str
    roles: list[str]
    department: Optional[str] = None
    designation: Optional[str] = None


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(UserInfo):
    permissions: list[str]
    location: Optional[str] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    direct_reports_count: int


class RoleAssignmentResponse(BaseModel):
    employee_id: uuid.UUID
    role: UserRole
    is_active: bool
