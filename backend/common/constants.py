"""Enums and constants for the ops portal — matching PostgreSQL ENUM types
and the string values stored on helpdesk / leave / CTC records."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr = "hr"
    rmg = "rmg"
    it_employee = "it_employee"
    it_admin = "it_admin"
    l1_approver = "l1_approver"
    l2_approver = "l2_approver"
    l3_approver = "l3_approver"
    finance_admin = "finance_admin"
    facilities_admin = "facilities_admin"
    super_admin = "super_admin"


# ── Helpdesk ────────────────────────────────────────────────────────

class TicketModule(str, enum.Enum):
    it = "IT"
    facilities = "Facilities"
    finance = "Finance"


class TicketUrgency(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class TicketStatus(str, enum.Enum):
    pending_l1 = "Pending Level-1 Approval"
    pending_l2 = "Pending Level-2 Approval"
    pending_l3 = "Pending Level-3 Approval"
    approved = "Approved"
    rejected = "Rejected"
    routed = "Routed"
    in_queue = "In Queue"
    assigned = "Assigned"
    in_progress = "In Progress"
    on_hold = "On Hold"
    paused = "Paused"
    work_completed = "Work Completed"
    awaiting_closure = "Completed - Awaiting IT Closure"
    completed = "Completed"
    confirmed = "Confirmed"
    closed = "Closed"
    auto_closed = "Auto-Closed"
    cancelled = "Cancelled"
    reopened = "Reopened"


class ApprovalLevel(str, enum.Enum):
    l1 = "L1"
    l2 = "L2"
    l3 = "L3"
    none = "NONE"


class ApprovalStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"
    not_required = "Not Required"


class ApprovalDecision(str, enum.Enum):
    approved = "Approved"
    rejected = "Rejected"


class ProgressStatus(str, enum.Enum):
    not_started = "Not Started"
    in_progress = "In Progress"
    on_hold = "On Hold"
    completed = "Completed"


class ClosingReason(str, enum.Enum):
    resolved = "Resolved"
    user_confirmed = "User Confirmed"
    auto_closed = "Auto-Closed"
    user_cancellation = "User Cancellation"


class MessageSender(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    specialist = "specialist"
    itadmin = "itadmin"
    system = "system"


class MessageType(str, enum.Enum):
    message = "message"
    status_update = "status_update"
    closing_note = "closing_note"
    approval_note = "approval_note"


class SlaStatus(str, enum.Enum):
    on_track = "On Track"
    at_risk = "At Risk"
    overdue = "Overdue"


class SpecialistStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    earned = "Earned Leave"
    sabbatical = "Sabbatical Leave"
    comp_off = "Comp Off"
    paternity = "Paternity Leave"
    maternity = "Maternity Leave"
    sick = "Sick Leave"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    in_review = "in_review"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class HalfDaySession(str, enum.Enum):
    first_half = "first_half"
    second_half = "second_half"


# Yearly entitlement per leave type (days)
LEAVE_ENTITLEMENTS: dict[LeaveType, int] = {
    LeaveType.earned: 20,
    LeaveType.sabbatical: 182,
    LeaveType.comp_off: 0,
    LeaveType.paternity: 3,
    LeaveType.maternity: 180,
    LeaveType.sick: 12,
}


# ── Projects / Resource management ──────────────────────────────────

class ProjectStatus(str, enum.Enum):
    draft = "Draft"
    active = "Active"
    on_hold = "On Hold"
    closed = "Closed"


class BillingType(str, enum.Enum):
    time_and_material = "T&M"
    fixed_bid = "Fixed Bid"
    fixed_monthly = "Fixed Monthly"
    license = "License"


class ProjectRegion(str, enum.Enum):
    uk = "UK"
    india = "India"
    usa = "USA"
    middle_east = "ME"
    other = "Other"


class AllocationStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


# ── Timesheets ──────────────────────────────────────────────────────

class TimesheetStatus(str, enum.Enum):
    draft = "draft"
    submitted = "submitted"


class TimesheetApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    revision_requested = "revision_requested"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    leave = "leave"
    ticket = "ticket"
    system = "system"
    announcement = "announcement"
    reminder = "reminder"
    celebration = "celebration"
    approval = "approval"
    rejection = "rejection"


# ── Finance / Calendar ──────────────────────────────────────────────

class Currency(str, enum.Enum):
    inr = "INR"
    usd = "USD"


class CtcUom(str, enum.Enum):
    annual = "Annual"
    monthly = "Monthly"


class HolidayType(str, enum.Enum):
    national = "National"
    regional = "Regional"
    company = "Company"
    optional = "Optional"


# ── Helpdesk role groupings ─────────────────────────────────────────

MODULE_ADMIN_ROLES: dict[TicketModule, UserRole] = {
    TicketModule.it: UserRole.it_admin,
    TicketModule.facilities: UserRole.facilities_admin,
    TicketModule.finance: UserRole.finance_admin,
}

HELPDESK_ADMIN_ROLES: frozenset[UserRole] = frozenset({
    UserRole.it_admin,
    UserRole.facilities_admin,
    UserRole.finance_admin,
    UserRole.super_admin,
})

APPROVER_ROLES: dict[ApprovalLevel, UserRole] = {
    ApprovalLevel.l1: UserRole.l1_approver,
    ApprovalLevel.l2: UserRole.l2_approver,
    ApprovalLevel.l3: UserRole.l3_approver,
}


# ── Role-based permissions ──────────────────────────────────────────

_EMPLOYEE_PERMISSIONS = [
    "profile:read_own",
    "leave:request",
    "leave:read_own",
    "ticket:create",
    "ticket:read_own",
    "announcement:read",
    "notification:read_own",
    "project:read",
    "timesheet:submit",
]

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.employee: list(_EMPLOYEE_PERMISSIONS),
    UserRole.manager: _EMPLOYEE_PERMISSIONS + [
        "profile:read_team",
        "leave:read_team",
        "leave:approve",
        "leave:reject",
        "timesheet:approve",
    ],
    UserRole.hr: _EMPLOYEE_PERMISSIONS + [
        "profile:read_all",
        "profile:create",
        "profile:update",
        "leave:read_all",
        "leave:approve",
        "leave:reject",
        "holiday:manage",
        "announcement:manage",
        "notification:send",
        "ctc:read",
        "ctc:manage",
        "audit:read",
    ],
    UserRole.rmg: _EMPLOYEE_PERMISSIONS + [
        "profile:read_all",
        "project:manage",
        "allocation:read_all",
        "allocation:manage",
        "timesheet:read_all",
        "timesheet:approve",
    ],
    UserRole.it_employee: _EMPLOYEE_PERMISSIONS + [
        "ticket:work",
    ],
    UserRole.it_admin: _EMPLOYEE_PERMISSIONS + [
        "ticket:read_all",
        "ticket:work",
        "ticket:manage",
        "specialist:manage",
        "subcategory:manage",
        "sla:read",
    ],
    UserRole.facilities_admin: _EMPLOYEE_PERMISSIONS + [
        "ticket:read_all",
        "ticket:work",
        "ticket:manage",
        "subcategory:manage",
        "sla:read",
    ],
    UserRole.finance_admin: _EMPLOYEE_PERMISSIONS + [
        "ticket:read_all",
        "ticket:work",
        "ticket:manage",
        "subcategory:manage",
        "sla:read",
        "ctc:read",
        "ctc:manage",
    ],
    UserRole.l1_approver: _EMPLOYEE_PERMISSIONS + ["ticket:approve"],
    UserRole.l2_approver: _EMPLOYEE_PERMISSIONS + ["ticket:approve"],
    UserRole.l3_approver: _EMPLOYEE_PERMISSIONS + ["ticket:approve"],
    UserRole.super_admin: _EMPLOYEE_PERMISSIONS + [
        "profile:read_all",
        "profile:create",
        "profile:update",
        "profile:delete",
        "leave:read_all",
        "leave:approve",
        "leave:reject",
        "ticket:read_all",
        "ticket:work",
        "ticket:manage",
        "ticket:approve",
        "specialist:manage",
        "subcategory:manage",
        "sla:read",
        "holiday:manage",
        "announcement:manage",
        "notification:send",
        "ctc:read",
        "ctc:manage",
        "audit:read",
        "project:manage",
        "allocation:read_all",
        "allocation:manage",
        "timesheet:read_all",
        "timesheet:approve",
        "system:manage_users",
    ],
}

# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%d-%b-%Y"          # Indian format: 19-Feb-2026
TIMEZONE = "Asia/Kolkata"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
TICKET_NUMBER_PREFIX = "TKT"
