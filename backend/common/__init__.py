"""Common module — shared utilities for the ops portal."""

from backend.common.audit import AuditTrail, create_audit_entry
from backend.common.clock import as_utc, hours_between, utcnow
from backend.common.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    TIMEZONE,
    ApprovalDecision,
    ApprovalLevel,
    ApprovalStatus,
    LeaveStatus,
    LeaveType,
    NotificationType,
    SlaStatus,
    TicketModule,
    TicketStatus,
    TicketUrgency,
    UserRole,
)
from backend.common.exceptions import (
    AppException,
    BusinessRuleException,
    ConflictError,
    DuplicateException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from backend.common.filters import apply_filters, apply_search, apply_sorting
from backend.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    build_meta,
    count_rows,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Clock
    "as_utc",
    "hours_between",
    "utcnow",
    # Constants / Enums
    "ApprovalDecision",
    "ApprovalLevel",
    "ApprovalStatus",
    "LeaveStatus",
    "LeaveType",
    "NotificationType",
    "SlaStatus",
    "TicketModule",
    "TicketStatus",
    "TicketUrgency",
    "UserRole",
    "PERMISSIONS",
    "DATE_FORMAT",
    "TIMEZONE",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "BusinessRuleException",
    "ConflictError",
    "DuplicateException",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    "apply_sorting",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "build_meta",
    "count_rows",
    "paginate",
]
