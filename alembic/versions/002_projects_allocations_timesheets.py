"""002 – Projects, allocations and timesheet entries.

Revision ID: 002_projects_allocations_timesheets
Revises: 001_initial_schema
Create Date: 2026-10-19 16:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "002_projects_allocations_timesheets"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("project_status", ["Draft", "Active", "On Hold", "Closed"]),
    ("billing_type", ["T&M", "Fixed Bid", "Fixed Monthly", "License"]),
    ("project_region", ["UK", "India", "USA", "ME", "Other"]),
    ("allocation_status", ["active", "completed", "cancelled"]),
    ("timesheet_status", ["draft", "submitted"]),
    ("timesheet_approval_status", ["pending", "approved", "rejected", "revision_requested"]),
]

TABLES_IN_DROP_ORDER = ["timesheet_entries", "allocations", "projects"]


def upgrade() -> None:
    for name, values in ENUM_TYPES:
        vals = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")

    # ── projects ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE projects (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            project_code        VARCHAR(50) NOT NULL UNIQUE,
            name                VARCHAR(255) NOT NULL,
            account_name        VARCHAR(255),
            legal_entity        VARCHAR(255),
            billing_type        billing_type NOT NULL,
            practice_unit       VARCHAR(100),
            region              project_region NOT NULL,
            project_manager_id  UUID REFERENCES employees(id),
            delivery_manager_id UUID REFERENCES employees(id),
            start_date          DATE NOT NULL,
            end_date            DATE,
            currency            currency DEFAULT 'INR',
            estimated_value     NUMERIC(14,2),
            status              project_status DEFAULT 'Draft',
            description         TEXT,
            created_by_id       UUID REFERENCES employees(id),
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_projects_dates CHECK (end_date IS NULL OR end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_projects_status ON projects(status)")
    op.execute("CREATE INDEX ix_projects_project_manager_id ON projects(project_manager_id)")
    op.execute("CREATE INDEX ix_projects_name_trgm ON projects USING gin (name gin_trgm_ops)")

    # ── allocations ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE allocations (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id),
            project_id  UUID NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            allocation  INTEGER NOT NULL,
            start_date  DATE NOT NULL,
            end_date    DATE,
            role        VARCHAR(100),
            billable    BOOLEAN DEFAULT TRUE,
            status      allocation_status DEFAULT 'active',
            remarks     TEXT,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_allocations_percent CHECK (allocation >= 0 AND allocation <= 100),
            CONSTRAINT ck_allocations_dates CHECK (end_date IS NULL OR end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_allocations_employee_status ON allocations(employee_id, status)")
    op.execute("CREATE INDEX ix_allocations_project_status  ON allocations(project_id, status)")

    # ── timesheet_entries ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE timesheet_entries (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id     UUID NOT NULL REFERENCES employees(id),
            employee_name   VARCHAR(255) NOT NULL,
            work_date       DATE NOT NULL,
            project_id      UUID REFERENCES projects(id) ON DELETE SET NULL,
            project_name    VARCHAR(255),
            activity        VARCHAR(100) NOT NULL,
            billable        BOOLEAN DEFAULT FALSE,
            minutes         INTEGER NOT NULL,
            comment         TEXT,
            status          timesheet_status DEFAULT 'submitted',
            approval_status timesheet_approval_status DEFAULT 'pending',
            submitted_at    TIMESTAMPTZ,
            reviewed_by_id  UUID REFERENCES employees(id),
            reviewed_at     TIMESTAMPTZ,
            review_comment  TEXT,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_timesheet_entries_slot
                UNIQUE (employee_id, work_date, project_id, activity),
            CONSTRAINT ck_timesheet_entries_minutes CHECK (minutes > 0 AND minutes <= 1440)
        )
    """)
    op.execute(
        "CREATE INDEX ix_timesheet_entries_employee_date ON timesheet_entries(employee_id, work_date)"
    )
    op.execute(
        "CREATE INDEX ix_timesheet_entries_project_approval "
        "ON timesheet_entries(project_id, approval_status)"
    )


def downgrade() -> None:
    for table in TABLES_IN_DROP_ORDER:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    for name, _ in reversed(ENUM_TYPES):
        op.execute(f"DROP TYPE IF EXISTS {name}")
