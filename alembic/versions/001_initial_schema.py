"""001 – Initial schema: all tables, indexes, enums, seed data.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Labels are the enum *values* stored by backend.database.pg_enum.
ENUM_TYPES: list[tuple[str, list[str]]] = [
    (
        "user_role",
        [
            "employee", "manager", "hr", "rmg", "it_employee", "it_admin",
            "l1_approver", "l2_approver", "l3_approver",
            "finance_admin", "facilities_admin", "super_admin",
        ],
    ),
    ("ticket_module", ["IT", "Facilities", "Finance"]),
    ("ticket_urgency", ["low", "medium", "high", "critical"]),
    (
        "ticket_status",
        [
            "Pending Level-1 Approval",
            "Pending Level-2 Approval",
            "Pending Level-3 Approval",
            "Approved",
            "Rejected",
            "Routed",
            "In Queue",
            "Assigned",
            "In Progress",
            "On Hold",
            "Paused",
            "Work Completed",
            "Completed - Awaiting IT Closure",
            "Completed",
            "Confirmed",
            "Closed",
            "Auto-Closed",
            "Cancelled",
            "Reopened",
        ],
    ),
    ("approval_level", ["L1", "L2", "L3", "NONE"]),
    ("approval_status", ["Pending", "Approved", "Rejected", "Not Required"]),
    ("approval_decision", ["Approved", "Rejected"]),
    ("progress_status", ["Not Started", "In Progress", "On Hold", "Completed"]),
    ("closing_reason", ["Resolved", "User Confirmed", "Auto-Closed", "User Cancellation"]),
    ("message_sender", ["employee", "manager", "specialist", "itadmin", "system"]),
    ("message_type", ["message", "status_update", "closing_note", "approval_note"]),
    ("sla_status", ["On Track", "At Risk", "Overdue"]),
    ("specialist_status", ["active", "inactive"]),
    (
        "leave_type",
        [
            "Earned Leave", "Sabbatical Leave", "Comp Off",
            "Paternity Leave", "Maternity Leave", "Sick Leave",
        ],
    ),
    ("leave_status", ["pending", "in_review", "approved", "rejected", "cancelled"]),
    ("half_day_session", ["first_half", "second_half"]),
    (
        "notification_type",
        [
            "leave", "ticket", "system", "announcement",
            "reminder", "celebration", "approval", "rejection",
        ],
    ),
    ("currency", ["INR", "USD"]),
    ("ctc_uom", ["Annual", "Monthly"]),
    ("holiday_type", ["National", "Regional", "Company", "Optional"]),
]

TABLES_IN_DROP_ORDER = [
    "ctc_history",
    "ctc_master",
    "announcement_comments",
    "announcements",
    "leave_requests",
    "ticket_counters",
    "ticket_approvals",
    "ticket_history",
    "ticket_messages",
    "helpdesk_tickets",
    "it_specialists",
    "subcategory_configs",
    "holidays",
    "notifications",
    "audit_trail",
    "role_assignments",
    "user_sessions",
    "employees",
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    op.execute('CREATE EXTENSION IF NOT EXISTS "pg_trgm"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code        VARCHAR(20)  NOT NULL UNIQUE,
            first_name           VARCHAR(100) NOT NULL,
            last_name            VARCHAR(100) NOT NULL,
            display_name         VARCHAR(255),
            email                VARCHAR(255) NOT NULL UNIQUE,
            phone                VARCHAR(20),
            department           VARCHAR(150),
            designation          VARCHAR(150),
            location             VARCHAR(100),
            reporting_manager_id UUID REFERENCES employees(id),
            date_of_joining      DATE NOT NULL,
            password_hash        VARCHAR(255),
            is_active            BOOLEAN DEFAULT TRUE,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_manager ON employees(reporting_manager_id)")
    op.execute("""
        CREATE INDEX idx_employees_name_trgm
            ON employees USING gin ((first_name || ' ' || last_name) gin_trgm_ops)
    """)

    # ── 2. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id        UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            token_hash         VARCHAR(512) NOT NULL,
            refresh_token_hash VARCHAR(512),
            ip_address         INET,
            user_agent         TEXT,
            expires_at         TIMESTAMPTZ NOT NULL,
            is_revoked         BOOLEAN DEFAULT FALSE,
            created_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_user_sessions_employee ON user_sessions(employee_id)")
    op.execute("CREATE INDEX idx_user_sessions_token    ON user_sessions(token_hash)")
    op.execute("CREATE INDEX idx_user_sessions_refresh  ON user_sessions(refresh_token_hash)")

    # ── 3. role_assignments ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE role_assignments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            role        user_role NOT NULL,
            assigned_by UUID REFERENCES employees(id),
            assigned_at TIMESTAMPTZ DEFAULT NOW(),
            revoked_at  TIMESTAMPTZ,
            is_active   BOOLEAN DEFAULT TRUE
        )
    """)
    op.execute("CREATE INDEX ix_role_assignments_employee_role ON role_assignments(employee_id, role)")
    op.execute("""
        CREATE UNIQUE INDEX uq_role_active
            ON role_assignments(employee_id, role)
            WHERE is_active = TRUE
    """)

    # ── 4. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id) ON DELETE SET NULL,
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            ip_address  INET,
            user_agent  TEXT,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id   ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity     ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")

    # ── 5. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            recipient_role user_role,
            type           notification_type NOT NULL DEFAULT 'system',
            title          VARCHAR(200) NOT NULL,
            message        TEXT NOT NULL,
            action_url     VARCHAR(500),
            entity_type    VARCHAR(50),
            entity_id      UUID,
            meta           JSONB,
            is_read        BOOLEAN DEFAULT FALSE,
            read_at        TIMESTAMPTZ,
            created_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_notifications_recipient_unread ON notifications(recipient_id, is_read)")

    # ── 6. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL,
            date        DATE NOT NULL,
            type        holiday_type DEFAULT 'National',
            description TEXT,
            image_url   VARCHAR(500),
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_holidays_date_name UNIQUE (date, name)
        )
    """)
    op.execute("CREATE INDEX ix_holidays_date ON holidays(date)")

    # ── 7. subcategory_configs ────────────────────────────────────────────
    op.execute("""
        CREATE TABLE subcategory_configs (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            module            ticket_module NOT NULL,
            sub_category      VARCHAR(150) NOT NULL,
            requires_approval BOOLEAN DEFAULT FALSE,
            processing_queue  VARCHAR(150) NOT NULL,
            specialist_queue  VARCHAR(150) NOT NULL,
            sort_order        INTEGER DEFAULT 999,
            is_active         BOOLEAN DEFAULT TRUE,
            approval_config   JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_subcategory_module_name UNIQUE (module, sub_category)
        )
    """)

    # ── 8. it_specialists ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE it_specialists (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL UNIQUE REFERENCES employees(id) ON DELETE CASCADE,
            name                VARCHAR(255) NOT NULL,
            email               VARCHAR(255) NOT NULL UNIQUE,
            specializations     JSONB DEFAULT '[]'::jsonb,
            team                VARCHAR(150) NOT NULL,
            designation         VARCHAR(150),
            phone               VARCHAR(20),
            status              specialist_status DEFAULT 'active',
            active_ticket_count INTEGER DEFAULT 0,
            max_capacity        INTEGER DEFAULT 5,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_specialist_count_non_negative CHECK (active_ticket_count >= 0),
            CONSTRAINT ck_specialist_capacity_positive CHECK (max_capacity >= 1)
        )
    """)

    # ── 9. helpdesk_tickets ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE helpdesk_tickets (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            ticket_number          VARCHAR(20) NOT NULL UNIQUE,
            owner_id               UUID NOT NULL REFERENCES employees(id),
            owner_name             VARCHAR(255) NOT NULL,
            owner_email            VARCHAR(255) NOT NULL,
            owner_department       VARCHAR(150),
            module                 ticket_module NOT NULL,
            sub_category           VARCHAR(150) NOT NULL,
            subject                VARCHAR(200) NOT NULL,
            description            TEXT NOT NULL,
            urgency                ticket_urgency DEFAULT 'medium',
            status                 ticket_status NOT NULL,
            attachments            JSONB DEFAULT '[]'::jsonb,
            requires_approval      BOOLEAN DEFAULT FALSE,
            current_approval_level approval_level DEFAULT 'NONE',
            approval_completed     BOOLEAN DEFAULT FALSE,
            approval_status        approval_status DEFAULT 'Pending',
            routed_to              ticket_module,
            processing_queue       VARCHAR(150),
            specialist_queue       VARCHAR(150),
            assignee_id            UUID REFERENCES employees(id),
            assignee_name          VARCHAR(255),
            assigned_by_id         UUID REFERENCES employees(id),
            assigned_by_name       VARCHAR(255),
            assigned_at            TIMESTAMPTZ,
            assignment_notes       TEXT,
            assignment_queue       VARCHAR(150),
            progress_status        progress_status DEFAULT 'Not Started',
            progress_notes         TEXT,
            progress_updated_at    TIMESTAMPTZ,
            resolution_notes       TEXT,
            resolved_by            VARCHAR(255),
            resolved_at            TIMESTAMPTZ,
            approval_deadline      TIMESTAMPTZ,
            processing_deadline    TIMESTAMPTZ NOT NULL,
            due_at                 TIMESTAMPTZ NOT NULL,
            sla_status             sla_status DEFAULT 'On Track',
            overdue_by_hours       DOUBLE PRECISION DEFAULT 0,
            first_response_at      TIMESTAMPTZ,
            closed_at              TIMESTAMPTZ,
            closed_by_id           UUID REFERENCES employees(id),
            closed_by_name         VARCHAR(255),
            closing_reason         closing_reason,
            closing_note           TEXT,
            user_confirmed_at      TIMESTAMPTZ,
            reopen_count           INTEGER DEFAULT 0,
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_helpdesk_reopen_count CHECK (reopen_count >= 0)
        )
    """)
    op.execute("CREATE INDEX ix_helpdesk_tickets_owner         ON helpdesk_tickets(owner_id)")
    op.execute("CREATE INDEX ix_helpdesk_tickets_assignee      ON helpdesk_tickets(assignee_id)")
    op.execute("CREATE INDEX ix_helpdesk_tickets_status        ON helpdesk_tickets(status)")
    op.execute("CREATE INDEX ix_helpdesk_tickets_module_status ON helpdesk_tickets(module, status)")
    op.execute("CREATE INDEX ix_helpdesk_tickets_created       ON helpdesk_tickets(created_at)")
    op.execute("""
        CREATE INDEX ix_helpdesk_tickets_subject_trgm
            ON helpdesk_tickets USING gin (subject gin_trgm_ops)
    """)

    # ── 10. ticket_messages ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE ticket_messages (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            ticket_id    UUID NOT NULL REFERENCES helpdesk_tickets(id) ON DELETE CASCADE,
            sender       message_sender NOT NULL,
            sender_id    UUID REFERENCES employees(id) ON DELETE SET NULL,
            sender_name  VARCHAR(255) NOT NULL,
            message      TEXT NOT NULL,
            message_type message_type DEFAULT 'message',
            attachments  JSONB DEFAULT '[]'::jsonb,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_ticket_messages_ticket_id ON ticket_messages(ticket_id)")

    # ── 11. ticket_history ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE ticket_history (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            ticket_id         UUID NOT NULL REFERENCES helpdesk_tickets(id) ON DELETE CASCADE,
            action            VARCHAR(50) NOT NULL,
            performed_by_id   UUID REFERENCES employees(id) ON DELETE SET NULL,
            performed_by      VARCHAR(255) NOT NULL,
            performed_by_role VARCHAR(50),
            details           TEXT,
            previous_status   ticket_status,
            new_status        ticket_status,
            created_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_ticket_history_ticket_id ON ticket_history(ticket_id)")

    # ── 12. ticket_approvals ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE ticket_approvals (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            ticket_id      UUID NOT NULL REFERENCES helpdesk_tickets(id) ON DELETE CASCADE,
            level          approval_level NOT NULL,
            approver_id    UUID NOT NULL REFERENCES employees(id),
            approver_name  VARCHAR(255) NOT NULL,
            approver_email VARCHAR(255) NOT NULL,
            decision       approval_decision NOT NULL,
            comments       TEXT,
            decided_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_ticket_approvals_level_approver UNIQUE (ticket_id, level, approver_id)
        )
    """)
    op.execute("CREATE INDEX ix_ticket_approvals_ticket_id ON ticket_approvals(ticket_id)")

    # ── 13. ticket_counters ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE ticket_counters (
            name VARCHAR(50) PRIMARY KEY,
            seq  INTEGER NOT NULL DEFAULT 0
        )
    """)

    # ── 14. leave_requests ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id),
            employee_name       VARCHAR(255) NOT NULL,
            leave_type          leave_type NOT NULL,
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            half_day_session    half_day_session,
            days                NUMERIC(5,1) NOT NULL,
            reason              TEXT NOT NULL,
            status              leave_status DEFAULT 'pending',
            manager_id          UUID REFERENCES employees(id),
            reviewed_by_id      UUID REFERENCES employees(id),
            reviewed_at         TIMESTAMPTZ,
            rejection_reason    TEXT,
            cancelled_at        TIMESTAMPTZ,
            cancellation_reason TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_requests_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_leave_requests_employee_dates ON leave_requests(employee_id, start_date)")
    op.execute("CREATE INDEX ix_leave_requests_manager_status ON leave_requests(manager_id, status)")

    # ── 15. announcements ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE announcements (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            title           VARCHAR(200) NOT NULL,
            content         TEXT NOT NULL,
            category        VARCHAR(50) DEFAULT 'General',
            priority        VARCHAR(20) DEFAULT 'Medium',
            author_id       UUID REFERENCES employees(id) ON DELETE SET NULL,
            author_name     VARCHAR(255) NOT NULL,
            is_pinned       BOOLEAN DEFAULT FALSE,
            is_published    BOOLEAN DEFAULT TRUE,
            published_at    TIMESTAMPTZ,
            expires_at      TIMESTAMPTZ,
            image_url       VARCHAR(1000),
            target_audience JSONB DEFAULT '[]'::jsonb,
            attachments     JSONB DEFAULT '[]'::jsonb,
            likes           INTEGER DEFAULT 0,
            liked_by        JSONB DEFAULT '[]'::jsonb,
            reactions       JSONB DEFAULT '[]'::jsonb,
            views           INTEGER DEFAULT 0,
            is_poll         BOOLEAN DEFAULT FALSE,
            poll_options    JSONB DEFAULT '[]'::jsonb,
            allow_multiple  BOOLEAN DEFAULT FALSE,
            is_anonymous    BOOLEAN DEFAULT FALSE,
            total_votes     INTEGER DEFAULT 0,
            poll_expires_at TIMESTAMPTZ,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_announcements_pinned_created ON announcements(is_pinned, created_at)")

    # ── 16. announcement_comments ─────────────────────────────────────────
    op.execute("""
        CREATE TABLE announcement_comments (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            announcement_id UUID NOT NULL REFERENCES announcements(id) ON DELETE CASCADE,
            author_id       UUID REFERENCES employees(id) ON DELETE SET NULL,
            author_name     VARCHAR(255) NOT NULL,
            text            TEXT NOT NULL,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_announcement_comments_announcement_id "
        "ON announcement_comments(announcement_id)"
    )

    # ── 17. ctc_master / ctc_history ──────────────────────────────────────
    op.execute("""
        CREATE TABLE ctc_master (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id            UUID NOT NULL UNIQUE REFERENCES employees(id),
            employee_code          VARCHAR(20) NOT NULL,
            employee_name          VARCHAR(255) NOT NULL,
            employee_email         VARCHAR(255) NOT NULL,
            latest_annual_ctc      NUMERIC(14,2) DEFAULT 0,
            latest_planned_ctc     NUMERIC(14,2) DEFAULT 0,
            latest_actual_currency currency DEFAULT 'INR',
            latest_actual_uom      ctc_uom DEFAULT 'Annual',
            currency               currency DEFAULT 'INR',
            uom                    ctc_uom DEFAULT 'Annual',
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_ctc_master_employee_name ON ctc_master(employee_name)")
    op.execute("CREATE INDEX ix_ctc_master_currency      ON ctc_master(currency)")
    op.execute("""
        CREATE TABLE ctc_history (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            ctc_master_id UUID NOT NULL REFERENCES ctc_master(id) ON DELETE CASCADE,
            actual_ctc    NUMERIC(14,2) NOT NULL,
            from_date     DATE NOT NULL,
            to_date       DATE NOT NULL,
            currency      currency NOT NULL,
            uom           ctc_uom NOT NULL,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_ctc_history_dates CHECK (to_date >= from_date)
        )
    """)
    op.execute("CREATE INDEX ix_ctc_history_ctc_master_id ON ctc_history(ctc_master_id)")

    # ── Seed data ─────────────────────────────────────────────────────────
    op.execute("INSERT INTO ticket_counters (name, seq) VALUES ('helpdesk_ticket', 0)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in TABLES_IN_DROP_ORDER:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
