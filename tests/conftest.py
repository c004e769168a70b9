"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (auth, helpdesk, approvals, leave, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import hashlib
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Iterable

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from backend.common.constants import UserRole
from backend.config import settings
from backend.database import Base, get_db
from backend.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import backend.announcements.models  # noqa: F401
import backend.auth.models  # noqa: F401
import backend.common.audit  # noqa: F401
import backend.core_hr.models  # noqa: F401
import backend.ctc.models  # noqa: F401
import backend.helpdesk.models  # noqa: F401
import backend.holidays.models  # noqa: F401
import backend.leave.models  # noqa: F401
import backend.notifications.models  # noqa: F401
import backend.projects.models  # noqa: F401
import backend.specialists.models  # noqa: F401
import backend.subcategories.models  # noqa: F401
import backend.timesheets.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from backend.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


@pytest.fixture
def session_factory():
    """Sessionmaker on the test engine, for reads outside the request's session."""
    return TestSessionFactory


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(
    employee_id: uuid.UUID,
    expired: bool = False,
) -> str:
    """Generate a JWT refresh token for testing (with unique jti)."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(days=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(days=7)
    payload = {
        "sub": str(employee_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


async def auth_headers_for(
    db: AsyncSession,
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
) -> dict[str, str]:
    """Persist a live session for *employee_id* and return Bearer headers."""
    from backend.auth.models import UserSession

    token = create_access_token(employee_id, role)
    db.add(
        UserSession(
            id=uuid.uuid4(),
            employee_id=employee_id,
            token_hash=hashlib.sha256(token.encode()).hexdigest(),
            expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
            is_revoked=False,
            created_at=datetime.now(timezone.utc),
        )
    )
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    email: str | None = None,
    first_name: str = "Test",
    last_name: str = "User",
    department: str | None = "Engineering",
    reporting_manager_id: uuid.UUID | None = None,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"OP-{code}",
        first_name=first_name,
        last_name=last_name,
        display_name=f"{first_name} {last_name}",
        email=email or f"{first_name}.{last_name}.{code}@example.com".lower(),
        department=department,
        designation="Engineer",
        location="Mumbai",
        reporting_manager_id=reporting_manager_id,
        date_of_joining=date(2024, 1, 15),
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def create_employee(
    db: AsyncSession,
    *,
    roles: Iterable[UserRole] = (),
    password: str | None = None,
    **fields,
) -> dict:
    """Insert an employee plus active role assignments; return its data dict."""
    from backend.auth.models import RoleAssignment
    from backend.auth.service import hash_password
    from backend.core_hr.models import Employee

    data = _make_employee(**fields)
    db.add(Employee(**data, password_hash=hash_password(password) if password else None))
    await db.flush()
    for role in roles:
        db.add(
            RoleAssignment(
                id=uuid.uuid4(),
                employee_id=data["id"],
                role=role,
                assigned_at=datetime.now(timezone.utc),
                is_active=True,
            )
        )
    await db.commit()
    return data


@pytest.fixture
def make_user(db):
    """Factory: ``await make_user(UserRole.it_admin)`` → employee dict with ``headers``."""

    async def _make(
        role: UserRole = UserRole.employee,
        *,
        extra_roles: Iterable[UserRole] = (),
        **fields,
    ) -> dict:
        data = await create_employee(db, roles={role, *extra_roles}, **fields)
        data["headers"] = await auth_headers_for(db, data["id"], role)
        return data

    return _make


async def make_actor(db: AsyncSession, employee_id: uuid.UUID, *roles: UserRole):
    """Build a service-layer Actor for *employee_id* holding *roles*."""
    from backend.auth.dependencies import Actor, expand_roles
    from backend.core_hr.models import Employee

    employee = await db.get(Employee, employee_id)
    return Actor(
        employee=employee,
        roles=frozenset(expand_roles(set(roles) | {UserRole.employee})),
    )


@pytest.fixture
async def test_employee(db) -> dict:
    """Insert an active employee with a password."""
    return await create_employee(
        db,
        roles=[UserRole.employee],
        password="correct-horse-battery",
        email="test.user@example.com",
    )


@pytest.fixture
async def auth_headers(db, test_employee) -> dict[str, str]:
    """Return Bearer auth headers with a valid session persisted in the DB."""
    return await auth_headers_for(db, test_employee["id"])


# ── Helpdesk fixtures ───────────────────────────────────────────────

@pytest.fixture
async def it_subcategory(db):
    """IT/Hardware config without approval."""
    from backend.subcategories.models import SubCategoryConfig
    from backend.common.constants import TicketModule
    from backend.subcategories.models import default_approval_config

    config = SubCategoryConfig(
        id=uuid.uuid4(),
        module=TicketModule.it,
        sub_category="Hardware",
        requires_approval=False,
        processing_queue="IT Support",
        specialist_queue="Hardware Team",
        order=1,
        is_active=True,
        approval_config=default_approval_config(),
    )
    db.add(config)
    await db.commit()
    return config


@pytest.fixture
async def approval_subcategory(db):
    """IT/Software Licence config with L1 and L2 enabled."""
    from backend.common.constants import TicketModule
    from backend.subcategories.models import SubCategoryConfig

    config = SubCategoryConfig(
        id=uuid.uuid4(),
        module=TicketModule.it,
        sub_category="Software Licence",
        requires_approval=True,
        processing_queue="IT Support",
        specialist_queue="Software Team",
        order=2,
        is_active=True,
        approval_config={
            "L1": {"enabled": True, "approvers": []},
            "L2": {"enabled": True, "approvers": []},
            "L3": {"enabled": False, "approvers": []},
        },
    )
    db.add(config)
    await db.commit()
    return config
