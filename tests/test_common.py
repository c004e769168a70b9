"""Tests for common utilities — filters, search, pagination, clock helpers
and the RFC 7807 error envelope."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.common.clock import as_utc, hours_between
from backend.common.filters import _get_column, apply_filters, apply_search, apply_sorting
from backend.common.pagination import PaginationParams, build_meta, paginate
from backend.core_hr.models import Employee
from tests.conftest import create_employee


async def _names(db: AsyncSession, query) -> list[str]:
    return [e.first_name for e in (await db.execute(query)).scalars().all()]


# ═════════════════════════════════════════════════════════════════════
# FILTER TESTS
# ═════════════════════════════════════════════════════════════════════


class TestApplyFilters:
    async def test_equality_and_none_skipped(self, db: AsyncSession):
        await create_employee(db, first_name="Asha", department="Finance")
        await create_employee(db, first_name="Bala", department="Engineering")

        query = apply_filters(select(Employee), Employee, {"department": "Finance", "location": None})
        assert await _names(db, query) == ["Asha"]

    async def test_ilike_and_in(self, db: AsyncSession):
        await create_employee(db, first_name="Chitra", department="Finance")
        await create_employee(db, first_name="Deepak", department="Engineering")
        await create_employee(db, first_name="Esha", department="Sales")

        query = apply_filters(select(Employee), Employee, {"first_name__ilike": "SHA"})
        assert sorted(await _names(db, query)) == ["Esha"]

        query = apply_filters(
            select(Employee), Employee, {"department__in": ["Finance", "Sales"]},
        )
        assert sorted(await _names(db, query)) == ["Chitra", "Esha"]

    async def test_unknown_column_ignored(self, db: AsyncSession):
        await create_employee(db, first_name="Farah")
        query = apply_filters(select(Employee), Employee, {"no_such_column": "x"})
        assert await _names(db, query) == ["Farah"]


class TestApplySearch:
    async def test_matches_any_column(self, db: AsyncSession):
        await create_employee(db, first_name="Gita", last_name="Menon")
        await create_employee(db, first_name="Hari", last_name="Gupta")

        query = apply_search(select(Employee), Employee, "menon", ["first_name", "last_name"])
        assert await _names(db, query) == ["Gita"]

    async def test_blank_search_is_noop(self, db: AsyncSession):
        await create_employee(db, first_name="Indu")
        query = apply_search(select(Employee), Employee, "   ", ["first_name"])
        assert await _names(db, query) == ["Indu"]


class TestApplySorting:
    async def test_descending(self, db: AsyncSession):
        for name in ("Jaya", "Kabir", "Lata"):
            await create_employee(db, first_name=name)
        query = apply_sorting(select(Employee), Employee, "-first_name")
        assert await _names(db, query) == ["Lata", "Kabir", "Jaya"]

    async def test_unknown_sort_falls_back_to_default(self, db: AsyncSession):
        for name in ("Mohan", "Lalit"):
            await create_employee(db, first_name=name)
        query = apply_sorting(select(Employee), Employee, "bogus", default="first_name")
        assert await _names(db, query) == ["Lalit", "Mohan"]


class TestGetColumn:
    def test_mapped_and_missing(self):
        assert _get_column(Employee, "email") is not None
        assert _get_column(Employee, "nonexistent") is None
        assert _get_column(Employee, "name") is None  # property, not a column


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPagination:
    def test_build_meta(self):
        meta = build_meta(total=25, page=2, page_size=10)
        assert meta.total_pages == 3
        assert meta.has_next is True
        assert meta.has_prev is True
        assert build_meta(total=0, page=1, page_size=10).total_pages == 0

    async def test_paginate_with_sort(self, db: AsyncSession):
        for i in range(5):
            await create_employee(db, first_name=f"P{i}")

        params = PaginationParams(page=1, page_size=3, sort="-first_name")
        rows, meta = await paginate(db, select(Employee), params, model=Employee)
        assert [e.first_name for e in rows] == ["P4", "P3", "P2"]
        assert meta.total == 5
        assert meta.has_next is True

    async def test_paginate_page_2(self, db: AsyncSession):
        for i in range(5):
            await create_employee(db, first_name=f"Q{i}")

        params = PaginationParams(page=2, page_size=3, sort=None)
        rows, meta = await paginate(
            db, select(Employee), params, model=Employee, default_sort="first_name",
        )
        assert [e.first_name for e in rows] == ["Q3", "Q4"]
        assert meta.has_prev is True
        assert meta.has_next is False

    async def test_paginate_empty_result(self, db: AsyncSession):
        query = select(Employee).where(Employee.first_name == "ZZZ_NONEXISTENT")
        rows, meta = await paginate(db, query, PaginationParams(page=1, page_size=10, sort=None))
        assert rows == []
        assert meta.total == 0
        assert meta.total_pages == 0


# ═════════════════════════════════════════════════════════════════════
# CLOCK + ERROR ENVELOPE
# ═════════════════════════════════════════════════════════════════════


def test_as_utc_handles_naive_and_offset_values():
    naive = datetime(2026, 3, 2, 9, 0)
    assert as_utc(naive) == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    ist = datetime(2026, 3, 2, 14, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    assert as_utc(ist) == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None


def test_hours_between_is_signed():
    start = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    assert hours_between(start, start + timedelta(minutes=90)) == 1.5
    assert hours_between(start + timedelta(hours=2), start) == -2.0


async def test_request_validation_uses_problem_details(client, make_user):
    employee = await make_user()
    resp = await client.post("/api/v1/helpdesk", json={}, headers=employee["headers"])
    assert resp.status_code == 422
    body = resp.json()
    assert body["status"] == 422
    assert body["type"].endswith("/validation-error")
    assert "subject" in body["errors"]


async def test_not_found_uses_problem_details(client, make_user):
    employee = await make_user()
    resp = await client.get(
        "/api/v1/holidays/00000000-0000-0000-0000-000000000000", headers=employee["headers"],
    )
    assert resp.status_code == 404
    body = resp.json()
    assert body["status"] == 404
    assert "title" in body and "detail" in body


async def test_health_check(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["database"] == "ok"
