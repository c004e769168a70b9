"""Announcement endpoints — feed, CRUD, likes, comments, reactions and polls."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.announcements.schemas import (
    AnnouncementCreate,
    AnnouncementOut,
    AnnouncementUpdate,
    CommentCreate,
    ReactionRequest,
    VoteRequest,
)
from backend.announcements.service import AnnouncementService
from backend.auth.dependencies import get_current_user, has_any_role, require_permission
from backend.common.constants import UserRole
from backend.common.pagination import PaginationParams
from backend.core_hr.models import Employee
from backend.database import get_db

router = APIRouter(prefix="", tags=["announcements"])


def _out(announcement) -> dict:
    data = AnnouncementOut.model_validate(announcement).model_dump(mode="json")
    if data["is_anonymous"]:
        for option in data["poll_options"]:
            option["voted_by"] = []
    return data


# ── Feed ────────────────────────────────────────────────────────────

@router.get("")
async def list_announcements(
    request: Request,
    include_expired: bool = Query(False),
    include_drafts: bool = Query(False),
    category: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pinned first, newest first; drafts only for HR / super_admin."""
    can_manage = has_any_role(request, UserRole.hr, UserRole.super_admin)
    rows, meta = await AnnouncementService.list_announcements(
        db,
        pagination,
        include_expired=include_expired,
        include_drafts=include_drafts and can_manage,
        category=category,
    )
    return {"data": [_out(a) for a in rows], "meta": meta.model_dump()}


@router.get("/{announcement_id}")
async def get_announcement(
    announcement_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.view(db, announcement_id)
    await db.commit()
    return {"data": _out(announcement)}


# ── Management ──────────────────────────────────────────────────────

@router.post("", status_code=201)
async def create_announcement(
    body: AnnouncementCreate,
    author: Employee = Depends(require_permission("announcement:manage")),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.create(db, author, body)
    await db.commit()
    return {"message": "Announcement created", "data": _out(announcement)}


@router.post("/{announcement_id}/publish")
async def publish_announcement(
    announcement_id: uuid.UUID,
    actor: Employee = Depends(require_permission("announcement:manage")),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.publish(db, actor, announcement_id)
    await db.commit()
    return {"message": "Announcement published", "data": _out(announcement)}


@router.put("/{announcement_id}")
async def update_announcement(
    announcement_id: uuid.UUID,
    body: AnnouncementUpdate,
    actor: Employee = Depends(require_permission("announcement:manage")),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.update(db, actor, announcement_id, body)
    await db.commit()
    return {"message": "Announcement updated", "data": _out(announcement)}


@router.delete("/{announcement_id}", status_code=204)
async def delete_announcement(
    announcement_id: uuid.UUID,
    actor: Employee = Depends(require_permission("announcement:manage")),
    db: AsyncSession = Depends(get_db),
):
    await AnnouncementService.delete(db, actor, announcement_id)
    await db.commit()


# ── Engagement ──────────────────────────────────────────────────────

@router.post("/{announcement_id}/like")
async def toggle_like(
    announcement_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.toggle_like(db, employee, announcement_id)
    await db.commit()
    return {"data": _out(announcement)}


@router.post("/{announcement_id}/comments", status_code=201)
async def add_comment(
    announcement_id: uuid.UUID,
    body: CommentCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.add_comment(db, employee, announcement_id, body.text)
    await db.commit()
    return {"message": "Comment added", "data": _out(announcement)}


@router.post("/{announcement_id}/reaction")
async def react(
    announcement_id: uuid.UUID,
    body: ReactionRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.react(
        db, employee, announcement_id, body.emoji, body.label,
    )
    await db.commit()
    return {"data": _out(announcement)}


@router.post("/{announcement_id}/vote")
async def vote(
    announcement_id: uuid.UUID,
    body: VoteRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    announcement = await AnnouncementService.vote(db, employee, announcement_id, body.option_ids)
    await db.commit()
    return {"message": "Vote recorded", "data": _out(announcement)}
