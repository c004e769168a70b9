"""Announcement service — posts, engagement (likes, reactions, comments) and polls."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.announcements.models import Announcement, AnnouncementComment
from backend.announcements.schemas import AnnouncementCreate, AnnouncementUpdate
from backend.common.audit import create_audit_entry
from backend.common.clock import as_utc, utcnow
from backend.common.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from backend.common.pagination import PaginationMeta, PaginationParams, paginate
from backend.core_hr.models import Employee
from backend.notifications.service import notify_announcement_published

logger = logging.getLogger(__name__)


def _poll_options(texts: list[str]) -> list[dict]:
    return [
        {"id": f"opt-{i}", "text": text.strip(), "votes": 0, "voted_by": []}
        for i, text in enumerate((t for t in texts if t.strip()), start=1)
    ]


class AnnouncementService:

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def list_announcements(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        include_expired: bool = False,
        include_drafts: bool = False,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[list[Announcement], PaginationMeta]:
        """Pinned first, then newest first. Expired posts are hidden by default."""
        now = now or utcnow()
        query = select(Announcement).options(selectinload(Announcement.comments))
        if not include_expired:
            query = query.where(
                or_(Announcement.expires_at.is_(None), Announcement.expires_at > now),
            )
        if not include_drafts:
            query = query.where(Announcement.is_published.is_(True))
        if category:
            query = query.where(Announcement.category.ilike(category))
        query = query.order_by(Announcement.is_pinned.desc(), Announcement.created_at.desc())
        return await paginate(db, query, pagination)

    @staticmethod
    async def _get(db: AsyncSession, announcement_id: uuid.UUID) -> Announcement:
        result = await db.execute(
            select(Announcement)
            .options(selectinload(Announcement.comments))
            .where(Announcement.id == announcement_id)
            .execution_options(populate_existing=True)
        )
        announcement = result.scalar_one_or_none()
        if announcement is None:
            raise NotFoundException("Announcement", announcement_id)
        return announcement

    @staticmethod
    async def view(db: AsyncSession, announcement_id: uuid.UUID) -> Announcement:
        """Fetch an announcement and count the view."""
        announcement = await AnnouncementService._get(db, announcement_id)
        announcement.views = (announcement.views or 0) + 1
        await db.flush()
        return announcement

    # ── Writes (HR / super_admin) ───────────────────────────────────

    @staticmethod
    async def create(
        db: AsyncSession,
        author: Employee,
        data: AnnouncementCreate,
    ) -> Announcement:
        now = utcnow()
        announcement = Announcement(
            title=data.title,
            content=data.content,
            category=data.category,
            priority=data.priority,
            author_id=author.id,
            author_name=author.name,
            is_pinned=data.is_pinned,
            is_published=data.publish,
            published_at=now if data.publish else None,
            expires_at=data.expires_at,
            image_url=data.image_url,
            target_audience=list(data.target_audience),
            attachments=list(data.attachments),
            likes=0,
            liked_by=[],
            reactions=[],
            views=0,
            is_poll=data.is_poll,
            poll_options=_poll_options(data.poll_options) if data.is_poll else [],
            allow_multiple=data.allow_multiple,
            is_anonymous=data.is_anonymous,
            total_votes=0,
            poll_expires_at=data.poll_expires_at,
            created_at=now,
            updated_at=now,
        )
        db.add(announcement)
        await db.flush()

        await create_audit_entry(
            db, action="create", entity_type="announcement", entity_id=announcement.id,
            actor_id=author.id, new_values={"title": data.title, "is_poll": data.is_poll},
        )
        if data.publish:
            await notify_announcement_published(db, announcement)
        logger.info("Announcement %s created by %s (published=%s)", announcement.id, author.id, data.publish)
        return await AnnouncementService._get(db, announcement.id)

    @staticmethod
    async def publish(db: AsyncSession, actor: Employee, announcement_id: uuid.UUID) -> Announcement:
        announcement = await AnnouncementService._get(db, announcement_id)
        if announcement.is_published:
            raise BusinessRuleException("ALREADY_PUBLISHED", "Announcement is already published.")
        announcement.is_published = True
        announcement.published_at = utcnow()
        await db.flush()
        await notify_announcement_published(db, announcement)
        logger.info("Announcement %s published by %s", announcement.id, actor.id)
        return announcement

    @staticmethod
    async def update(
        db: AsyncSession,
        actor: Employee,
        announcement_id: uuid.UUID,
        data: AnnouncementUpdate,
    ) -> Announcement:
        announcement = await AnnouncementService._get(db, announcement_id)
        changes = data.model_dump(exclude_unset=True)
        old = {k: getattr(announcement, k) for k in changes}
        for field, value in changes.items():
            setattr(announcement, field, value)
        await db.flush()
        await create_audit_entry(
            db, action="update", entity_type="announcement", entity_id=announcement.id,
            actor_id=actor.id, old_values=old, new_values=changes,
        )
        return await AnnouncementService._get(db, announcement_id)

    @staticmethod
    async def delete(db: AsyncSession, actor: Employee, announcement_id: uuid.UUID) -> None:
        announcement = await AnnouncementService._get(db, announcement_id)
        await create_audit_entry(
            db, action="delete", entity_type="announcement", entity_id=announcement.id,
            actor_id=actor.id, old_values={"title": announcement.title},
        )
        await db.delete(announcement)
        await db.flush()

    # ── Engagement ──────────────────────────────────────────────────

    @staticmethod
    async def toggle_like(
        db: AsyncSession,
        employee: Employee,
        announcement_id: uuid.UUID,
    ) -> Announcement:
        announcement = await AnnouncementService._get(db, announcement_id)
        user = str(employee.id)
        liked_by = list(announcement.liked_by or [])
        if user in liked_by:
            liked_by.remove(user)
            announcement.likes = max(0, (announcement.likes or 0) - 1)
        else:
            liked_by.append(user)
            announcement.likes = (announcement.likes or 0) + 1
        announcement.liked_by = liked_by
        await db.flush()
        return announcement

    @staticmethod
    async def add_comment(
        db: AsyncSession,
        employee: Employee,
        announcement_id: uuid.UUID,
        text: str,
    ) -> Announcement:
        announcement = await AnnouncementService._get(db, announcement_id)
        announcement.comments.append(
            AnnouncementComment(
                author_id=employee.id,
                author_name=employee.name,
                text=text,
                created_at=utcnow(),
            )
        )
        await db.flush()
        return await AnnouncementService._get(db, announcement_id)

    @staticmethod
    async def react(
        db: AsyncSession,
        employee: Employee,
        announcement_id: uuid.UUID,
        emoji: str,
        label: str,
    ) -> Announcement:
        """Same emoji removes the reaction, a different one replaces it.

        A new reaction also counts as a like.
        """
        announcement = await AnnouncementService._get(db, announcement_id)
        user = str(employee.id)
        reactions = [dict(r) for r in (announcement.reactions or [])]
        liked_by = list(announcement.liked_by or [])
        existing = next((r for r in reactions if r.get("user_id") == user), None)
        entry = {
            "user_id": user,
            "user_name": employee.name,
            "emoji": emoji,
            "label": label,
            "timestamp": utcnow().isoformat(),
        }

        if existing is None:
            reactions.append(entry)
            announcement.likes = (announcement.likes or 0) + 1
            if user not in liked_by:
                liked_by.append(user)
        elif existing["emoji"] == emoji:
            reactions.remove(existing)
            announcement.likes = max(0, (announcement.likes or 0) - 1)
            if user in liked_by:
                liked_by.remove(user)
        else:
            reactions[reactions.index(existing)] = entry

        announcement.reactions = reactions
        announcement.liked_by = liked_by
        await db.flush()
        return announcement

    @staticmethod
    async def vote(
        db: AsyncSession,
        employee: Employee,
        announcement_id: uuid.UUID,
        option_ids: list[str],
        *,
        now: Optional[datetime] = None,
    ) -> Announcement:
        now = now or utcnow()
        announcement = await AnnouncementService._get(db, announcement_id)
        if not announcement.is_poll:
            raise BusinessRuleException("NOT_A_POLL", "This announcement is not a poll.")
        if announcement.poll_expires_at and as_utc(announcement.poll_expires_at) <= now:
            raise BusinessRuleException("POLL_CLOSED", "This poll has expired.")

        user = str(employee.id)
        options = [dict(o) for o in (announcement.poll_options or [])]
        if any(user in (o.get("voted_by") or []) for o in options):
            raise BusinessRuleException("ALREADY_VOTED", "You have already voted on this poll.")

        wanted = list(dict.fromkeys(option_ids))
        known = {o["id"] for o in options}
        unknown = [oid for oid in wanted if oid not in known]
        if unknown:
            raise ValidationException({"option_ids": [f"Unknown option(s): {', '.join(unknown)}"]})
        if len(wanted) > 1 and not announcement.allow_multiple:
            raise ValidationException({"option_ids": ["This poll allows a single answer only."]})

        for option in options:
            if option["id"] in wanted:
                option["votes"] = (option.get("votes") or 0) + 1
                option["voted_by"] = list(option.get("voted_by") or []) + [user]
        announcement.poll_options = options
        announcement.total_votes = (announcement.total_votes or 0) + 1
        await db.flush()
        return announcement
