"""Announcement ORM models: posts (with likes, reactions and polls) and comments.

Likes, reactions and poll options are JSONB documents on the post. Always
assign a new list when changing them; in-place mutation is not tracked.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.common.clock import utcnow
from backend.database import Base


class Announcement(Base):
    __tablename__ = "announcements"
    __table_args__ = (
        sa.Index("ix_announcements_pinned_created", "is_pinned", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    content: Mapped[str] = mapped_column(sa.Text, nullable=False)
    category: Mapped[str] = mapped_column(sa.String(50), default="General")
    priority: Mapped[str] = mapped_column(sa.String(20), default="Medium")
    author_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    author_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    is_pinned: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_published: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    expires_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    image_url: Mapped[Optional[str]] = mapped_column(sa.String(1000))
    target_audience: Mapped[list] = mapped_column(JSONB, default=list)
    attachments: Mapped[list] = mapped_column(JSONB, default=list)

    # ── Engagement ──────────────────────────────────────────────────
    likes: Mapped[int] = mapped_column(sa.Integer, default=0)
    liked_by: Mapped[list] = mapped_column(JSONB, default=list)
    reactions: Mapped[list] = mapped_column(JSONB, default=list)
    views: Mapped[int] = mapped_column(sa.Integer, default=0)

    # ── Poll ────────────────────────────────────────────────────────
    is_poll: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    poll_options: Mapped[list] = mapped_column(JSONB, default=list)
    allow_multiple: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_anonymous: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    total_votes: Mapped[int] = mapped_column(sa.Integer, default=0)
    poll_expires_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    comments: Mapped[list[AnnouncementComment]] = relationship(
        back_populates="announcement", cascade="all, delete-orphan",
        order_by="AnnouncementComment.created_at",
    )


class AnnouncementComment(Base):
    __tablename__ = "announcement_comments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    announcement_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("announcements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    author_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    text: Mapped[str] = mapped_column(sa.Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utcnow)

    announcement: Mapped[Announcement] = relationship(back_populates="comments")
