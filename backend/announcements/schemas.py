"""Announcement Pydantic schemas."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.common.schemas import PartialUpdate


# ── Requests ────────────────────────────────────────────────────────

class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=20000)
    category: str = Field("General", max_length=50)
    priority: str = Field("Medium", max_length=20)
    is_pinned: bool = False
    expires_at: Optional[datetime] = None
    image_url: Optional[str] = Field(None, max_length=1000)
    target_audience: list[str] = []
    attachments: list[str] = []
    is_poll: bool = False
    poll_options: list[str] = Field(default_factory=list, max_length=20)
    allow_multiple: bool = False
    is_anonymous: bool = False
    poll_expires_at: Optional[datetime] = None
    publish: bool = True

    @model_validator(mode="after")
    def _poll_needs_options(self) -> "AnnouncementCreate":
        if self.is_poll and len([o for o in self.poll_options if o.strip()]) < 2:
            raise ValueError("A poll needs at least two options")
        return self


class AnnouncementUpdate(PartialUpdate):
    nullable_fields = frozenset({"expires_at", "image_url", "poll_expires_at"})

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1, max_length=20000)
    category: Optional[str] = Field(None, max_length=50)
    priority: Optional[str] = Field(None, max_length=20)
    is_pinned: Optional[bool] = None
    expires_at: Optional[datetime] = None
    image_url: Optional[str] = Field(None, max_length=1000)
    target_audience: Optional[list[str]] = None
    poll_expires_at: Optional[datetime] = None


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class ReactionRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=16)
    label: str = Field(..., min_length=1, max_length=50)


class VoteRequest(BaseModel):
    option_ids: list[str] = Field(..., min_length=1)


# ── Responses ───────────────────────────────────────────────────────

class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    author_id: Optional[uuid.UUID] = None
    author_name: str
    text: str
    created_at: datetime


class AnnouncementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    content: str
    category: str
    priority: str
    author_id: Optional[uuid.UUID] = None
    author_name: str
    is_pinned: bool
    is_published: bool
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    image_url: Optional[str] = None
    target_audience: list[str] = []
    attachments: list[str] = []
    likes: int
    liked_by: list[str] = []
    reactions: list[dict[str, Any]] = []
    views: int
    is_poll: bool
    poll_options: list[dict[str, Any]] = []
    allow_multiple: bool
    is_anonymous: bool
    total_votes: int
    poll_expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    comments: list[CommentOut] = []
