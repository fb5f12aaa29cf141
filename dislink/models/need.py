"""Need models: short-lived posts and their visibility-scoped replies."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

Visibility = Literal["open", "private"]


class Need(BaseModel):
    """Core need model, mapped 1:1 to the needs table."""

    id: UUID
    owner_id: UUID
    visibility: Visibility
    message: str
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    expires_at: datetime
    is_satisfied: bool = False

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_active(self, now: datetime) -> bool:
        """Shown in the general listing: neither satisfied nor expired."""
        return not self.is_satisfied and not self.is_expired(now)


class NeedReply(BaseModel):
    """Core reply model, mapped 1:1 to the need_replies table. Append-only."""

    id: UUID
    need_id: UUID
    author_id: UUID
    reply_to_user_id: UUID | None = None
    message: str
    created_at: datetime


class CreateNeedRequest(BaseModel):
    """What the client sends to POST /api/needs."""

    model_config = {"extra": "forbid"}

    message: str = Field(min_length=1, max_length=500)
    tags: list[str] = Field(default_factory=list, max_length=10)
    visibility: Visibility = "open"
    duration_hours: int = 24


class CreateReplyRequest(BaseModel):
    """What the client sends to POST /api/needs/{id}/replies."""

    model_config = {"extra": "forbid"}

    message: str = Field(min_length=1, max_length=500)
    # Only meaningful when the need's owner answers a specific replier
    reply_to_user_id: UUID | None = None


class NeedResponse(BaseModel):
    id: UUID
    owner_id: UUID
    visibility: Visibility
    message: str
    tags: list[str]
    created_at: datetime
    expires_at: datetime
    is_satisfied: bool
    is_expired: bool

    @classmethod
    def from_model(cls, need: Need, now: datetime) -> NeedResponse:
        return cls(
            id=need.id,
            owner_id=need.owner_id,
            visibility=need.visibility,
            message=need.message,
            tags=need.tags,
            created_at=need.created_at,
            expires_at=need.expires_at,
            is_satisfied=need.is_satisfied,
            is_expired=need.is_expired(now),
        )


class ReplyCreatedResponse(BaseModel):
    reply_id: UUID
