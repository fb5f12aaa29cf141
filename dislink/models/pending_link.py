"""Deferred linking models: emailed redemption codes for non-members."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PendingLink(BaseModel):
    """Core pending link model, mapped 1:1 to the pending_links table."""

    id: UUID
    email: str
    redemption_code: str
    owner_id: UUID
    code_id: UUID
    scan_event_id: UUID | None = None
    redeemed: bool = False
    created_at: datetime


class RequestLinkRequest(BaseModel):
    """Sent by an unauthenticated scanner who wants to connect later."""

    model_config = {"extra": "forbid"}

    # Checked by the linking service so a bad address maps to invalid_email
    email: str = Field(min_length=1, max_length=320)
    scan_event_id: UUID | None = None


class RequestLinkResponse(BaseModel):
    redemption_code: str


class RedeemLinkRequest(BaseModel):
    """Sent right after registration to materialize the connection."""

    model_config = {"extra": "forbid"}

    redemption_code: str = Field(min_length=1, max_length=128)


class ConnectRequest(BaseModel):
    """Sent by an authenticated scanner to connect on the spot."""

    model_config = {"extra": "forbid"}

    scan_event_id: UUID | None = None
