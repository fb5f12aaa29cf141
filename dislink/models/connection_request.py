"""Connection request models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel


class ConnectionRequest(BaseModel):
    """Core connection request model, mapped 1:1 to the connection_requests table."""

    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    origin_scan_event_id: UUID | None = None
    state: Literal["pending", "accepted"] = "pending"
    created_at: datetime


class ConnectionCreatedResponse(BaseModel):
    connection_request_id: UUID
