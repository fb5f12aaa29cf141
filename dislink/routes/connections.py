"""Connection request routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from dislink.auth import get_current_user_id
from dislink.models.connection_request import ConnectionRequest
from dislink.services.linking import linking_service

router = APIRouter(prefix="/api/connections", tags=["connections"])


@router.get("/incoming", status_code=200)
async def list_incoming(user_id: UUID = Depends(get_current_user_id)) -> list[ConnectionRequest]:
    """Requests addressed to the caller, newest first."""
    return await linking_service.list_incoming(user_id)


@router.post("/{request_id}/accept", status_code=200)
async def accept_request(request_id: UUID, user_id: UUID = Depends(get_current_user_id)) -> ConnectionRequest:
    """Accept a pending request addressed to the caller."""
    return await linking_service.accept(request_id, user_id)


@router.get("/outgoing", status_code=200)
async def list_outgoing(user_id: UUID = Depends(get_current_user_id)) -> list[ConnectionRequest]:
    """Requests the caller has sent, newest first."""
    return await linking_service.list_outgoing(user_id)
