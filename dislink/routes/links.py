"""Deferred link redemption, called right after a scanner registers."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from dislink.auth import get_current_user_id
from dislink.middleware.rate_limit import RateLimitAction, rate_limiter
from dislink.models.connection_request import ConnectionCreatedResponse
from dislink.models.pending_link import RedeemLinkRequest
from dislink.services.linking import linking_service

router = APIRouter(prefix="/api/links", tags=["links"])


@router.post("/redeem", status_code=201)
async def redeem_link(
    req: RedeemLinkRequest,
    user_id: UUID = Depends(get_current_user_id),
) -> ConnectionCreatedResponse:
    """
    Redeem an emailed code into a pending connection request.

    Rate limited per user (prevents redemption code guessing).
    """
    rate_limiter.enforce(RateLimitAction.REDEEM_LINK, str(user_id))
    connection = await linking_service.redeem(req.redemption_code, user_id)
    return ConnectionCreatedResponse(connection_request_id=connection.id)
