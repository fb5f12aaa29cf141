"""Need routes: post, browse, reply, satisfy."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends

from dislink.auth import get_current_user_id
from dislink.models.need import (
    CreateNeedRequest,
    CreateReplyRequest,
    NeedReply,
    NeedResponse,
    ReplyCreatedResponse,
)
from dislink.services.needs import need_service

router = APIRouter(prefix="/api/needs", tags=["needs"])


def _now() -> datetime:
    return datetime.now(UTC)


@router.post("", status_code=201)
async def create_need(req: CreateNeedRequest, user_id: UUID = Depends(get_current_user_id)) -> NeedResponse:
    need = await need_service.create_need(
        user_id,
        req.message,
        tags=req.tags,
        visibility=req.visibility,
        duration_hours=req.duration_hours,
    )
    return NeedResponse.from_model(need, _now())


@router.get("", status_code=200)
async def list_needs(user_id: UUID = Depends(get_current_user_id)) -> list[NeedResponse]:
    """Active needs from everyone, newest first."""
    now = _now()
    return [NeedResponse.from_model(n, now) for n in await need_service.list_active_needs()]


# Registered before /{need_id} so "archived" is not parsed as an id
@router.get("/archived", status_code=200)
async def list_archived(user_id: UUID = Depends(get_current_user_id)) -> list[NeedResponse]:
    """The caller's satisfied or expired needs."""
    now = _now()
    return [NeedResponse.from_model(n, now) for n in await need_service.list_archived_needs(user_id)]


@router.get("/{need_id}", status_code=200)
async def get_need(need_id: UUID, user_id: UUID = Depends(get_current_user_id)) -> NeedResponse:
    need = await need_service.get_need(need_id)
    return NeedResponse.from_model(need, _now())


@router.post("/{need_id}/replies", status_code=201)
async def create_reply(
    need_id: UUID,
    req: CreateReplyRequest,
    user_id: UUID = Depends(get_current_user_id),
) -> ReplyCreatedResponse:
    reply = await need_service.reply(need_id, user_id, req.message, reply_to_user_id=req.reply_to_user_id)
    return ReplyCreatedResponse(reply_id=reply.id)


@router.get("/{need_id}/replies", status_code=200)
async def list_replies(need_id: UUID, user_id: UUID = Depends(get_current_user_id)) -> list[NeedReply]:
    """Replies the caller may see, oldest first."""
    return await need_service.list_replies(need_id, user_id)


@router.post("/{need_id}/satisfy", status_code=200)
async def satisfy_need(need_id: UUID, user_id: UUID = Depends(get_current_user_id)) -> NeedResponse:
    need = await need_service.mark_satisfied(need_id, user_id)
    return NeedResponse.from_model(need, _now())
