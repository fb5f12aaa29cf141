"""
Needs and visibility-scoped replies.

A private need multiplexes one 1:1 thread per replier over a single flat
reply list. Each row is tagged with reply_to_user_id, and visibility is a
read-time predicate:

    viewer is the owner        -> every reply
    need is open               -> every reply
    otherwise                  -> replies the viewer wrote, or that are
                                  addressed to the viewer

Writes keep the tags consistent: a non-owner's reply to a private need is
always addressed to the owner, and the owner must name the replier whose
thread they are answering.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID

from dislink import config
from dislink.errors import Forbidden, InvalidInput, NotFound
from dislink.models.need import Need, NeedReply, Visibility
from dislink.repos.need_repo import NeedRepo

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def can_view_reply(need: Need, reply: NeedReply, viewer_id: UUID) -> bool:
    """Whether `viewer_id` may read `reply` on `need`."""
    if viewer_id == need.owner_id:
        return True
    if need.visibility == "open":
        return True
    return reply.author_id == viewer_id or reply.reply_to_user_id == viewer_id


def visible_replies(need: Need, replies: list[NeedReply], viewer_id: UUID) -> list[NeedReply]:
    """Filter a need's replies down to what `viewer_id` may read, keeping order."""
    return [r for r in replies if can_view_reply(need, r, viewer_id)]


def _normalize_tags(tags: list[str]) -> list[str]:
    seen: list[str] = []
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


class NeedService:
    def __init__(self, needs: NeedRepo | None = None, clock: Callable[[], datetime] = _utcnow) -> None:
        self._needs = needs or NeedRepo()
        self._clock = clock

    async def create_need(
        self,
        owner_id: UUID,
        message: str,
        tags: list[str] | None = None,
        visibility: Visibility = "open",
        duration_hours: int = 24,
    ) -> Need:
        """
        Post a need that expires after one of the allowed durations.

        Raises:
            InvalidInput: Empty or oversized message, bad visibility, or a
                duration outside NEED_DURATIONS_HOURS
        """
        if duration_hours not in config.settings.NEED_DURATIONS_HOURS:
            allowed = " or ".join(str(h) for h in config.settings.NEED_DURATIONS_HOURS)
            raise InvalidInput(f"Duration must be {allowed} hours.")
        if visibility not in ("open", "private"):
            raise InvalidInput("Visibility must be open or private.")
        text = message.strip()
        if not text or len(text) > config.settings.NEED_MESSAGE_MAX_LENGTH:
            raise InvalidInput(f"Message must be 1-{config.settings.NEED_MESSAGE_MAX_LENGTH} characters.")

        now = self._clock()
        need = await self._needs.create(
            owner_id=owner_id,
            visibility=visibility,
            message=text,
            tags=_normalize_tags(tags or []),
            created_at=now,
            expires_at=now + timedelta(hours=duration_hours),
        )
        logger.info("needs: owner=%s posted %s need %s", owner_id, visibility, need.id)
        return need

    async def get_need(self, need_id: UUID) -> Need:
        """
        Fetch a need, including expired or satisfied ones.

        Raises:
            NotFound: Unknown need
        """
        need = await self._needs.get(need_id)
        if need is None:
            raise NotFound("Need not found.")
        return need

    async def list_active_needs(self) -> list[Need]:
        """The general listing: unsatisfied and unexpired, newest first."""
        return await self._needs.list_active(self._clock())

    async def list_archived_needs(self, owner_id: UUID) -> list[Need]:
        """An owner's satisfied or expired needs, newest first."""
        now = self._clock()
        return [n for n in await self._needs.list_for_owner(owner_id) if not n.is_active(now)]

    async def reply(
        self,
        need_id: UUID,
        author_id: UUID,
        message: str,
        reply_to_user_id: UUID | None = None,
    ) -> NeedReply:
        """
        Append a reply to a need.

        On a private need a non-owner always addresses the owner, whatever
        they passed. The owner must say which replier they are answering.

        Raises:
            NotFound: Unknown need
            InvalidInput: Empty message, an owner reply to a private need
                without a reply_to_user_id, or an owner reply addressed to
                someone who has not replied
        """
        need = await self.get_need(need_id)
        text = message.strip()
        if not text or len(text) > config.settings.NEED_MESSAGE_MAX_LENGTH:
            raise InvalidInput(f"Message must be 1-{config.settings.NEED_MESSAGE_MAX_LENGTH} characters.")

        if author_id != need.owner_id:
            target = need.owner_id if need.visibility == "private" else None
        else:
            if need.visibility == "private" and reply_to_user_id is None:
                raise InvalidInput("Choose which reply you are answering.")
            if reply_to_user_id == need.owner_id:
                raise InvalidInput("You cannot address a reply to yourself.")
            if reply_to_user_id is not None and not await self._needs.has_replied(need.id, reply_to_user_id):
                raise InvalidInput("You can only answer someone who has replied to this need.")
            target = reply_to_user_id

        return await self._needs.add_reply(need.id, author_id, text, target)

    async def list_replies(self, need_id: UUID, viewer_id: UUID) -> list[NeedReply]:
        """
        Replies visible to `viewer_id`, oldest first.

        Raises:
            NotFound: Unknown need
        """
        need = await self.get_need(need_id)
        replies = await self._needs.list_replies(need.id)
        return visible_replies(need, replies, viewer_id)

    async def mark_satisfied(self, need_id: UUID, caller_id: UUID) -> Need:
        """
        Mark a need satisfied. Owner only, one-way, idempotent.

        Raises:
            NotFound: Unknown need
            Forbidden: Caller is not the owner
        """
        need = await self.get_need(need_id)
        if need.owner_id != caller_id:
            raise Forbidden("Only the owner can mark this need as satisfied.")
        if await self._needs.mark_satisfied(need.id):
            logger.info("needs: need %s satisfied", need.id)
        return need.model_copy(update={"is_satisfied": True})


need_service = NeedService()
