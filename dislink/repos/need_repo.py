"""Repository for needs and their replies."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from dislink.models.need import Need, NeedReply, Visibility
from dislink.store import NEED_REPLIES, NEEDS, Row, get_store


def _row_to_need(row: Row) -> Need:
    """Convert a store row to a Need model."""
    return Need(
        id=row["id"],
        owner_id=row["owner_id"],
        visibility=row["visibility"],
        message=row["message"],
        tags=list(row["tags"] or []),
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        is_satisfied=row["is_satisfied"],
    )


def _row_to_reply(row: Row) -> NeedReply:
    """Convert a store row to a NeedReply model."""
    return NeedReply(
        id=row["id"],
        need_id=row["need_id"],
        author_id=row["author_id"],
        reply_to_user_id=row["reply_to_user_id"],
        message=row["message"],
        created_at=row["created_at"],
    )


class NeedRepo:
    """All need and reply storage operations."""

    async def create(
        self,
        owner_id: UUID,
        visibility: Visibility,
        message: str,
        tags: list[str],
        created_at: datetime,
        expires_at: datetime,
    ) -> Need:
        """
        Store a new need.

        Args:
            owner_id: Creator and sole owner
            visibility: open or private, fixed for the need's lifetime
            message: Need text
            tags: Normalized tags
            created_at: Creation time
            expires_at: created_at plus one of the allowed durations

        Returns:
            Newly created Need
        """
        row = await get_store().put(
            NEEDS,
            {
                "id": uuid4(),
                "owner_id": owner_id,
                "visibility": visibility,
                "message": message,
                "tags": tags,
                "created_at": created_at,
                "expires_at": expires_at,
                "is_satisfied": False,
            },
        )
        return _row_to_need(row)

    async def get(self, need_id: UUID) -> Need | None:
        row = await get_store().get(NEEDS, need_id)
        return _row_to_need(row) if row else None

    async def list_active(self, now: datetime) -> list[Need]:
        """Unsatisfied, unexpired needs, newest first."""
        rows = await get_store().select(
            NEEDS,
            where={"is_satisfied": False},
            compare=[("expires_at", ">", now)],
            descending=True,
        )
        return [_row_to_need(r) for r in rows]

    async def list_for_owner(self, owner_id: UUID) -> list[Need]:
        """Every need an owner has posted, newest first."""
        rows = await get_store().select(NEEDS, where={"owner_id": owner_id}, descending=True)
        return [_row_to_need(r) for r in rows]

    async def mark_satisfied(self, need_id: UUID) -> bool:
        """
        Set is_satisfied. One-way.

        Returns:
            True if this call flipped the flag, False if it was already set
        """
        row = await get_store().conditional_update(
            NEEDS,
            need_id,
            expected={"is_satisfied": False},
            changes={"is_satisfied": True},
        )
        return row is not None

    async def add_reply(
        self,
        need_id: UUID,
        author_id: UUID,
        message: str,
        reply_to_user_id: UUID | None,
    ) -> NeedReply:
        """Append a reply. Replies are never edited."""
        row = await get_store().put(
            NEED_REPLIES,
            {
                "id": uuid4(),
                "need_id": need_id,
                "author_id": author_id,
                "reply_to_user_id": reply_to_user_id,
                "message": message,
                "created_at": datetime.now(UTC),
            },
        )
        return _row_to_reply(row)

    async def has_replied(self, need_id: UUID, author_id: UUID) -> bool:
        """Whether `author_id` has written at least one reply to the need."""
        rows = await get_store().select(NEED_REPLIES, where={"need_id": need_id, "author_id": author_id})
        return bool(rows)

    async def list_replies(self, need_id: UUID) -> list[NeedReply]:
        """Every reply to a need, oldest first. Unfiltered; callers apply visibility."""
        rows = await get_store().select(NEED_REPLIES, where={"need_id": need_id})
        return [_row_to_reply(r) for r in rows]
