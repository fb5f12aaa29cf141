"""Repository for deferred-linking (pending link) operations."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime
from uuid import UUID, uuid4

from dislink.models.pending_link import PendingLink
from dislink.store import PENDING_LINKS, Row, get_store


def _generate_redemption_code() -> str:
    """Generate a 32-char URL-safe redemption code."""
    return secrets.token_urlsafe(24)


def _row_to_pending_link(row: Row) -> PendingLink:
    """Convert a store row to a PendingLink model."""
    return PendingLink(
        id=row["id"],
        email=row["email"],
        redemption_code=row["redemption_code"],
        owner_id=row["owner_id"],
        code_id=row["code_id"],
        scan_event_id=row["scan_event_id"],
        redeemed=row["redeemed"],
        created_at=row["created_at"],
    )


class PendingLinkRepo:
    """All pending link storage operations."""

    async def get_outstanding(self, email: str, owner_id: UUID) -> PendingLink | None:
        """
        Get the unredeemed link for an (email, owner) pair, if any.

        Args:
            email: Normalized (lowercase) email
            owner_id: Profile owner UUID

        Returns:
            PendingLink if one is outstanding, None otherwise
        """
        rows = await get_store().select(
            PENDING_LINKS,
            where={"email": email, "owner_id": owner_id, "redeemed": False},
        )
        return _row_to_pending_link(rows[0]) if rows else None

    async def create(
        self,
        email: str,
        owner_id: UUID,
        code_id: UUID,
        scan_event_id: UUID | None,
    ) -> PendingLink:
        """
        Store a new outstanding link.

        Raises:
            DuplicateKey: If an outstanding link already exists for the
                (email, owner) pair. Callers re-read and reissue.
        """
        row = await get_store().put(
            PENDING_LINKS,
            {
                "id": uuid4(),
                "email": email,
                "redemption_code": _generate_redemption_code(),
                "owner_id": owner_id,
                "code_id": code_id,
                "scan_event_id": scan_event_id,
                "redeemed": False,
                "created_at": datetime.now(UTC),
            },
        )
        return _row_to_pending_link(row)

    async def get_by_redemption_code(self, redemption_code: str) -> PendingLink | None:
        row = await get_store().get(PENDING_LINKS, redemption_code, column="redemption_code")
        return _row_to_pending_link(row) if row else None
