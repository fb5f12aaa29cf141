"""Repository for connection requests."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from dislink.models.connection_request import ConnectionRequest
from dislink.store import CONNECTION_REQUESTS, PENDING_LINKS, Row, get_store


def _row_to_connection_request(row: Row) -> ConnectionRequest:
    """Convert a store row to a ConnectionRequest model."""
    return ConnectionRequest(
        id=row["id"],
        from_user_id=row["from_user_id"],
        to_user_id=row["to_user_id"],
        origin_scan_event_id=row["origin_scan_event_id"],
        state=row["state"],
        created_at=row["created_at"],
    )


def _pending_request_row(from_user_id: UUID, to_user_id: UUID, origin_scan_event_id: UUID | None) -> Row:
    return {
        "id": uuid4(),
        "from_user_id": from_user_id,
        "to_user_id": to_user_id,
        "origin_scan_event_id": origin_scan_event_id,
        "state": "pending",
        "created_at": datetime.now(UTC),
    }


class ConnectionRequestRepo:
    """All connection request storage operations."""

    async def create(
        self,
        from_user_id: UUID,
        to_user_id: UUID,
        origin_scan_event_id: UUID | None = None,
    ) -> ConnectionRequest:
        """
        Create a pending connection request.

        Args:
            from_user_id: The scanner
            to_user_id: The profile owner whose code was scanned
            origin_scan_event_id: Scan that started it, if known

        Returns:
            Newly created ConnectionRequest
        """
        row = await get_store().put(
            CONNECTION_REQUESTS,
            _pending_request_row(from_user_id, to_user_id, origin_scan_event_id),
        )
        return _row_to_connection_request(row)

    async def create_from_link(
        self,
        link_id: UUID,
        from_user_id: UUID,
        to_user_id: UUID,
        origin_scan_event_id: UUID | None = None,
    ) -> ConnectionRequest | None:
        """
        Flip the pending link's redeemed flag false → true and create the
        request, in one transaction.

        Exactly one caller gets a request for a given link. If the insert
        fails, the link stays unredeemed and the caller can retry.

        Args:
            link_id: UUID of the pending link being redeemed
            from_user_id: The newly registered scanner
            to_user_id: The profile owner
            origin_scan_event_id: Scan that started it, if known

        Returns:
            Newly created ConnectionRequest, or None if the link was
            already redeemed
        """
        result = await get_store().conditional_update_and_put(
            PENDING_LINKS,
            link_id,
            expected={"redeemed": False},
            changes={"redeemed": True},
            insert_table=CONNECTION_REQUESTS,
            insert_row=_pending_request_row(from_user_id, to_user_id, origin_scan_event_id),
        )
        if result is None:
            return None
        _, row = result
        return _row_to_connection_request(row)

    async def get(self, request_id: UUID) -> ConnectionRequest | None:
        row = await get_store().get(CONNECTION_REQUESTS, request_id)
        return _row_to_connection_request(row) if row else None

    async def list_incoming(self, user_id: UUID) -> list[ConnectionRequest]:
        """Requests addressed to a user, newest first."""
        rows = await get_store().select(CONNECTION_REQUESTS, where={"to_user_id": user_id}, descending=True)
        return [_row_to_connection_request(r) for r in rows]

    async def list_outgoing(self, user_id: UUID) -> list[ConnectionRequest]:
        """Requests a user has sent, newest first."""
        rows = await get_store().select(CONNECTION_REQUESTS, where={"from_user_id": user_id}, descending=True)
        return [_row_to_connection_request(r) for r in rows]

    async def mark_accepted(self, request_id: UUID) -> ConnectionRequest | None:
        """
        Move a request pending → accepted.

        Returns:
            Updated ConnectionRequest, or None if it was not pending
        """
        row = await get_store().conditional_update(
            CONNECTION_REQUESTS,
            request_id,
            expected={"state": "pending"},
            changes={"state": "accepted"},
        )
        return _row_to_connection_request(row) if row else None
