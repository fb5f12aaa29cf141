"""Repository for scan events."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from dislink.models.introduction_code import IntroductionCode
from dislink.models.scan_event import ScanContext, ScanEvent, ScanLocation
from dislink.store import SCAN_EVENTS, Row, get_store


def _row_to_scan_event(row: Row) -> ScanEvent:
    """Convert a store row to a ScanEvent model."""
    return ScanEvent(
        id=row["id"],
        code_id=row["code_id"],
        code=row["code"],
        created_at=row["created_at"],
        location=ScanLocation(**row["location"]) if row["location"] else None,
        referrer=row["referrer"],
        client_fingerprint=row["client_fingerprint"],
    )


class ScanEventRepo:
    """Append-only scan event storage."""

    async def create(self, code: IntroductionCode, context: ScanContext) -> ScanEvent:
        """
        Record one presentation of a code.

        Args:
            code: The code that was presented
            context: Client-supplied scan context (all optional)

        Returns:
            Newly created ScanEvent
        """
        location = context.location
        row = await get_store().put(
            SCAN_EVENTS,
            {
                "id": uuid4(),
                "code_id": code.id,
                "code": code.code,
                "created_at": datetime.now(UTC),
                "location": location.model_dump() if location else None,
                "referrer": context.referrer,
                "client_fingerprint": context.client_fingerprint,
            },
        )
        return _row_to_scan_event(row)

    async def get(self, event_id: UUID) -> ScanEvent | None:
        row = await get_store().get(SCAN_EVENTS, event_id)
        return _row_to_scan_event(row) if row else None

    async def attach_place_name(self, event: ScanEvent, place_name: str) -> bool:
        """
        Attach a reverse-geocoded place name to an event's coordinates.

        The only write an event ever receives, and only while the place name
        is still unset.

        Returns:
            True if attached, False if the event has no coordinates or was
            already resolved
        """
        if event.location is None:
            return False
        resolved = event.location.model_copy(update={"place_name": place_name})
        row = await get_store().conditional_update(
            SCAN_EVENTS,
            event.id,
            expected={"location": event.location.model_dump()},
            changes={"location": resolved.model_dump()},
        )
        return row is not None
