"""Repository for introduction code operations."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime
from uuid import UUID, uuid4

from dislink.models.introduction_code import CodeStatus, IntroductionCode
from dislink.store import INTRODUCTION_CODES, DuplicateKey, Row, get_store

# No 0/O or 1/I: codes get read aloud and typed by hand
_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_CODE_LENGTH = 8


def _generate_code() -> str:
    """Generate an 8-char code from the unambiguous alphabet (e.g. 'K7XQ2MPA')."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))


def _row_to_introduction_code(row: Row) -> IntroductionCode:
    """Convert a store row to an IntroductionCode model."""
    return IntroductionCode(
        id=row["id"],
        code=row["code"],
        owner_id=row["owner_id"],
        status=row["status"],
        single_use=row["single_use"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


class IntroductionCodeRepo:
    """All introduction code storage operations."""

    async def create(
        self,
        owner_id: UUID,
        expires_at: datetime | None = None,
        single_use: bool = False,
    ) -> IntroductionCode:
        """
        Generate and store a new active code for a profile owner.

        Args:
            owner_id: Profile owner UUID
            expires_at: Optional expiry; None means valid until revoked
            single_use: Whether the first connection redeems the code

        Returns:
            Newly created IntroductionCode
        """
        store = get_store()
        now = datetime.now(UTC)

        # Retry on the unlikely chance of a code collision
        for _ in range(5):
            try:
                row = await store.put(
                    INTRODUCTION_CODES,
                    {
                        "id": uuid4(),
                        "code": _generate_code(),
                        "owner_id": owner_id,
                        "status": "active",
                        "single_use": single_use,
                        "created_at": now,
                        "expires_at": expires_at,
                    },
                )
                return _row_to_introduction_code(row)
            except DuplicateKey:
                continue

        raise RuntimeError("Failed to generate a unique introduction code after 5 attempts")

    async def get_by_code(self, code: str) -> IntroductionCode | None:
        """
        Look up a code regardless of status. Expiry is judged by the caller.

        Args:
            code: Code as presented by the scanner (already upper-cased)

        Returns:
            IntroductionCode if found, None otherwise
        """
        row = await get_store().get(INTRODUCTION_CODES, code, column="code")
        return _row_to_introduction_code(row) if row else None

    async def get(self, code_id: UUID) -> IntroductionCode | None:
        row = await get_store().get(INTRODUCTION_CODES, code_id)
        return _row_to_introduction_code(row) if row else None

    async def list_for_owner(self, owner_id: UUID) -> list[IntroductionCode]:
        """List every code an owner has issued, newest first."""
        rows = await get_store().select(INTRODUCTION_CODES, where={"owner_id": owner_id}, descending=True)
        return [_row_to_introduction_code(r) for r in rows]

    async def transition(self, code_id: UUID, from_status: CodeStatus, to_status: CodeStatus) -> IntroductionCode | None:
        """
        Move a code between statuses only if it is still in `from_status`.

        Args:
            code_id: UUID of the code row
            from_status: Status the row must currently hold
            to_status: Status to write

        Returns:
            Updated IntroductionCode, or None if the row moved on first
        """
        row = await get_store().conditional_update(
            INTRODUCTION_CODES,
            code_id,
            expected={"status": from_status},
            changes={"status": to_status},
        )
        return _row_to_introduction_code(row) if row else None
