"""
Connection code registry: issue, validate, revoke, and redeem introduction codes.

Status only ever moves forward: active → expired or active → redeemed.
Time-based expiry is lazy. validate() reports a code past its expires_at as
expired without writing anything; the stored status flips only on explicit
revocation or redemption.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID

from dislink.errors import AlreadyTerminal, CodeExpired, Forbidden, NotFound
from dislink.models.introduction_code import CodeValidation, IntroductionCode
from dislink.repos.introduction_code_repo import IntroductionCodeRepo
from dislink.repos.profile_repo import ProfileRepo

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_code(code: str) -> str:
    """Codes are case-insensitive when typed; stored upper-case."""
    return code.strip().upper()


class CodeRegistry:
    def __init__(
        self,
        codes: IntroductionCodeRepo | None = None,
        profiles: ProfileRepo | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._codes = codes or IntroductionCodeRepo()
        self._profiles = profiles or ProfileRepo()
        self._clock = clock

    async def issue(
        self,
        owner_id: UUID,
        expires_in: timedelta | None = None,
        single_use: bool = False,
    ) -> IntroductionCode:
        """
        Issue a new active code for a profile owner.

        Args:
            owner_id: Profile owner
            expires_in: Optional lifetime; None keeps the code until revoked
            single_use: Redeem the code on its first connection

        Returns:
            The new IntroductionCode
        """
        expires_at = self._clock() + expires_in if expires_in is not None else None
        code = await self._codes.create(owner_id, expires_at=expires_at, single_use=single_use)
        logger.info("code_registry: issued %s for owner=%s", code.code, owner_id)
        return code

    async def get(self, code: str) -> IntroductionCode:
        """
        Raises:
            NotFound: Unknown code
        """
        found = await self._codes.get_by_code(normalize_code(code))
        if found is None:
            raise NotFound("Code not found.")
        return found

    async def get_by_id(self, code_id: UUID) -> IntroductionCode | None:
        return await self._codes.get(code_id)

    async def validate(self, code: str) -> CodeValidation:
        """
        Look up a presented code and the owner's public card.

        A stale code is a normal, user-facing outcome: the result carries
        expired=True instead of raising. No status is written.

        Raises:
            NotFound: Unknown code
        """
        found = await self.get(code)
        summary = await self._profiles.get_summary(found.owner_id)
        return CodeValidation(
            code=found,
            owner_summary=summary,
            expired=found.is_expired(self._clock()),
        )

    async def revoke(self, owner_id: UUID, code: str) -> IntroductionCode:
        """
        Revoke an active code (active → expired).

        Raises:
            NotFound: Unknown code
            Forbidden: Caller does not own the code
            AlreadyTerminal: Code is already expired or redeemed
        """
        found = await self.get(code)
        if found.owner_id != owner_id:
            raise Forbidden("Only the owner can revoke this code.")
        if found.is_expired(self._clock()):
            raise AlreadyTerminal("This code is no longer active.")

        revoked = await self._codes.transition(found.id, "active", "expired")
        if revoked is None:
            # Lost a race with a redemption or another revoke
            raise AlreadyTerminal("This code is no longer active.")
        logger.info("code_registry: revoked %s", revoked.code)
        return revoked

    async def redeem(self, code: str) -> IntroductionCode:
        """
        Consume an active code (active → redeemed). Exactly once.

        Raises:
            NotFound: Unknown code
            AlreadyTerminal: Code was already revoked or redeemed
            CodeExpired: Code's lifetime has passed
        """
        found = await self.get(code)
        if found.status != "active":
            raise AlreadyTerminal("This code is no longer active.")
        if found.is_expired(self._clock()):
            raise CodeExpired()

        redeemed = await self._codes.transition(found.id, "active", "redeemed")
        if redeemed is None:
            raise AlreadyTerminal("This code is no longer active.")
        return redeemed

    async def list_for_owner(self, owner_id: UUID) -> list[IntroductionCode]:
        return await self._codes.list_for_owner(owner_id)


code_registry = CodeRegistry()
