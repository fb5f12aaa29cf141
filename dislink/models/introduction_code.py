"""Introduction code models for the scan-to-connect flow."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

CodeStatus = Literal["active", "expired", "redeemed"]


class IntroductionCode(BaseModel):
    """Core introduction code model, mapped 1:1 to the introduction_codes table."""

    id: UUID
    code: str
    owner_id: UUID
    status: CodeStatus = "active"
    single_use: bool = False
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """
        Expiry as observed at read time.

        A code is stale when its stored status is terminal or when its
        expiry time has passed. Nothing is written back.
        """
        if self.status != "active":
            return True
        return self.expires_at is not None and self.expires_at <= now


class ProfileSummary(BaseModel):
    """Public card shown to a scanner. Read from the profiles table."""

    id: UUID
    name: str
    job_title: str | None = None
    company: str | None = None
    profile_image: str | None = None


class CodeValidation(BaseModel):
    """Result of validating a code. Expired is a normal outcome, not an error."""

    code: IntroductionCode
    owner_summary: ProfileSummary | None
    expired: bool


class IssueCodeRequest(BaseModel):
    """Request body for issuing a new introduction code."""

    model_config = {"extra": "forbid"}

    # None means "until revoked"
    expires_in_hours: int | None = Field(default=None, ge=1, le=24 * 365)
    single_use: bool = False


class CodeResponse(BaseModel):
    """What the owner sees for one of their codes."""

    code: str
    status: CodeStatus
    single_use: bool
    created_at: datetime
    expires_at: datetime | None

    @classmethod
    def from_model(cls, code: IntroductionCode) -> CodeResponse:
        return cls(
            code=code.code,
            status=code.status,
            single_use=code.single_use,
            created_at=code.created_at,
            expires_at=code.expires_at,
        )


class ValidateCodeResponse(BaseModel):
    """What a scanner receives after presenting a code."""

    owner_summary: ProfileSummary | None
    expired: bool
    scan_event_id: UUID | None = None
