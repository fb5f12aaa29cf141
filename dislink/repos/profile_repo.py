"""Read-only access to profile summaries. Profiles are edited elsewhere."""

from __future__ import annotations

from uuid import UUID

from dislink.models.introduction_code import ProfileSummary
from dislink.store import PROFILES, get_store


class ProfileRepo:
    async def get_summary(self, user_id: UUID) -> ProfileSummary | None:
        """
        Get the public card for a profile.

        Args:
            user_id: Profile UUID

        Returns:
            ProfileSummary if the profile exists, None otherwise
        """
        row = await get_store().get(PROFILES, user_id)
        if not row:
            return None
        return ProfileSummary(
            id=row["id"],
            name=row["name"],
            job_title=row["job_title"],
            company=row["company"],
            profile_image=row["profile_image"],
        )
