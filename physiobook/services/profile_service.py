"""Read access to patient profiles owned by the identity provider."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from physiobook.models.profiles import profiles


class ProfileService:
    """Service for profile lookups."""

    @staticmethod
    async def get_profile_by_id(db: AsyncSession, profile_id: UUID) -> dict | None:
        """Get a profile by its identity id."""
        result = await db.execute(select(profiles).where(profiles.c.id == profile_id))
        profile = result.mappings().first()
        return dict(profile) if profile else None
