"""Pack repository - read access to prompt packs."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from photoai.models.pack import Pack, PackPrompt


class PackRepository:
    """Repository for Pack and PackPrompt entities (read-only reference data)."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def list_all(self) -> list[Pack]:
        """Retrieve all packs ordered by name."""
        result = await self.session.execute(select(Pack).order_by(Pack.name.asc()))  # type: ignore[attr-defined]
        return list(result.scalars().all())

    async def get_by_id(self, pack_id: UUID) -> Pack | None:
        result = await self.session.execute(select(Pack).where(Pack.id == pack_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def get_prompts(self, pack_id: UUID) -> list[PackPrompt]:
        """Retrieve every prompt of a pack.

        Returns:
            Prompts of the pack, empty list for unknown packs
        """
        result = await self.session.execute(
            select(PackPrompt).where(PackPrompt.pack_id == pack_id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())
