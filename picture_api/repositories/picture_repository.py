"""Repository for Picture models."""

from typing import List
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from picture_api.db.models import Picture, Slot
from picture_api.repositories.base import BaseRepository


class PictureRepository(BaseRepository[Picture]):
    """Repository for accessing picture data and shifting positions."""

    def __init__(self, session: AsyncSession):
        super().__init__(Picture, session)

    async def list_ranked(self, slot: Slot, descending: bool = False) -> List[Picture]:
        """Pictures taking part in `slot`, ordered by their position."""
        order = slot.column.desc() if descending else slot.column.asc()
        stmt = select(self.model).where(slot.column > 0).order_by(order)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self, descending: bool = True) -> List[Picture]:
        """All pictures ordered by last modification."""
        order = self.model.updated_at.desc() if descending else self.model.updated_at.asc()
        stmt = select(self.model).order_by(order, self.model.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_ranked(self, slot: Slot) -> int:
        """Number of pictures currently holding a position in `slot`."""
        stmt = select(func.count()).select_from(self.model).where(slot.column > 0)
        return (await self.session.execute(stmt)).scalar_one()

    async def count_all(self) -> int:
        stmt = select(func.count()).select_from(self.model)
        return (await self.session.execute(stmt)).scalar_one()

    async def increment_from(self, slot: Slot, position: int) -> int:
        """Add 1 to every position >= `position` in `slot`. Returns affected rows."""
        column = slot.column
        stmt = (
            update(self.model)
            .where(column >= position)
            .values({column: column + 1})
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def decrement_above(self, slot: Slot, position: int) -> int:
        """Subtract 1 from every position > `position` in `slot`. Returns affected rows."""
        column = slot.column
        stmt = (
            update(self.model)
            .where(column > position)
            .values({column: column - 1})
        )
        result = await self.session.execute(stmt)
        return result.rowcount
