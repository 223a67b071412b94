"""
Position ledger for the gallery and start page rankings.

Each ranking (Slot) is either 0 for a picture that is not part of it, or a
position in a dense sequence 1..N over the pictures that are. The ledger
shifts neighbouring positions so that sequence never has gaps or duplicates.

The ledger holds no state of its own: it works through a repository bound to
the caller's session and re-reads counts on every call. All calls must happen
inside the caller's transaction, so a failure later in the unit of work rolls
the shifts back together with everything else.
"""
from typing import Optional

from picture_api.core.logging_config import get_logger
from picture_api.db.models import Picture, Slot
from picture_api.repositories.picture_repository import PictureRepository

logger = get_logger(__name__)


class PositionLedger:
    """Keeps one picture's positions consistent with all the others."""

    def __init__(self, repository: PictureRepository):
        self.repository = repository

    async def insert_at(self, slot: Slot, target: Optional[int]) -> int:
        """Open position `target` in `slot` by moving everything at or after it down one.

        A `target` of None or 0 means "not ranked" and changes nothing.

        Returns:
            The position the caller must assign, or 0 when nothing was done.
        """
        if not target:
            return 0
        if target < 0:
            raise ValueError(f"Position must not be negative, got {target}")

        shifted = await self.repository.increment_from(slot, target)
        logger.debug("ledger_shift_up", slot=slot.value, position=target, shifted=shifted)
        return target

    async def remove_at(self, slot: Slot, position: int) -> int:
        """Close the gap at `position` in `slot` by moving everything after it up one.

        The picture that held `position` must already be cleared or deleted.

        Returns:
            Number of pictures shifted.
        """
        if position <= 0:
            raise ValueError(f"Only ranked positions can be removed, got {position}")

        shifted = await self.repository.decrement_above(slot, position)
        logger.debug("ledger_shift_down", slot=slot.value, position=position, shifted=shifted)
        return shifted

    async def vacate(self, picture: Picture, slot: Slot) -> None:
        """Take `picture` out of `slot`, closing the gap it leaves."""
        current = slot.read(picture)
        if current <= 0:
            return

        slot.write(picture, 0)
        await self._flush_if_persistent(picture)
        await self.remove_at(slot, current)

    async def place(self, picture: Picture, slot: Slot, target: Optional[int]) -> int:
        """Move `picture` to position `target` in `slot`.

        Skipped entirely when `target` is None or 0, so an unranked picture
        stays unranked and a ranked one keeps its position. Targets past the
        end of the ranking are clamped to N+1.

        Returns:
            The position written onto `picture`, or its unchanged position.
        """
        if not target:
            return slot.read(picture)
        if target < 0:
            raise ValueError(f"Position must not be negative, got {target}")

        await self.vacate(picture, slot)

        ranked = await self.repository.count_ranked(slot)
        position = min(target, ranked + 1)
        if position != target:
            logger.info(
                "ledger_position_clamped",
                slot=slot.value,
                requested=target,
                assigned=position,
                ranked=ranked,
            )

        await self.insert_at(slot, position)
        slot.write(picture, position)
        await self._flush_if_persistent(picture)
        return position

    async def _flush_if_persistent(self, picture: Picture) -> None:
        # Later shifts in the same transaction must see this row's new position
        if picture in self.repository.session:
            await self.repository.session.flush()
