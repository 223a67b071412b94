"""
PositionLedger tests.

Exercise the ledger directly against a real SQLite database, one
transaction per operation, and check the stored positions afterwards.
"""

import random

import pytest

from picture_api.db.models import Picture, Slot
from picture_api.repositories.picture_repository import PictureRepository
from picture_api.services.position_ledger import PositionLedger
from tests.conftest import assert_gap_free, ranked_values, read_positions, seed_pictures


async def in_transaction(session_factory, operation):
    """Run `operation(ledger, repository)` inside one committed transaction."""
    async with session_factory() as session:
        async with session.begin():
            repository = PictureRepository(session)
            return await operation(PositionLedger(repository), repository)


def new_picture(title: str = "New") -> Picture:
    return Picture(title=title, original_path=f"public/gallery/{title}.png")


# ============================================================================
# insert_at / remove_at
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_insert_in_middle_opens_slot(session_factory):
    """Gallery [1,2,3] + new picture at 2 -> old ones at [1,3,4], new at 2."""
    ids = await seed_pictures(session_factory, [(1, 0), (2, 0), (3, 0)])

    async def insert(ledger, repository):
        picture = new_picture()
        assigned = await ledger.place(picture, Slot.GALLERY, 2)
        await repository.save(picture)
        return picture.id, assigned

    new_id, assigned = await in_transaction(session_factory, insert)
    positions = await read_positions(session_factory, Slot.GALLERY)

    assert assigned == 2
    assert [positions[i] for i in ids] == [1, 3, 4]
    assert positions[new_id] == 2
    assert_gap_free(positions, expected_count=4)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remove_closes_gap(session_factory):
    """Start page [1,2,3,4], position 2 removed -> remaining [1,2,3]."""
    ids = await seed_pictures(session_factory, [(0, 1), (0, 2), (0, 3), (0, 4)])

    async def remove(ledger, repository):
        picture = await repository.get(ids[1])
        await ledger.vacate(picture, Slot.STARTPAGE)

    await in_transaction(session_factory, remove)
    positions = await read_positions(session_factory, Slot.STARTPAGE)

    assert positions[ids[1]] == 0
    assert [positions[ids[0]], positions[ids[2]], positions[ids[3]]] == [1, 2, 3]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remove_at_shifts_only_later_positions(session_factory):
    ids = await seed_pictures(session_factory, [(0, 1), (0, 2), (0, 3), (0, 4)])

    async def remove(ledger, repository):
        # Row at position 2 already gone from the ranking
        picture = await repository.get(ids[1])
        picture.startpage_position = 0
        await repository.save(picture)
        return await ledger.remove_at(Slot.STARTPAGE, 2)

    shifted = await in_transaction(session_factory, remove)
    positions = await read_positions(session_factory, Slot.STARTPAGE)

    assert shifted == 2
    assert ranked_values(positions) == [1, 2, 3]


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("target", [0, None])
async def test_unranked_target_changes_nothing(session_factory, target):
    """insert_at / place with 0 or None leave every position untouched."""
    await seed_pictures(session_factory, [(1, 2), (2, 1), (3, 0)])
    before_gallery = await read_positions(session_factory, Slot.GALLERY)
    before_startpage = await read_positions(session_factory, Slot.STARTPAGE)

    async def insert(ledger, repository):
        picture = new_picture()
        assert await ledger.insert_at(Slot.GALLERY, target) == 0
        assert await ledger.place(picture, Slot.GALLERY, target) == 0
        await repository.save(picture)
        return picture.id

    new_id = await in_transaction(session_factory, insert)
    after_gallery = await read_positions(session_factory, Slot.GALLERY)

    assert after_gallery.pop(new_id) == 0
    assert after_gallery == before_gallery
    assert (await read_positions(session_factory, Slot.STARTPAGE)).get(new_id) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remove_at_rejects_unranked_position(session_factory):
    async def remove(ledger, repository):
        await ledger.remove_at(Slot.GALLERY, 0)

    with pytest.raises(ValueError):
        await in_transaction(session_factory, remove)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_negative_target_rejected(session_factory):
    async def insert(ledger, repository):
        await ledger.place(new_picture(), Slot.GALLERY, -1)

    with pytest.raises(ValueError):
        await in_transaction(session_factory, insert)


# ============================================================================
# place
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_place_clamps_past_the_end(session_factory):
    """A target beyond N+1 becomes N+1 instead of leaving a gap."""
    await seed_pictures(session_factory, [(1, 0), (2, 0)])

    async def insert(ledger, repository):
        picture = new_picture()
        assigned = await ledger.place(picture, Slot.GALLERY, 10)
        await repository.save(picture)
        return assigned

    assert await in_transaction(session_factory, insert) == 3
    assert_gap_free(await read_positions(session_factory, Slot.GALLERY), expected_count=3)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_place_moves_ranked_picture_forward(session_factory):
    ids = await seed_pictures(session_factory, [(1, 0), (2, 0), (3, 0), (4, 0)])

    async def move(ledger, repository):
        picture = await repository.get(ids[3])
        await ledger.place(picture, Slot.GALLERY, 1)
        await repository.save(picture)

    await in_transaction(session_factory, move)
    positions = await read_positions(session_factory, Slot.GALLERY)

    assert [positions[i] for i in ids] == [2, 3, 4, 1]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_place_moves_ranked_picture_backward(session_factory):
    ids = await seed_pictures(session_factory, [(1, 0), (2, 0), (3, 0), (4, 0)])

    async def move(ledger, repository):
        picture = await repository.get(ids[0])
        await ledger.place(picture, Slot.GALLERY, 3)
        await repository.save(picture)

    await in_transaction(session_factory, move)
    positions = await read_positions(session_factory, Slot.GALLERY)

    assert [positions[i] for i in ids] == [3, 1, 2, 4]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_place_same_position_is_stable(session_factory):
    ids = await seed_pictures(session_factory, [(1, 0), (2, 0), (3, 0)])

    async def move(ledger, repository):
        picture = await repository.get(ids[1])
        await ledger.place(picture, Slot.GALLERY, 2)
        await repository.save(picture)

    await in_transaction(session_factory, move)
    positions = await read_positions(session_factory, Slot.GALLERY)

    assert [positions[i] for i in ids] == [1, 2, 3]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_slots_are_independent(session_factory):
    """Gallery operations never touch start page positions and vice versa."""
    ids = await seed_pictures(session_factory, [(1, 3), (2, 0), (3, 1), (0, 2)])
    startpage_before = await read_positions(session_factory, Slot.STARTPAGE)

    async def gallery_changes(ledger, repository):
        picture = new_picture()
        await ledger.place(picture, Slot.GALLERY, 1)
        await repository.save(picture)
        moved = await repository.get(ids[2])
        await ledger.place(moved, Slot.GALLERY, 2)
        await ledger.vacate(await repository.get(ids[1]), Slot.GALLERY)
        return picture.id

    new_id = await in_transaction(session_factory, gallery_changes)

    startpage_after = await read_positions(session_factory, Slot.STARTPAGE)
    assert startpage_after.pop(new_id) == 0
    assert startpage_after == startpage_before
    assert_gap_free(await read_positions(session_factory, Slot.GALLERY), expected_count=3)

    gallery_before = await read_positions(session_factory, Slot.GALLERY)

    async def startpage_changes(ledger, repository):
        await ledger.vacate(await repository.get(ids[0]), Slot.STARTPAGE)
        await ledger.place(await repository.get(ids[1]), Slot.STARTPAGE, 1)

    await in_transaction(session_factory, startpage_changes)

    assert await read_positions(session_factory, Slot.GALLERY) == gallery_before
    assert_gap_free(await read_positions(session_factory, Slot.STARTPAGE), expected_count=3)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_random_sequences_stay_gap_free(session_factory):
    """Random inserts, moves and removals match an in-memory ordered list."""
    rng = random.Random(20240601)
    order = []  # ids in gallery order
    unranked = []

    for step in range(40):
        action = rng.choice(["insert", "insert", "move", "remove", "rank_existing"])

        if action == "insert" or not order:
            target = rng.randint(0, len(order) + 3)

            async def insert(ledger, repository):
                picture = new_picture(f"step-{step}")
                await ledger.place(picture, Slot.GALLERY, target)
                await repository.save(picture)
                return picture.id

            picture_id = await in_transaction(session_factory, insert)
            if target:
                order.insert(min(target, len(order) + 1) - 1, picture_id)
            else:
                unranked.append(picture_id)

        elif action == "move":
            picture_id = rng.choice(order)
            target = rng.randint(1, len(order) + 2)

            async def move(ledger, repository):
                picture = await repository.get(picture_id)
                await ledger.place(picture, Slot.GALLERY, target)
                await repository.save(picture)

            await in_transaction(session_factory, move)
            order.remove(picture_id)
            order.insert(min(target, len(order) + 1) - 1, picture_id)

        elif action == "remove":
            picture_id = rng.choice(order)

            async def remove(ledger, repository):
                await ledger.vacate(await repository.get(picture_id), Slot.GALLERY)

            await in_transaction(session_factory, remove)
            order.remove(picture_id)
            unranked.append(picture_id)

        elif unranked:
            picture_id = unranked.pop(rng.randrange(len(unranked)))
            target = rng.randint(1, len(order) + 1)

            async def rank(ledger, repository):
                picture = await repository.get(picture_id)
                await ledger.place(picture, Slot.GALLERY, target)
                await repository.save(picture)

            await in_transaction(session_factory, rank)
            order.insert(target - 1, picture_id)

        positions = await read_positions(session_factory, Slot.GALLERY)
        assert_gap_free(positions, expected_count=len(order))
        assert {pid: pos for pid, pos in positions.items() if pos} == {
            pid: index + 1 for index, pid in enumerate(order)
        }
