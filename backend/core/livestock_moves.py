"""
Transactional livestock operations.

Each operation keeps LivestockLot.animal_count (or pasture_id) consistent with
the rows it describes and appends history, inside one optimistic transaction
(see core.stock_ledger.run_optimistic).
"""

import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AnimalNotFound, InvalidMove, LotNotFound, PastureNotFound
from core.stock_ledger import run_optimistic
from db.livestock import Animal, AnimalMove, LivestockLot, LotRelocation, Pasture

logger = logging.getLogger(__name__)


async def load_lot(db: AsyncSession, owner_id: UUID, lot_id: UUID) -> LivestockLot:
    res = await db.execute(
        select(LivestockLot)
        .where(LivestockLot.id == lot_id, LivestockLot.user_id == owner_id)
        .execution_options(populate_existing=True)
    )
    lot = res.scalar_one_or_none()
    if not lot:
        raise LotNotFound(lot_id)
    return lot


async def load_animal(db: AsyncSession, owner_id: UUID, animal_id: UUID, lot_id: Optional[UUID] = None) -> Animal:
    stmt = select(Animal).where(Animal.id == animal_id, Animal.user_id == owner_id)
    if lot_id is not None:
        stmt = stmt.where(Animal.lot_id == lot_id)
    res = await db.execute(stmt.execution_options(populate_existing=True))
    animal = res.scalar_one_or_none()
    if not animal:
        raise AnimalNotFound(animal_id)
    return animal


async def load_pasture(db: AsyncSession, owner_id: UUID, pasture_id: UUID) -> Pasture:
    res = await db.execute(select(Pasture).where(Pasture.id == pasture_id, Pasture.user_id == owner_id))
    pasture = res.scalar_one_or_none()
    if not pasture:
        raise PastureNotFound(pasture_id)
    return pasture


async def add_animal(db: AsyncSession, *, owner_id: UUID, lot_id: UUID, data: dict) -> Animal:
    async def _attempt() -> Animal:
        lot = await load_lot(db, owner_id, lot_id)
        animal = Animal(lot_id=lot.id, user_id=owner_id, **data)
        db.add(animal)
        lot.animal_count = (lot.animal_count or 0) + 1
        return animal

    animal = await run_optimistic(db, _attempt, resource=f"lot {lot_id}")
    await db.refresh(animal)
    logger.info("Added animal %s to lot %s", animal.id, lot_id)
    return animal


async def remove_animal(db: AsyncSession, *, owner_id: UUID, lot_id: UUID, animal_id: UUID) -> None:
    async def _attempt() -> None:
        lot = await load_lot(db, owner_id, lot_id)
        animal = await load_animal(db, owner_id, animal_id, lot_id=lot.id)
        await db.delete(animal)
        lot.animal_count = max(0, (lot.animal_count or 0) - 1)

    await run_optimistic(db, _attempt, resource=f"lot {lot_id}")
    logger.info("Removed animal %s from lot %s", animal_id, lot_id)


async def move_animal(db: AsyncSession, *, owner_id: UUID, animal_id: UUID, to_lot_id: UUID) -> Tuple[Animal, AnimalMove]:
    """Move one animal to another lot, keeping both counters and the history in step."""

    async def _attempt() -> Tuple[Animal, AnimalMove]:
        animal = await load_animal(db, owner_id, animal_id)
        if animal.lot_id == to_lot_id:
            raise InvalidMove("Animal is already in this lot")

        source = await load_lot(db, owner_id, animal.lot_id)
        target = await load_lot(db, owner_id, to_lot_id)

        move = AnimalMove(
            animal_id=animal.id,
            from_lot_id=source.id,
            to_lot_id=target.id,
            user_id=owner_id,
        )
        animal.lot_id = target.id
        source.animal_count = max(0, (source.animal_count or 0) - 1)
        target.animal_count = (target.animal_count or 0) + 1
        db.add(move)
        return animal, move

    animal, move = await run_optimistic(db, _attempt, resource=f"animal {animal_id}")
    await db.refresh(move)
    logger.info("Moved animal %s from lot %s to lot %s", animal_id, move.from_lot_id, move.to_lot_id)
    return animal, move


async def relocate_lot(db: AsyncSession, *, owner_id: UUID, lot_id: UUID, pasture_id: UUID) -> Tuple[LivestockLot, LotRelocation]:
    async def _attempt() -> Tuple[LivestockLot, LotRelocation]:
        lot = await load_lot(db, owner_id, lot_id)
        pasture = await load_pasture(db, owner_id, pasture_id)
        if lot.pasture_id == pasture.id:
            raise InvalidMove("Lot is already on this pasture")

        relocation = LotRelocation(
            lot_id=lot.id,
            from_pasture_id=lot.pasture_id,
            to_pasture_id=pasture.id,
            user_id=owner_id,
        )
        lot.pasture_id = pasture.id
        db.add(relocation)
        return lot, relocation

    lot, relocation = await run_optimistic(db, _attempt, resource=f"lot {lot_id}")
    await db.refresh(relocation)
    await db.refresh(lot)
    logger.info("Relocated lot %s to pasture %s", lot_id, pasture_id)
    return lot, relocation
