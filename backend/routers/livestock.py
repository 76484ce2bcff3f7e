from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.livestock_moves import (
    add_animal,
    load_animal,
    load_lot,
    load_pasture,
    move_animal,
    relocate_lot,
    remove_animal,
)
from db.database import get_async_session
from db.livestock import (
    Animal as AnimalModel,
    AnimalMove as AnimalMoveModel,
    LivestockLot as LotModel,
    LotRelocation as LotRelocationModel,
    Pasture as PastureModel,
)
from db.users import User
from schemas.livestock import (
    AnimalCreate,
    AnimalMoveCreate,
    AnimalRead,
    AnimalUpdate,
    LotCreate,
    LotHistory,
    LotRead,
    LotRelocateCreate,
    LotUpdate,
    PastureCreate,
    PastureRead,
)

router = APIRouter()


def _lot_out(lot: LotModel, pasture_name=None) -> LotRead:
    return LotRead(
        id=lot.id,
        name=lot.name,
        description=lot.description,
        animal_count=int(lot.animal_count or 0),
        pasture_id=lot.pasture_id,
        pasture_name=pasture_name,
        created_at=lot.created_at,
    )


async def _pasture_name(db: AsyncSession, pasture_id) -> Optional[str]:
    if pasture_id is None:
        return None
    res = await db.execute(select(PastureModel.name).where(PastureModel.id == pasture_id))
    return res.scalar_one_or_none()


# --- pastures ---------------------------------------------------------------

@router.get("/pastures", response_model=List[PastureRead])
async def list_pastures(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(PastureModel).where(PastureModel.user_id == user.id).order_by(PastureModel.name)
    )
    return [
        PastureRead(id=p.id, name=p.name, area_ha=float(p.area_ha) if p.area_ha is not None else None)
        for p in res.scalars().all()
    ]


@router.post("/pastures", response_model=PastureRead, status_code=status.HTTP_201_CREATED)
async def create_pasture(
    payload: PastureCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    p = PastureModel(user_id=user.id, name=payload.name, area_ha=payload.area_ha)
    db.add(p)
    await db.commit()
    await db.refresh(p)
    return PastureRead(id=p.id, name=p.name, area_ha=float(p.area_ha) if p.area_ha is not None else None)


@router.delete("/pastures/{pasture_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pasture(
    pasture_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    p = await load_pasture(db, user.id, pasture_id)
    # lots grazing here are left without a pasture
    await db.execute(
        update(LotModel)
        .where(LotModel.pasture_id == p.id)
        .values(pasture_id=None, version_id=LotModel.version_id + 1)
    )
    await db.delete(p)
    await db.commit()


# --- lots -------------------------------------------------------------------

@router.get("/lots", response_model=List[LotRead])
async def list_lots(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(LotModel, PastureModel.name)
        .outerjoin(PastureModel, LotModel.pasture_id == PastureModel.id)
        .where(LotModel.user_id == user.id)
        .order_by(LotModel.created_at.desc())
    )
    res = await db.execute(stmt)
    return [_lot_out(lot, pasture_name) for (lot, pasture_name) in res.all()]


@router.post("/lots", response_model=LotRead, status_code=status.HTTP_201_CREATED)
async def create_lot(
    payload: LotCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    lot = LotModel(user_id=user.id, name=payload.name, description=payload.description, animal_count=0)
    db.add(lot)
    await db.commit()
    await db.refresh(lot)
    return _lot_out(lot)


@router.get("/lots/{lot_id}", response_model=LotRead)
async def get_lot(
    lot_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    lot = await load_lot(db, user.id, lot_id)
    return _lot_out(lot, await _pasture_name(db, lot.pasture_id))


@router.patch("/lots/{lot_id}", response_model=LotRead)
async def update_lot(
    lot_id: UUID,
    payload: LotUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    lot = await load_lot(db, user.id, lot_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("name") and data["name"].strip():
        lot.name = data["name"].strip()
    if "description" in data:
        lot.description = data["description"]
    await db.commit()
    await db.refresh(lot)
    return _lot_out(lot, await _pasture_name(db, lot.pasture_id))


@router.delete("/lots/{lot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lot(
    lot_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    lot = await load_lot(db, user.id, lot_id)
    await db.execute(delete(AnimalModel).where(AnimalModel.lot_id == lot.id))
    await db.delete(lot)
    await db.commit()


@router.post("/lots/{lot_id}/relocate", response_model=LotRead)
async def relocate(
    lot_id: UUID,
    payload: LotRelocateCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    lot, _ = await relocate_lot(db, owner_id=user.id, lot_id=lot_id, pasture_id=payload.pasture_id)
    return _lot_out(lot, await _pasture_name(db, lot.pasture_id))


@router.get("/lots/{lot_id}/history", response_model=LotHistory)
async def lot_history(
    lot_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    lot = await load_lot(db, user.id, lot_id)

    mres = await db.execute(
        select(AnimalMoveModel)
        .where((AnimalMoveModel.from_lot_id == lot.id) | (AnimalMoveModel.to_lot_id == lot.id))
        .order_by(AnimalMoveModel.created_at.desc())
    )
    rres = await db.execute(
        select(LotRelocationModel)
        .where(LotRelocationModel.lot_id == lot.id)
        .order_by(LotRelocationModel.created_at.desc())
    )
    return LotHistory(
        animal_moves=[
            {
                "id": m.id,
                "animal_id": m.animal_id,
                "from_lot_id": m.from_lot_id,
                "to_lot_id": m.to_lot_id,
                "direction": "out" if m.from_lot_id == lot.id else "in",
                "created_at": m.created_at,
            }
            for m in mres.scalars().all()
        ],
        relocations=[
            {
                "id": r.id,
                "from_pasture_id": r.from_pasture_id,
                "to_pasture_id": r.to_pasture_id,
                "created_at": r.created_at,
            }
            for r in rres.scalars().all()
        ],
    )


# --- animals ----------------------------------------------------------------

@router.get("/lots/{lot_id}/animals", response_model=List[AnimalRead])
async def list_animals(
    lot_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    lot = await load_lot(db, user.id, lot_id)
    res = await db.execute(
        select(AnimalModel).where(AnimalModel.lot_id == lot.id).order_by(AnimalModel.identifier)
    )
    return [AnimalRead(**a.to_schema) for a in res.scalars().all()]


@router.post("/lots/{lot_id}/animals", response_model=AnimalRead, status_code=status.HTTP_201_CREATED)
async def create_animal(
    lot_id: UUID,
    payload: AnimalCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    animal = await add_animal(db, owner_id=user.id, lot_id=lot_id, data=payload.model_dump())
    return AnimalRead(**animal.to_schema)


@router.patch("/lots/{lot_id}/animals/{animal_id}", response_model=AnimalRead)
async def update_animal(
    lot_id: UUID,
    animal_id: UUID,
    payload: AnimalUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    animal = await load_animal(db, user.id, animal_id, lot_id=lot_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(animal, field, value)
    await db.commit()
    await db.refresh(animal)
    return AnimalRead(**animal.to_schema)


@router.delete("/lots/{lot_id}/animals/{animal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_animal(
    lot_id: UUID,
    animal_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await remove_animal(db, owner_id=user.id, lot_id=lot_id, animal_id=animal_id)


@router.post("/animals/{animal_id}/move", response_model=Dict)
async def move(
    animal_id: UUID,
    payload: AnimalMoveCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    animal, mv = await move_animal(db, owner_id=user.id, animal_id=animal_id, to_lot_id=payload.to_lot_id)
    return {
        "animal": AnimalRead(**animal.to_schema).model_dump(),
        "move": {
            "id": mv.id,
            "from_lot_id": mv.from_lot_id,
            "to_lot_id": mv.to_lot_id,
            "created_at": mv.created_at,
        },
    }
