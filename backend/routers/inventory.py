from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.errors import ItemNotFound, MachineNotFound
from core.stock_ledger import item_balance, record_movement
from db.database import get_async_session
from db.inventory.item import ITEM_CATEGORIES, ITEM_UNITS, PARTS_CATEGORY, Item as ItemModel
from db.inventory.ledger_entry import LedgerEntry as LedgerEntryModel
from db.machine import Machine as MachineModel
from db.users import User
from schemas.inventory import (
    ItemBalance,
    ItemCreate,
    ItemOptions,
    ItemRead,
    ItemUpdate,
    LedgerEntryRead,
    MovementCreate,
    MovementDirection,
    MovementResult,
)

router = APIRouter()

_PART_FIELDS = ("part_code", "part_type", "applies_to_machine_id", "applies_to_machine_name")


async def _get_own_item(db: AsyncSession, user_id: UUID, item_id: UUID) -> ItemModel:
    res = await db.execute(select(ItemModel).where(ItemModel.id == item_id, ItemModel.user_id == user_id))
    item = res.scalar_one_or_none()
    if not item:
        raise ItemNotFound(item_id)
    return item


async def _machine_name(db: AsyncSession, user_id: UUID, machine_id: UUID) -> str:
    res = await db.execute(
        select(MachineModel.name).where(MachineModel.id == machine_id, MachineModel.user_id == user_id)
    )
    name = res.scalar_one_or_none()
    if name is None:
        raise MachineNotFound(machine_id)
    return name


@router.get("/items/options", response_model=ItemOptions)
async def item_options():
    return ItemOptions(categories=ITEM_CATEGORIES, units=ITEM_UNITS)


@router.get("/items", response_model=List[ItemRead])
async def list_items(
    category: Optional[str] = None,
    q: Optional[str] = None,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(ItemModel).where(ItemModel.user_id == user.id)
    if category:
        stmt = stmt.where(ItemModel.category == category)
    if q and q.strip():
        stmt = stmt.where(func.lower(ItemModel.name).contains(q.strip().lower()))
    res = await db.execute(stmt.order_by(func.lower(ItemModel.name).asc()))
    return [ItemRead(**it.to_schema) for it in res.scalars().all()]


@router.post("/items", response_model=ItemRead, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: ItemCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    model = ItemModel(
        user_id=user.id,
        name=payload.name,
        unit=payload.unit,
        category=payload.category,
        description=payload.description,
        current_stock=0,
    )
    if payload.category == PARTS_CATEGORY:
        model.part_code = payload.part_code
        model.part_type = payload.part_type
        model.applies_to_machine_id = payload.applies_to_machine_id
        model.applies_to_machine_name = await _machine_name(db, user.id, payload.applies_to_machine_id)

    db.add(model)
    await db.commit()
    await db.refresh(model)
    return ItemRead(**model.to_schema)


@router.get("/items/{item_id}", response_model=ItemRead)
async def get_item(
    item_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    item = await _get_own_item(db, user.id, item_id)
    return ItemRead(**item.to_schema)


@router.patch("/items/{item_id}", response_model=ItemRead)
async def update_item(
    item_id: UUID,
    payload: ItemUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Edit descriptive fields. Stock only changes through /movements."""
    item = await _get_own_item(db, user.id, item_id)

    data = payload.model_dump(exclude_unset=True)
    for field in ("name", "unit", "category"):
        if data.get(field) is not None:
            setattr(item, field, data[field])
    if "description" in data:
        item.description = data["description"]

    if item.category == PARTS_CATEGORY:
        for field in ("part_code", "part_type"):
            if field in data:
                setattr(item, field, data[field])
        machine_id = data.get("applies_to_machine_id") or item.applies_to_machine_id
        if not item.part_code or not item.part_type or not machine_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Peças requires part_code, part_type and applies_to_machine_id",
            )
        if data.get("applies_to_machine_id"):
            item.applies_to_machine_name = await _machine_name(db, user.id, machine_id)
            item.applies_to_machine_id = machine_id
    else:
        for field in _PART_FIELDS:
            setattr(item, field, None)

    await db.commit()
    await db.refresh(item)
    return ItemRead(**item.to_schema)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    # Ledger entries are kept (no cascade); they keep the item's name snapshot.
    item = await _get_own_item(db, user.id, item_id)
    await db.delete(item)
    await db.commit()


@router.get("/items/{item_id}/balance", response_model=ItemBalance)
async def get_item_balance(
    item_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return ItemBalance(**await item_balance(db, user.id, item_id))


@router.post("/movements", response_model=MovementResult, status_code=status.HTTP_201_CREATED)
async def create_movement(
    payload: MovementCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    item, entry = await record_movement(
        db,
        owner_id=user.id,
        item_id=payload.item_id,
        direction=payload.direction,
        quantity=payload.quantity,
        notes=payload.notes,
    )
    return MovementResult(entry=LedgerEntryRead(**entry.to_schema), item=ItemRead(**item.to_schema))


@router.get("/movements", response_model=List[LedgerEntryRead])
async def list_movements(
    item_id: Optional[UUID] = None,
    direction: Optional[MovementDirection] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: int = Query(200, ge=1, le=1000),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(LedgerEntryModel).where(LedgerEntryModel.user_id == user.id)
    if item_id:
        stmt = stmt.where(LedgerEntryModel.item_id == item_id)
    if direction:
        stmt = stmt.where(LedgerEntryModel.direction == direction)
    if from_date:
        stmt = stmt.where(LedgerEntryModel.created_at >= datetime.combine(from_date, time.min))
    if to_date:
        end_excl = datetime.combine(to_date, time.min) + timedelta(days=1)
        stmt = stmt.where(LedgerEntryModel.created_at < end_excl)

    stmt = stmt.order_by(LedgerEntryModel.created_at.desc(), LedgerEntryModel.id).limit(limit)
    res = await db.execute(stmt)
    return [LedgerEntryRead(**e.to_schema) for e in res.scalars().all()]
