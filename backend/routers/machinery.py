from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, select, func
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from core.auth import current_active_user
from core.errors import MachineNotFound, MaintenanceNotFound
from db.database import get_async_session
from db.machine import Machine as MachineModel, MachineMaintenance as MaintenanceModel
from db.users import User
from schemas.machinery import (
    MachineRead,
    MachineCreate,
    MachineUpdate,
    MaintenanceCreate,
    MaintenanceLog,
    MaintenanceRead,
    MaintenanceUpdate,
)

router = APIRouter()


async def _get_own_machine(db: AsyncSession, user_id: UUID, machine_id: UUID) -> MachineModel:
    res = await db.execute(
        select(MachineModel).where(MachineModel.id == machine_id, MachineModel.user_id == user_id)
    )
    m = res.scalar_one_or_none()
    if not m:
        raise MachineNotFound(machine_id)
    return m


async def _get_own_maintenance(
    db: AsyncSession, user_id: UUID, machine_id: UUID, maintenance_id: UUID
) -> MaintenanceModel:
    await _get_own_machine(db, user_id, machine_id)
    res = await db.execute(
        select(MaintenanceModel).where(
            MaintenanceModel.id == maintenance_id,
            MaintenanceModel.machine_id == machine_id,
        )
    )
    mt = res.scalar_one_or_none()
    if not mt:
        raise MaintenanceNotFound(maintenance_id)
    return mt


@router.get("/", response_model=List[MachineRead])
async def list_machines(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    res = await db.execute(
        select(MachineModel)
        .where(MachineModel.user_id == user.id)
        .order_by(func.lower(MachineModel.name).asc())
    )
    return [MachineRead(**m.to_schema) for m in res.scalars().all()]


@router.post("/", response_model=MachineRead, status_code=status.HTTP_201_CREATED)
async def create_machine(
    payload: MachineCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = MachineModel(user_id=user.id, **payload.model_dump())
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return MachineRead(**m.to_schema)


@router.get("/{machine_id}", response_model=MachineRead)
async def get_machine(
    machine_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_own_machine(db, user.id, machine_id)
    return MachineRead(**m.to_schema)


@router.patch("/{machine_id}", response_model=MachineRead)
async def update_machine(
    machine_id: UUID,
    payload: MachineUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_own_machine(db, user.id, machine_id)

    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        m.name = data["name"].strip() or m.name
    for field in ("type", "brand", "model", "year"):
        if field in data:
            setattr(m, field, data[field])

    await db.commit()
    await db.refresh(m)
    return MachineRead(**m.to_schema)


@router.delete("/{machine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_machine(
    machine_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    # Parts keep applies_to_machine_name for display; the maintenance log goes with the machine
    m = await _get_own_machine(db, user.id, machine_id)
    await db.execute(delete(MaintenanceModel).where(MaintenanceModel.machine_id == m.id))
    await db.delete(m)
    await db.commit()


# --- maintenance log --------------------------------------------------------

@router.get("/{machine_id}/maintenances", response_model=MaintenanceLog)
async def list_maintenances(
    machine_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    """Newest service first, with the machine's total maintenance cost."""
    m = await _get_own_machine(db, user.id, machine_id)
    res = await db.execute(
        select(MaintenanceModel)
        .where(MaintenanceModel.machine_id == m.id)
        .order_by(MaintenanceModel.date.desc(), MaintenanceModel.created_at.desc())
    )
    records = [MaintenanceRead(**mt.to_schema) for mt in res.scalars().all()]
    return MaintenanceLog(
        machine=MachineRead(**m.to_schema),
        maintenances=records,
        total_cost=round(sum(r.cost for r in records), 2),
    )


@router.post("/{machine_id}/maintenances", response_model=MaintenanceRead, status_code=status.HTTP_201_CREATED)
async def create_maintenance(
    machine_id: UUID,
    payload: MaintenanceCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    m = await _get_own_machine(db, user.id, machine_id)
    mt = MaintenanceModel(machine_id=m.id, user_id=user.id, **payload.model_dump())
    db.add(mt)
    await db.commit()
    await db.refresh(mt)
    return MaintenanceRead(**mt.to_schema)


@router.patch("/{machine_id}/maintenances/{maintenance_id}", response_model=MaintenanceRead)
async def update_maintenance(
    machine_id: UUID,
    maintenance_id: UUID,
    payload: MaintenanceUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    mt = await _get_own_maintenance(db, user.id, machine_id, maintenance_id)

    data = payload.model_dump(exclude_unset=True)
    for field in ("type", "date", "cost"):
        if data.get(field) is not None:
            setattr(mt, field, data[field])
    if "description" in data:
        mt.description = (data["description"] or "").strip() or None

    await db.commit()
    await db.refresh(mt)
    return MaintenanceRead(**mt.to_schema)


@router.delete("/{machine_id}/maintenances/{maintenance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_maintenance(
    machine_id: UUID,
    maintenance_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    mt = await _get_own_maintenance(db, user.id, machine_id, maintenance_id)
    await db.delete(mt)
    await db.commit()
