import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class MachineRead(BaseModel):
    id: UUID
    name: str
    type: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None


class MachineCreate(BaseModel):
    name: str
    type: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class MachineUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None


MaintenanceType = Literal["Preventiva", "Corretiva", "Troca de Óleo", "Revisão", "Outra"]


class MaintenanceCreate(BaseModel):
    type: MaintenanceType
    date: datetime.date
    description: Optional[str] = None
    cost: float = 0

    @field_validator("description")
    @classmethod
    def _strip_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("cost")
    @classmethod
    def _cost_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("cost must be >= 0")
        return v


class MaintenanceUpdate(BaseModel):
    type: Optional[MaintenanceType] = None
    date: Optional[datetime.date] = None
    description: Optional[str] = None
    cost: Optional[float] = None

    @field_validator("cost")
    @classmethod
    def _cost_not_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("cost must be >= 0")
        return v


class MaintenanceRead(BaseModel):
    id: UUID
    machine_id: UUID
    type: MaintenanceType
    date: datetime.date
    description: Optional[str] = None
    cost: float


class MaintenanceLog(BaseModel):
    machine: MachineRead
    maintenances: List[MaintenanceRead]
    total_cost: float
