from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


AnimalSex = Literal["Macho", "Fêmea"]


class PastureCreate(BaseModel):
    name: str
    area_ha: Optional[float] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class PastureRead(BaseModel):
    id: UUID
    name: str
    area_ha: Optional[float] = None


class LotCreate(BaseModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class LotUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class LotRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    animal_count: int
    pasture_id: Optional[UUID] = None
    pasture_name: Optional[str] = None
    created_at: Optional[datetime] = None


class AnimalCreate(BaseModel):
    identifier: str
    entry_date: date
    weight: float
    sex: AnimalSex
    breed: str

    @field_validator("identifier", "breed")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("weight")
    @classmethod
    def _weight_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("weight must be > 0")
        return v


class AnimalUpdate(BaseModel):
    identifier: Optional[str] = None
    entry_date: Optional[date] = None
    weight: Optional[float] = None
    sex: Optional[AnimalSex] = None
    breed: Optional[str] = None

    @field_validator("identifier", "breed")
    @classmethod
    def _strip_optional_required(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v

    @field_validator("weight")
    @classmethod
    def _weight_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("weight must be > 0")
        return v


class AnimalRead(BaseModel):
    id: UUID
    lot_id: UUID
    identifier: str
    entry_date: date
    weight: float
    sex: AnimalSex
    breed: str


class AnimalMoveCreate(BaseModel):
    to_lot_id: UUID


class LotRelocateCreate(BaseModel):
    pasture_id: UUID


class LotHistory(BaseModel):
    animal_moves: List[dict]
    relocations: List[dict]
