from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

from db.inventory.item import ITEM_CATEGORIES, PARTS_CATEGORY


MovementDirection = Literal["in", "out"]


def _strip_nullable(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


def _known_category(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in ITEM_CATEGORIES:
        raise ValueError(f"category must be one of {', '.join(ITEM_CATEGORIES)}")
    return v


class ItemCreate(BaseModel):
    name: str
    unit: str
    category: str
    description: Optional[str] = None
    part_code: Optional[str] = None
    part_type: Optional[str] = None
    applies_to_machine_id: Optional[UUID] = None

    @field_validator("name", "unit", "category")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("category")
    @classmethod
    def _check_category(cls, v: str) -> str:
        return _known_category(v)

    @field_validator("description", "part_code", "part_type")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return _strip_nullable(v)

    @model_validator(mode="after")
    def _validate_part_fields(self):
        # parts need a code, a type and the machine they fit
        if self.category == PARTS_CATEGORY:
            if not self.part_code or not self.part_type or not self.applies_to_machine_id:
                raise ValueError("Peças requires part_code, part_type and applies_to_machine_id")
        return self


class ItemUpdate(BaseModel):
    name: Optional[str] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    part_code: Optional[str] = None
    part_type: Optional[str] = None
    applies_to_machine_id: Optional[UUID] = None

    @field_validator("name", "unit", "category")
    @classmethod
    def _strip_optional_required(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = (v or "").strip()
        if not v:
            raise ValueError("cannot be empty")
        return v

    @field_validator("category")
    @classmethod
    def _check_category(cls, v: Optional[str]) -> Optional[str]:
        return _known_category(v)

    @field_validator("description", "part_code", "part_type")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return _strip_nullable(v)


class ItemRead(BaseModel):
    id: UUID
    name: str
    unit: str
    category: str
    description: Optional[str] = None
    part_code: Optional[str] = None
    part_type: Optional[str] = None
    applies_to_machine_id: Optional[UUID] = None
    applies_to_machine_name: Optional[str] = None
    current_stock: float
    created_at: Optional[datetime] = None


class ItemOptions(BaseModel):
    categories: List[str]
    units: List[str]


class ItemBalance(BaseModel):
    item_id: UUID
    name: str
    unit: str
    current_stock: float
    ledger_balance: float
    in_sync: bool


class MovementCreate(BaseModel):
    item_id: UUID
    direction: MovementDirection
    # sign and range are checked by core.stock_ledger (InvalidQuantity)
    quantity: float
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def _strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return _strip_nullable(v)


class LedgerEntryRead(BaseModel):
    id: UUID
    item_id: UUID
    item_name: str
    direction: MovementDirection
    quantity: float
    notes: Optional[str] = None
    user_id: UUID
    created_at: datetime


class MovementResult(BaseModel):
    entry: LedgerEntryRead
    item: ItemRead
