import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.sql import func

from ..database import Base


ITEM_CATEGORIES = ["Sementes", "Fertilizantes", "Defensivos", "Combustível", "Peças", "Adjuvantes", "Outros"]
ITEM_UNITS = ["Litros (L)", "Quilogramas (kg)", "Sacos (sc)", "Unidades (un)", "Caixas (cx)"]

# Items in this category must point at a machine and carry part metadata
PARTS_CATEGORY = "Peças"


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_items_current_stock_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    unit = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)

    part_code = Column(String, nullable=True)
    part_type = Column(String, nullable=True)
    applies_to_machine_id = Column(Uuid, nullable=True)
    applies_to_machine_name = Column(String, nullable=True)

    # Running balance, written only by core.stock_ledger
    current_stock = Column(Numeric(14, 3), nullable=False, default=0)
    version_id = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_part(self) -> bool:
        return self.category == PARTS_CATEGORY

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "category": self.category,
            "description": self.description,
            "part_code": self.part_code,
            "part_type": self.part_type,
            "applies_to_machine_id": self.applies_to_machine_id,
            "applies_to_machine_name": self.applies_to_machine_name,
            "current_stock": float(self.current_stock or 0),
            "created_at": self.created_at,
        }
