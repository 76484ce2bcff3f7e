import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.sql import func

from ..database import Base


DIRECTION_IN = "in"
DIRECTION_OUT = "out"
DIRECTIONS = (DIRECTION_IN, DIRECTION_OUT)


class LedgerEntry(Base):
    """One immutable stock movement. Never updated or deleted."""

    __tablename__ = "inventory_ledger_entries"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_ledger_quantity_positive"),
        CheckConstraint("direction IN ('in', 'out')", name="ck_ledger_direction"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # No FK: entries outlive their item (orphans are expected after item deletion)
    item_id = Column(Uuid, nullable=False, index=True)
    item_name = Column(String, nullable=False)

    direction = Column(String(3), nullable=False)
    quantity = Column(Numeric(14, 3), nullable=False)
    notes = Column(Text, nullable=True)

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    @property
    def signed_quantity(self):
        return self.quantity if self.direction == DIRECTION_IN else -self.quantity

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "direction": self.direction,
            "quantity": float(self.quantity),
            "notes": self.notes,
            "user_id": self.user_id,
            "created_at": self.created_at,
        }
