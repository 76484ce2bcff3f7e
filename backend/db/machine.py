import uuid
from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.sql import func
from .database import Base


MAINTENANCE_TYPES = ["Preventiva", "Corretiva", "Troca de Óleo", "Revisão", "Outra"]


class Machine(Base):
    __tablename__ = "machines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "brand": self.brand,
            "model": self.model,
            "year": self.year,
        }


class MachineMaintenance(Base):
    """One service record in a machine's maintenance log."""

    __tablename__ = "machine_maintenances"
    __table_args__ = (
        CheckConstraint("cost >= 0", name="ck_machine_maintenances_cost_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    machine_id = Column(Uuid, ForeignKey("machines.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=True)
    cost = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "machine_id": self.machine_id,
            "type": self.type,
            "date": self.date,
            "description": self.description,
            "cost": float(self.cost or 0),
        }
