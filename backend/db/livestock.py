"""
Livestock records.

Models:
- Pasture (named area a lot can graze on)
- LivestockLot (group of animals, cached `animal_count`, optional current pasture)
- Animal (one head, belongs to exactly one lot)
- AnimalMove / LotRelocation (append-only history)

`animal_count` and `pasture_id` change only inside core.livestock_moves.
"""

import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.sql import func

from .database import Base


ANIMAL_SEXES = ("Macho", "Fêmea")
BREEDS = ["Nelore", "Angus", "Brahman", "Girolando", "Holandês"]


class Pasture(Base):
    __tablename__ = "pastures"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    area_ha = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class LivestockLot(Base):
    __tablename__ = "livestock_lots"
    __table_args__ = (
        CheckConstraint("animal_count >= 0", name="ck_livestock_lots_animal_count_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    pasture_id = Column(Uuid, ForeignKey("pastures.id", ondelete="SET NULL"), nullable=True, index=True)

    animal_count = Column(Integer, nullable=False, default=0)
    version_id = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    __mapper_args__ = {"version_id_col": version_id}


class Animal(Base):
    __tablename__ = "animals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lot_id = Column(Uuid, ForeignKey("livestock_lots.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    identifier = Column(String, nullable=False)  # ear tag or name
    entry_date = Column(Date, nullable=False)
    weight = Column(Numeric(8, 2), nullable=False)
    sex = Column(String, nullable=False)
    breed = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "lot_id": self.lot_id,
            "identifier": self.identifier,
            "entry_date": self.entry_date,
            "weight": float(self.weight),
            "sex": self.sex,
            "breed": self.breed,
        }


class AnimalMove(Base):
    __tablename__ = "animal_moves"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    animal_id = Column(Uuid, nullable=False, index=True)
    from_lot_id = Column(Uuid, nullable=False, index=True)
    to_lot_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)


class LotRelocation(Base):
    __tablename__ = "lot_relocations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lot_id = Column(Uuid, nullable=False, index=True)
    from_pasture_id = Column(Uuid, nullable=True)
    to_pasture_id = Column(Uuid, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
