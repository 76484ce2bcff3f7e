"""Import every model module so Base.metadata knows all tables."""

from db.users import User  # noqa: F401
from db.machine import Machine, MachineMaintenance  # noqa: F401
from db.inventory.item import Item  # noqa: F401
from db.inventory.ledger_entry import LedgerEntry  # noqa: F401
from db.livestock import Animal, AnimalMove, LivestockLot, LotRelocation, Pasture  # noqa: F401
