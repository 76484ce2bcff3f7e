"""
Domain errors.

Every error carries an HTTP status and a user-displayable detail so the API
can surface it as a non-fatal notification (see main.setup_exception_handlers).
"""

from decimal import Decimal
from uuid import UUID

from fastapi import status


class DomainError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidQuantity(DomainError):
    def __init__(self, quantity, reason: str = "must be a positive number"):
        super().__init__(f"quantity {reason}, got {quantity!r}")
        self.quantity = quantity
        self.reason = reason


class InvalidDirection(DomainError):
    def __init__(self, direction):
        super().__init__(f"direction must be 'in' or 'out', got {direction!r}")
        self.direction = direction


class InvalidMove(DomainError):
    pass


class ItemNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, item_id: UUID):
        super().__init__("Item not found")
        self.item_id = item_id


class InsufficientStock(DomainError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, item_id: UUID, available: Decimal, requested: Decimal):
        super().__init__(
            f"Not enough stock. Available={available} requested={requested}"
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class TransactionConflict(DomainError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, resource: str, attempts: int):
        super().__init__(
            f"Concurrent updates on {resource}; gave up after {attempts} attempts, please retry"
        )
        self.resource = resource
        self.attempts = attempts


class MachineNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, machine_id: UUID):
        super().__init__("Machine not found")
        self.machine_id = machine_id


class LotNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, lot_id: UUID):
        super().__init__("Livestock lot not found")
        self.lot_id = lot_id


class AnimalNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, animal_id: UUID):
        super().__init__("Animal not found")
        self.animal_id = animal_id


class PastureNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, pasture_id: UUID):
        super().__init__("Pasture not found")
        self.pasture_id = pasture_id


class MaintenanceNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, maintenance_id: UUID):
        super().__init__("Maintenance record not found")
        self.maintenance_id = maintenance_id
