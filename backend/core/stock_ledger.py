"""
Stock ledger: the single write path for Item.current_stock.

A movement is recorded as one optimistic transaction: read the item (and its
version), check the balance, write the new balance plus an immutable
LedgerEntry, commit. The item UPDATE is conditional on the version that was
read (SQLAlchemy `version_id_col`), so a concurrent movement makes the commit
fail with StaleDataError and the whole attempt is replayed against the fresh
balance, up to `max_attempts` times.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.config import settings
from core.errors import (
    DomainError,
    InsufficientStock,
    InvalidDirection,
    InvalidQuantity,
    ItemNotFound,
    TransactionConflict,
)
from db.inventory.item import Item
from db.inventory.ledger_entry import DIRECTION_IN, DIRECTION_OUT, DIRECTIONS, LedgerEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUANTITY_QUANT = Decimal("0.001")
# Largest value a Numeric(14, 3) column holds
MAX_QUANTITY = Decimal("99999999999.999")


def normalize_quantity(quantity) -> Decimal:
    """
    Coerce to Decimal without changing the value.

    Rejects non-numbers, non-finite values, anything <= 0, more than three
    decimal places, and values a stock column could not store.
    """
    if isinstance(quantity, bool):
        raise InvalidQuantity(quantity)
    try:
        q = Decimal(str(quantity))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantity(quantity)
    if not q.is_finite() or q <= 0:
        raise InvalidQuantity(quantity)
    if q > MAX_QUANTITY:
        raise InvalidQuantity(quantity, f"must not exceed {MAX_QUANTITY}")
    if q != q.quantize(QUANTITY_QUANT):
        raise InvalidQuantity(quantity, "must have at most 3 decimal places")
    return q.quantize(QUANTITY_QUANT)


def normalize_direction(direction) -> str:
    d = (direction or "").strip().lower() if isinstance(direction, str) else direction
    if d not in DIRECTIONS:
        raise InvalidDirection(direction)
    return d


async def run_optimistic(
    db: AsyncSession,
    attempt: Callable[[], Awaitable[T]],
    *,
    resource: str,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run `attempt` and commit, replaying it when the commit loses a version race.

    `attempt` must re-read everything it depends on (each call starts from a
    rolled-back session). Domain errors abort immediately; nothing is written.
    """
    if max_attempts is None:
        max_attempts = settings.ledger_max_attempts
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    for n in range(1, max_attempts + 1):
        try:
            result = await attempt()
            await db.commit()
            return result
        except StaleDataError:
            await db.rollback()
            logger.warning("Version conflict on %s (attempt %d/%d), retrying", resource, n, max_attempts)
        except DomainError:
            await db.rollback()
            raise
        except Exception:
            await db.rollback()
            logger.exception("Transaction on %s failed", resource)
            raise
    raise TransactionConflict(resource, max_attempts)


async def _load_item(db: AsyncSession, owner_id: UUID, item_id: UUID) -> Item:
    res = await db.execute(
        select(Item)
        .where(Item.id == item_id, Item.user_id == owner_id)
        .execution_options(populate_existing=True)
    )
    item = res.scalar_one_or_none()
    if not item:
        raise ItemNotFound(item_id)
    return item


async def record_movement(
    db: AsyncSession,
    *,
    owner_id: UUID,
    item_id: UUID,
    direction: str,
    quantity,
    notes: Optional[str] = None,
    max_attempts: Optional[int] = None,
) -> Tuple[Item, LedgerEntry]:
    """
    Record one stock movement and update the item's running balance atomically.

    Raises InvalidQuantity / InvalidDirection before touching the database,
    ItemNotFound, InsufficientStock or TransactionConflict otherwise.
    """
    direction = normalize_direction(direction)
    qty = normalize_quantity(quantity)

    async def _attempt() -> Tuple[Item, LedgerEntry]:
        item = await _load_item(db, owner_id, item_id)
        current = Decimal(str(item.current_stock or 0))

        if direction == DIRECTION_OUT and current < qty:
            raise InsufficientStock(item_id, available=current, requested=qty)

        new_stock = current + qty if direction == DIRECTION_IN else current - qty
        if new_stock > MAX_QUANTITY:
            raise InvalidQuantity(qty, f"would push the balance past {MAX_QUANTITY}")

        item.current_stock = new_stock
        entry = LedgerEntry(
            item_id=item.id,
            item_name=item.name,
            direction=direction,
            quantity=qty,
            notes=notes,
            user_id=owner_id,
        )
        db.add(entry)
        return item, entry

    try:
        item, entry = await run_optimistic(db, _attempt, resource=f"item {item_id}", max_attempts=max_attempts)
    except InsufficientStock as e:
        logger.info("Rejected %s %s on item %s: available %s", direction, qty, item_id, e.available)
        raise

    # created_at is server-generated
    await db.refresh(entry)
    await db.refresh(item)
    logger.info(
        "Recorded %s %s on item %s, balance now %s", direction, qty, item_id, item.current_stock
    )
    return item, entry


async def ledger_balance(db: AsyncSession, owner_id: UUID, item_id: UUID) -> Decimal:
    """Signed sum of every ledger entry for the item."""
    signed = case(
        (LedgerEntry.direction == DIRECTION_IN, LedgerEntry.quantity),
        else_=-LedgerEntry.quantity,
    )
    res = await db.execute(
        select(func.coalesce(func.sum(signed), 0)).where(
            LedgerEntry.item_id == item_id, LedgerEntry.user_id == owner_id
        )
    )
    return Decimal(str(res.scalar_one())).quantize(QUANTITY_QUANT)


async def item_balance(db: AsyncSession, owner_id: UUID, item_id: UUID) -> dict:
    """Cached balance next to the ledger-derived one."""
    item = await _load_item(db, owner_id, item_id)

    cached = Decimal(str(item.current_stock or 0)).quantize(QUANTITY_QUANT)
    derived = await ledger_balance(db, owner_id, item_id)
    return {
        "item_id": item.id,
        "name": item.name,
        "unit": item.unit,
        "current_stock": float(cached),
        "ledger_balance": float(derived),
        "in_sync": cached == derived,
    }
