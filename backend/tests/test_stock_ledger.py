import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from core.errors import (
    InsufficientStock,
    InvalidDirection,
    InvalidQuantity,
    ItemNotFound,
    TransactionConflict,
)
from core.stock_ledger import (
    MAX_QUANTITY,
    item_balance,
    ledger_balance,
    normalize_quantity,
    record_movement,
    run_optimistic,
)
from db.inventory.item import Item
from db.inventory.ledger_entry import LedgerEntry


async def _entry_count(s, item_id):
    res = await s.execute(select(func.count()).select_from(LedgerEntry).where(LedgerEntry.item_id == item_id))
    return res.scalar_one()


async def _stock(s, item_id):
    res = await s.execute(
        select(Item.current_stock).where(Item.id == item_id)
    )
    return Decimal(str(res.scalar_one()))


def test_in_out_then_rejected_overdraw(run, owner, make_item):
    item = make_item()

    async def scenario(s):
        it, entry = await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=100)
        assert it.current_stock == Decimal("100")
        assert entry.direction == "in"
        assert entry.item_name == "Semente de Soja"
        assert entry.created_at is not None
        assert await _entry_count(s, item.id) == 1

        it, _ = await record_movement(s, owner_id=owner.id, item_id=item.id, direction="out", quantity=30)
        assert it.current_stock == Decimal("70")
        assert await _entry_count(s, item.id) == 2

        with pytest.raises(InsufficientStock) as exc:
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction="out", quantity=100)
        assert exc.value.available == Decimal("70")
        assert exc.value.requested == Decimal("100")

        assert await _stock(s, item.id) == Decimal("70")
        assert await _entry_count(s, item.id) == 2

    run(scenario)


def test_fractional_quantities_keep_running_balance(run, owner, make_item):
    item = make_item(name="Diesel", category="Combustível", unit="Litros (L)")
    moves = [("in", 12.5), ("out", 0.25), ("in", 3.125), ("out", 10)]

    async def scenario(s):
        for direction, qty in moves:
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction=direction, quantity=qty)
        assert await _stock(s, item.id) == Decimal("5.375")
        assert await ledger_balance(s, owner.id, item.id) == Decimal("5.375")

        bal = await item_balance(s, owner.id, item.id)
        assert bal["in_sync"] is True
        assert bal["current_stock"] == pytest.approx(5.375)

    run(scenario)


def test_out_can_drain_to_exactly_zero(run, owner, make_item):
    item = make_item()

    async def scenario(s):
        await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=40)
        it, _ = await record_movement(s, owner_id=owner.id, item_id=item.id, direction="out", quantity=40)
        assert it.current_stock == Decimal("0")

    run(scenario)


def test_out_on_fresh_item_is_rejected(run, owner, make_item):
    item = make_item()

    async def scenario(s):
        with pytest.raises(InsufficientStock):
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction="out", quantity=1)
        assert await _entry_count(s, item.id) == 0

    run(scenario)


@pytest.mark.parametrize("quantity", [0, -5, "-0.1", float("nan"), float("inf"), "abc", None, True, 0.0001])
def test_invalid_quantity_rejected_before_any_db_call(quantity):
    class NoDB:
        def __getattr__(self, name):
            raise AssertionError(f"database touched: {name}")

    with pytest.raises(InvalidQuantity):
        asyncio.run(
            record_movement(NoDB(), owner_id=None, item_id=None, direction="in", quantity=quantity)
        )


def test_invalid_direction_rejected():
    with pytest.raises(InvalidDirection):
        asyncio.run(record_movement(None, owner_id=None, item_id=None, direction="sideways", quantity=1))


def test_normalize_quantity_keeps_value_exactly():
    assert normalize_quantity("1.235") == Decimal("1.235")
    assert normalize_quantity(12.5) == Decimal("12.5")
    assert normalize_quantity(2) == Decimal("2")


@pytest.mark.parametrize("quantity", [1.2345, "0.0004", "2.0001"])
def test_more_than_three_decimals_rejected(quantity):
    with pytest.raises(InvalidQuantity) as exc:
        normalize_quantity(quantity)
    assert "3 decimal places" in exc.value.detail


@pytest.mark.parametrize("quantity", [1e12, "100000000000", "99999999999.9991"])
def test_quantity_above_column_capacity_rejected(quantity):
    with pytest.raises(InvalidQuantity):
        normalize_quantity(quantity)


def test_largest_storable_quantity_accepted():
    assert normalize_quantity(str(MAX_QUANTITY)) == MAX_QUANTITY


def test_fractional_movement_recorded_unchanged(run, owner, make_item):
    item = make_item(name="Diesel", category="Combustível", unit="Litros (L)")

    async def scenario(s):
        it, entry = await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=1.235)
        assert Decimal(str(entry.quantity)) == Decimal("1.235")
        assert Decimal(str(it.current_stock)) == Decimal("1.235")

        with pytest.raises(InvalidQuantity):
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=1.2345)
        assert await _stock(s, item.id) == Decimal("1.235")
        assert await _entry_count(s, item.id) == 1

    run(scenario)


def test_entry_that_would_overflow_balance_is_rejected(run, owner, make_item):
    item = make_item()

    async def scenario(s):
        await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=MAX_QUANTITY)
        with pytest.raises(InvalidQuantity) as exc:
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=1)
        assert "balance" in exc.value.detail

        assert await _stock(s, item.id) == MAX_QUANTITY
        assert await _entry_count(s, item.id) == 1

        # leaving stock is still allowed at the ceiling
        it, _ = await record_movement(s, owner_id=owner.id, item_id=item.id, direction="out", quantity=1)
        assert Decimal(str(it.current_stock)) == MAX_QUANTITY - 1

    run(scenario)


def test_unknown_or_foreign_item_not_found(run, owner, other_user, make_item):
    foreign = make_item(user=other_user)

    async def scenario(s):
        with pytest.raises(ItemNotFound):
            await record_movement(s, owner_id=owner.id, item_id=foreign.id, direction="in", quantity=1)
        assert await _entry_count(s, foreign.id) == 0

    run(scenario)


def test_concurrent_overdraw_only_one_commits(session_maker, owner, make_item):
    item = make_item()

    async def scenario():
        async with session_maker() as s:
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=100)

        async def take_60():
            async with session_maker() as s:
                return await record_movement(s, owner_id=owner.id, item_id=item.id, direction="out", quantity=60)

        results = await asyncio.gather(take_60(), take_60(), return_exceptions=True)

        async with session_maker() as s:
            return results, await _stock(s, item.id), await _entry_count(s, item.id)

    results, stock, entries = asyncio.run(scenario())

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStock)
    assert stock == Decimal("40")
    assert entries == 2


def test_many_concurrent_movements_keep_invariant(session_maker, owner, make_item):
    item = make_item()

    async def scenario():
        async with session_maker() as s:
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=50)

        async def move(direction, qty):
            async with session_maker() as s:
                return await record_movement(
                    s, owner_id=owner.id, item_id=item.id, direction=direction, quantity=qty, max_attempts=20
                )

        jobs = [move("out", 7) for _ in range(10)] + [move("in", 3) for _ in range(5)]
        results = await asyncio.gather(*jobs, return_exceptions=True)

        async with session_maker() as s:
            return results, await _stock(s, item.id), await ledger_balance(s, owner.id, item.id)

    results, stock, derived = asyncio.run(scenario())

    assert not [r for r in results if isinstance(r, Exception) and not isinstance(r, InsufficientStock)]
    assert stock >= 0
    assert stock == derived


def test_version_conflict_is_retried(session_maker, owner, make_item):
    item = make_item()
    calls = []

    async def scenario():
        async with session_maker() as s, session_maker() as other:

            async def attempt():
                calls.append(1)
                it = await s.get(Item, item.id, populate_existing=True)
                if len(calls) == 1:
                    # someone else commits between our read and our commit
                    await record_movement(other, owner_id=owner.id, item_id=item.id, direction="in", quantity=5)
                it.description = f"edited on attempt {len(calls)}"
                return it

            await run_optimistic(s, attempt, resource="test item", max_attempts=3)

        async with session_maker() as s:
            fresh = await s.get(Item, item.id)
            return fresh.description, Decimal(str(fresh.current_stock))

    description, stock = asyncio.run(scenario())

    assert len(calls) == 2
    assert description == "edited on attempt 2"
    # the concurrent movement was not lost
    assert stock == Decimal("5")


def test_stale_write_detected_by_version_column(session_maker, owner, make_item):
    item = make_item()

    async def scenario():
        async with session_maker() as a, session_maker() as b:
            stale = await a.get(Item, item.id)
            await record_movement(b, owner_id=owner.id, item_id=item.id, direction="in", quantity=1)
            stale.description = "late edit"
            with pytest.raises(StaleDataError):
                await a.commit()

    asyncio.run(scenario())


def test_retries_exhausted_raise_transaction_conflict(run):
    calls = []

    async def always_stale():
        calls.append(1)
        raise StaleDataError("simulated conflict")

    async def scenario(s):
        await run_optimistic(s, always_stale, resource="item x", max_attempts=3)

    with pytest.raises(TransactionConflict) as exc:
        run(scenario)
    assert exc.value.attempts == 3
    assert len(calls) == 3


def test_deleted_item_keeps_orphaned_ledger_entries(run, owner, make_item):
    item = make_item()

    async def scenario(s):
        await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=10)
        await s.delete(await s.get(Item, item.id))
        await s.commit()

        res = await s.execute(select(LedgerEntry).where(LedgerEntry.item_id == item.id))
        entries = res.scalars().all()
        assert len(entries) == 1
        assert entries[0].item_name == "Semente de Soja"

        with pytest.raises(ItemNotFound):
            await record_movement(s, owner_id=owner.id, item_id=item.id, direction="in", quantity=1)

    run(scenario)


def test_zero_max_attempts_is_not_replaced_by_default(run):
    calls = []

    async def attempt():
        calls.append(1)

    async def scenario(s):
        await run_optimistic(s, attempt, resource="item x", max_attempts=0)

    with pytest.raises(ValueError):
        run(scenario)
    assert calls == []


def test_explicit_single_attempt_is_honoured(run):
    calls = []

    async def always_stale():
        calls.append(1)
        raise StaleDataError("simulated conflict")

    async def scenario(s):
        await run_optimistic(s, always_stale, resource="item x", max_attempts=1)

    with pytest.raises(TransactionConflict) as exc:
        run(scenario)
    assert exc.value.attempts == 1
    assert len(calls) == 1
