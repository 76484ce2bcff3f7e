"""
Compare every item's cached current_stock with the signed sum of its ledger entries.

Read-only: prints discrepancies and exits 1 when any are found. Orphaned ledger
entries (item deleted) are counted but not treated as discrepancies.

Run from backend/:
  uv run python scripts/check_stock_sync.py [--item-id UUID] [--show-all]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402

from core.config import settings  # noqa: E402
from core.logging_config import configure_logging  # noqa: E402
from core.stock_ledger import item_balance  # noqa: E402
from db.database import async_session_maker  # noqa: E402
from db.inventory.item import Item  # noqa: E402
from db.inventory.ledger_entry import LedgerEntry  # noqa: E402

logger = logging.getLogger("check_stock_sync")


async def check(session, item_id: uuid.UUID | None = None, show_all: bool = False) -> list[dict]:
    stmt = select(Item.id, Item.user_id).order_by(Item.user_id, Item.name)
    if item_id:
        stmt = stmt.where(Item.id == item_id)
    rows = (await session.execute(stmt)).all()

    discrepancies = []
    for (iid, owner_id) in rows:
        bal = await item_balance(session, owner_id, iid)
        if not bal["in_sync"]:
            discrepancies.append(bal)
            logger.warning(
                "OUT OF SYNC %s (%s): cached=%s ledger=%s",
                bal["name"], iid, bal["current_stock"], bal["ledger_balance"],
            )
        elif show_all:
            logger.info("ok %s (%s): %s %s", bal["name"], iid, bal["current_stock"], bal["unit"])

    existing = select(Item.id)
    orphans = (
        await session.execute(
            select(LedgerEntry.item_id).where(LedgerEntry.item_id.not_in(existing)).distinct()
        )
    ).scalars().all()

    logger.info(
        "Checked %d items: %d out of sync, %d deleted items with ledger history",
        len(rows), len(discrepancies), len(orphans),
    )
    return discrepancies


async def main(item_id: uuid.UUID | None, show_all: bool) -> int:
    async with async_session_maker() as session:
        discrepancies = await check(session, item_id=item_id, show_all=show_all)
    return 1 if discrepancies else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--item-id", type=uuid.UUID, default=None, help="Check one item only")
    parser.add_argument("--show-all", action="store_true", help="Also list items that are in sync")
    args = parser.parse_args()

    configure_logging(settings.log_level)
    sys.exit(asyncio.run(main(args.item_id, args.show_all)))
