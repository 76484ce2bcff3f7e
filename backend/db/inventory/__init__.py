"""
Inventory stock ledger.

Models:
- Item (owned SKU with a cached running balance, `current_stock`)
- LedgerEntry (append-only in/out movements; the balance is their signed sum)

`current_stock` is only ever written by core.stock_ledger.
"""
