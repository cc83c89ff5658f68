"""
Trading Post Ledger

An inventory-and-ledger engine for a trading post:
- Purchases by hunters and sales by merchants
- Stock that never goes negative, under concurrent requests
- Atomic create, amend and delete with stock reversal
- Totals recomputed from priced lines, never taken on trust
"""

__version__ = "0.1.0"
