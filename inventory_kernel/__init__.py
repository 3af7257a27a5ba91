"""
Inventory Kernel

A ledger-first inventory system with:
- Append-only stock movement ledger as the source of truth
- Guarded atomic quantity updates (never negative)
- Purchase receiving and sales fulfillment state machines
- Explicit Decimal order totals
- Replay verification of stored quantities
"""

__version__ = "0.1.0"
