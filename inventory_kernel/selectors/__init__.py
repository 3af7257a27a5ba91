"""Read-side queries for the inventory kernel."""

from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.selectors.replay_selector import ReplaySelector
from inventory_kernel.selectors.stock_selector import StockSelector

__all__ = ["LedgerSelector", "ReplaySelector", "StockSelector"]
