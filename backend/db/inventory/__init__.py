"""
Inventory ledger tables.

Models:
- StockRecord (quantity per product per store, table `inventory`)
- InventoryTransaction (append-only log of stock_in/stock_out/transfer_in/transfer_out)
- StockTransfer + StockTransferItem (pending -> completed moves between two stores)
"""

from .movement import InventoryTransaction
from .stock import StockRecord
from .transfer import StockTransfer, StockTransferItem

__all__ = [
    "InventoryTransaction",
    "StockRecord",
    "StockTransfer",
    "StockTransferItem",
]
