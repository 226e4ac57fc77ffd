"""
Inventory Module (``farm_modules.inventory``).

Responsibility
--------------
Goods receipts and issues for farm inputs (seed, fertiliser, diesel...).
Receipts add stock at cost, issues remove it at weighted average cost, and
both post balanced ledger entries through the kernel ``PostingRunner``.

Architecture
------------
Layer: **Modules** -- ORM, frozen DTOs, a stock service, read-only selectors
and two orchestrators.  Imports from ``farm_kernel`` and ``farm_config``
but never the reverse.

Failure Modes
-------------
- ``InsufficientStockError`` when an issue exceeds stock on hand.
- Any exception rolls the orchestrator's transaction back before re-raising.
"""

from farm_modules.inventory.models import MovementType, StockMovementView, StockOnHand
from farm_modules.inventory.orm import (
    InvGrn,
    InvGrnLine,
    InvIssue,
    InvIssueLine,
    InvItem,
    InvStockBalance,
    InvStockMovement,
    InvStore,
)
from farm_modules.inventory.selectors import InventorySelector
from farm_modules.inventory.service import (
    INVENTORY_GRN,
    INVENTORY_ISSUE,
    GoodsReceiptPostingService,
    InventoryIssuePostingService,
)
from farm_modules.inventory.stock import StockService

__all__ = [
    "INVENTORY_GRN",
    "INVENTORY_ISSUE",
    "GoodsReceiptPostingService",
    "InventoryIssuePostingService",
    "InventorySelector",
    "InvGrn",
    "InvGrnLine",
    "InvIssue",
    "InvIssueLine",
    "InvItem",
    "InvStockBalance",
    "InvStockMovement",
    "InvStore",
    "MovementType",
    "StockMovementView",
    "StockOnHand",
    "StockService",
]
