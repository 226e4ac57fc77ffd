"""
Inventory Domain Models (``farm_modules.inventory.models``).

Enumerations and frozen DTOs for the inventory module.  The DTOs are what
``InventorySelector`` hands to callers; they carry no database identity.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class MovementType(str, Enum):
    """Stock movement categories."""
    GRN = "GRN"
    ISSUE = "ISSUE"


class InventoryAllocationType(str, Enum):
    POOL_SHARE = "POOL_SHARE"


@dataclass(frozen=True)
class StockOnHand:
    """Quantity, value and weighted average cost of one item in one store."""
    store_id: UUID
    item_id: UUID
    qty_on_hand: Decimal
    value_on_hand: Decimal
    wac_cost: Decimal


@dataclass(frozen=True)
class StockMovementView:
    posting_group_id: UUID
    movement_type: str
    store_id: UUID
    item_id: UUID
    qty_delta: Decimal
    value_delta: Decimal
    unit_cost_snapshot: Decimal
    occurred_on: date
    source_type: str
    source_id: UUID


@dataclass(frozen=True)
class IssueLineValuation:
    """WAC valuation of one issue line, computed before the posting group exists."""
    line_id: UUID
    item_id: UUID
    qty: Decimal
    unit_cost: Decimal
    line_total: Decimal
