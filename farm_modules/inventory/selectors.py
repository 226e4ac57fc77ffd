"""
InventorySelector -- read-only stock views.

Tenant-scoped reads of stock on hand and stock movements, returned as frozen
DTOs.  Never writes.
"""

from datetime import date
from uuid import UUID

from farm_kernel.selectors.base import BaseSelector, tenant_select
from farm_modules.inventory.models import StockMovementView, StockOnHand
from farm_modules.inventory.orm import InvStockBalance, InvStockMovement


class InventorySelector(BaseSelector):
    """Stock on hand and movement history for one tenant."""

    def stock_on_hand(
        self,
        tenant_id: UUID,
        store_id: UUID | None = None,
        item_id: UUID | None = None,
    ) -> list[StockOnHand]:
        criteria = []
        if store_id is not None:
            criteria.append(InvStockBalance.store_id == store_id)
        if item_id is not None:
            criteria.append(InvStockBalance.item_id == item_id)
        balances = self.session.execute(
            tenant_select(InvStockBalance, tenant_id, *criteria).order_by(
                InvStockBalance.store_id, InvStockBalance.item_id
            )
        ).scalars()
        return [
            StockOnHand(
                store_id=b.store_id,
                item_id=b.item_id,
                qty_on_hand=b.qty_on_hand,
                value_on_hand=b.value_on_hand,
                wac_cost=b.wac_cost,
            )
            for b in balances
        ]

    def movements(
        self,
        tenant_id: UUID,
        store_id: UUID | None = None,
        item_id: UUID | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[StockMovementView]:
        criteria = []
        if store_id is not None:
            criteria.append(InvStockMovement.store_id == store_id)
        if item_id is not None:
            criteria.append(InvStockMovement.item_id == item_id)
        if from_date is not None:
            criteria.append(InvStockMovement.occurred_on >= from_date)
        if to_date is not None:
            criteria.append(InvStockMovement.occurred_on <= to_date)
        rows = self.session.execute(
            tenant_select(InvStockMovement, tenant_id, *criteria).order_by(
                InvStockMovement.occurred_on.desc()
            )
        ).scalars()
        return [
            StockMovementView(
                posting_group_id=m.posting_group_id,
                movement_type=m.movement_type,
                store_id=m.store_id,
                item_id=m.item_id,
                qty_delta=m.qty_delta,
                value_delta=m.value_delta,
                unit_cost_snapshot=m.unit_cost_snapshot,
                occurred_on=m.occurred_on,
                source_type=m.source_type,
                source_id=m.source_id,
            )
            for m in rows
        ]
