"""
StockService -- stock balances and movements.

Responsibility:
    Applies a stock movement (quantity and value delta) to the balance of
    one item in one store and records the movement against the posting
    group that caused it.  Weighted average cost is recomputed after every
    movement:

        wac = value_on_hand / qty_on_hand     (0 when qty_on_hand is 0)

Architecture position:
    Modules > Inventory.  Called from the GRN and issue orchestrators'
    posting hooks.  Flushes only; the orchestrator owns the transaction.

Failure modes:
    - InsufficientStockError when a movement would take the quantity on
      hand below zero.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from farm_kernel.exceptions import InsufficientStockError
from farm_kernel.logging_config import get_logger
from farm_kernel.selectors.base import tenant_select
from farm_kernel.services.base import BaseService
from farm_kernel.utils.money import ZERO
from farm_modules.inventory.orm import InvStockBalance, InvStockMovement

logger = get_logger("modules.inventory.stock")

WAC_QUANTUM = Decimal("0.000000001")


class StockService(BaseService):
    """Stock balance maintenance inside the caller's transaction."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_balance(
        self, tenant_id: UUID, store_id: UUID, item_id: UUID, *, for_update: bool = False
    ) -> InvStockBalance | None:
        stmt = tenant_select(
            InvStockBalance,
            tenant_id,
            InvStockBalance.store_id == store_id,
            InvStockBalance.item_id == item_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_or_create_balance(
        self, tenant_id: UUID, store_id: UUID, item_id: UUID
    ) -> InvStockBalance:
        balance = self.get_balance(tenant_id, store_id, item_id, for_update=True)
        if balance is not None:
            return balance
        balance = InvStockBalance(
            tenant_id=tenant_id,
            store_id=store_id,
            item_id=item_id,
            qty_on_hand=ZERO,
            value_on_hand=ZERO,
            wac_cost=ZERO,
        )
        self.session.add(balance)
        self.session.flush()
        return balance

    def apply_movement(
        self,
        tenant_id: UUID,
        posting_group_id: UUID,
        store_id: UUID,
        item_id: UUID,
        movement_type: str,
        qty_delta: Decimal,
        value_delta: Decimal,
        unit_cost: Decimal,
        occurred_on: date,
        source_type: str,
        source_id: UUID,
    ) -> InvStockMovement:
        """
        Record one movement and update the balance.

        ``qty_delta`` / ``value_delta`` are positive for stock in and
        negative for stock out.
        """
        balance = self.get_or_create_balance(tenant_id, store_id, item_id)
        new_qty = balance.qty_on_hand + qty_delta
        if new_qty < ZERO:
            raise InsufficientStockError(
                str(item_id), str(store_id), str(balance.qty_on_hand), str(-qty_delta)
            )
        new_value = balance.value_on_hand + value_delta

        movement = InvStockMovement(
            tenant_id=tenant_id,
            posting_group_id=posting_group_id,
            movement_type=movement_type,
            store_id=store_id,
            item_id=item_id,
            qty_delta=qty_delta,
            value_delta=value_delta,
            unit_cost_snapshot=unit_cost,
            occurred_on=occurred_on,
            source_type=source_type,
            source_id=source_id,
        )
        self.session.add(movement)

        balance.qty_on_hand = new_qty
        balance.value_on_hand = new_value
        balance.wac_cost = (
            (new_value / new_qty).quantize(WAC_QUANTUM) if new_qty != ZERO else ZERO
        )
        self.session.flush()

        logger.debug(
            "stock_movement_applied",
            extra={
                "movement_type": movement_type,
                "store_id": str(store_id),
                "item_id": str(item_id),
                "qty_delta": qty_delta,
                "value_delta": value_delta,
                "qty_on_hand": new_qty,
                "wac_cost": balance.wac_cost,
            },
        )
        return movement

    def movements_for_group(
        self, tenant_id: UUID, posting_group_id: UUID
    ) -> list[InvStockMovement]:
        return list(
            self.session.execute(
                tenant_select(
                    InvStockMovement,
                    tenant_id,
                    InvStockMovement.posting_group_id == posting_group_id,
                )
            ).scalars()
        )

    def reverse_movements(
        self,
        tenant_id: UUID,
        original_posting_group_id: UUID,
        reversal_posting_group_id: UUID,
        occurred_on: date,
    ) -> list[InvStockMovement]:
        """Apply the negation of every movement of the original group."""
        return [
            self.apply_movement(
                tenant_id,
                reversal_posting_group_id,
                original.store_id,
                original.item_id,
                original.movement_type,
                -original.qty_delta,
                -original.value_delta,
                original.unit_cost_snapshot,
                occurred_on,
                original.source_type,
                original.source_id,
            )
            for original in self.movements_for_group(tenant_id, original_posting_group_id)
        ]
