"""
Inventory posting orchestrators (``farm_modules.inventory.service``).

Responsibility
--------------
Posts and reverses the two inventory document families through the kernel
``PostingRunner`` and keeps stock balances in step through ``StockService``:

Goods receipt (``INVENTORY_GRN``)::

    Dr INVENTORY_INPUTS   sum(qty * unit_cost)
    Cr AP                 when the GRN has a supplier
    Cr CASH               otherwise

    no crop cycle, no allocation rows; one GRN movement per line.

Issue (``INVENTORY_ISSUE``)::

    Dr INPUTS_EXPENSE     sum(qty * WAC)
    Cr INVENTORY_INPUTS   sum(qty * WAC)

    one POOL_SHARE allocation row against the project's party; one ISSUE
    movement (negative quantity and value) per line.

Reversal re-applies the negation of every movement of the original posting
group, so balances and WAC return to where they were.

Architecture
------------
Layer: **Modules**.  ``InventoryIssuePostingService`` satisfies both
``DocumentPoster`` and ``InventoryPoster``; the machinery service
orchestrator uses it with ``auto_commit=False`` for payment in kind.

Failure Modes
-------------
- ``InsufficientStockError`` -- an issue line exceeds stock on hand, or a GRN
  reversal would take stock below zero.
- ``DocumentValidationError`` -- missing store, item, crop cycle or project,
  or a non-positive line quantity.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock
from farm_kernel.exceptions import DocumentValidationError, InsufficientStockError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.posting import PostingGroup
from farm_kernel.models.reference import Project
from farm_kernel.selectors.base import get_for_tenant
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import AllocationSpec, DocumentFamily, PostingPlan
from farm_kernel.utils.money import ZERO
from farm_modules._posting_helpers import build_runner, debit_credit_pair, money, snapshot
from farm_modules.inventory.models import (
    InventoryAllocationType,
    IssueLineValuation,
    MovementType,
)
from farm_modules.inventory.orm import InvGrn, InvIssue, InvItem, InvStore
from farm_modules.inventory.stock import StockService

logger = get_logger("modules.inventory.service")

INVENTORY_GRN = DocumentFamily(name="inv_grn", source_type="INVENTORY_GRN", model=InvGrn)

INVENTORY_ISSUE = DocumentFamily(name="inv_issue", source_type="INVENTORY_ISSUE", model=InvIssue)


def _require(condition: bool, family: DocumentFamily, document_id: UUID, reason: str) -> None:
    if not condition:
        raise DocumentValidationError(family.name, str(document_id), reason)


# =============================================================================
# Goods receipt
# =============================================================================

class GoodsReceiptPostingService:
    """post / reverse for goods receipts."""

    def __init__(
        self,
        session: Session,
        account_resolver: AccountResolver,
        period_guard: PeriodGuard,
        config: PostingConfig,
        clock: Clock | None = None,
        *,
        auto_commit: bool = True,
    ):
        self._session = session
        self._accounts = account_resolver
        self._period_guard = period_guard
        self._config = config
        self._stock = StockService(session)
        self._runner = build_runner(session, period_guard, config, clock, auto_commit)

    def post(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        return self._runner.post(
            INVENTORY_GRN,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda grn: self._prepare(grn, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        return self._runner.reverse(
            INVENTORY_GRN,
            document_id,
            tenant_id,
            posting_date,
            reason,
            on_reversed=lambda grn, original, reversal: self._stock.reverse_movements(
                tenant_id, original.id, reversal.id, posting_date
            ),
        )

    def _prepare(self, grn: InvGrn, tenant_id: UUID, posting_date: date) -> PostingPlan:
        self._period_guard.ensure_posting_date_allowed(tenant_id, posting_date)

        _require(
            get_for_tenant(self._session, InvStore, grn.store_id, tenant_id) is not None,
            INVENTORY_GRN, grn.id, "store not found",
        )
        _require(bool(grn.lines), INVENTORY_GRN, grn.id, "goods receipt has no lines")

        line_totals: list[tuple[object, Decimal]] = []
        for line in grn.lines:
            _require(
                get_for_tenant(self._session, InvItem, line.item_id, tenant_id) is not None,
                INVENTORY_GRN, grn.id, f"item {line.item_id} not found",
            )
            _require(line.qty > ZERO, INVENTORY_GRN, grn.id, "line quantity must be positive")
            _require(line.unit_cost >= ZERO, INVENTORY_GRN, grn.id, "unit cost cannot be negative")
            line_totals.append((line, money(self._config, line.qty * line.unit_cost)))

        total = sum((t for _, t in line_totals), ZERO)
        credit_role = "AP" if grn.supplier_party_id is not None else "CASH"
        ledger_lines = debit_credit_pair(
            self._accounts, self._config, tenant_id, "INVENTORY_INPUTS", credit_role, total
        )

        def receive_stock(group: PostingGroup) -> None:
            for line, line_total in line_totals:
                line.line_total = line_total
                self._stock.apply_movement(
                    tenant_id,
                    group.id,
                    grn.store_id,
                    line.item_id,
                    MovementType.GRN.value,
                    line.qty,
                    line_total,
                    line.unit_cost,
                    posting_date,
                    INVENTORY_GRN.name,
                    grn.id,
                )

        return PostingPlan(
            crop_cycle_id=None,
            allocations=[],
            ledger_lines=ledger_lines,
            on_created=receive_stock,
        )


# =============================================================================
# Issue
# =============================================================================

class InventoryIssuePostingService:
    """
    post / reverse for inventory issues.

    ``post_issue`` / ``reverse_issue`` are the same operations under the
    names other orchestrators consume through ``InventoryPoster``.
    """

    def __init__(
        self,
        session: Session,
        account_resolver: AccountResolver,
        period_guard: PeriodGuard,
        config: PostingConfig,
        clock: Clock | None = None,
        *,
        auto_commit: bool = True,
    ):
        self._session = session
        self._accounts = account_resolver
        self._period_guard = period_guard
        self._config = config
        self._stock = StockService(session)
        self._runner = build_runner(session, period_guard, config, clock, auto_commit)

    def post(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        return self._runner.post(
            INVENTORY_ISSUE,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda issue: self._prepare(issue, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        return self._runner.reverse(
            INVENTORY_ISSUE,
            document_id,
            tenant_id,
            posting_date,
            reason,
            on_reversed=lambda issue, original, reversal: self._stock.reverse_movements(
                tenant_id, original.id, reversal.id, posting_date
            ),
        )

    post_issue = post
    reverse_issue = reverse

    def value_lines(self, issue: InvIssue, tenant_id: UUID) -> list[IssueLineValuation]:
        """
        Value every line at the store's current WAC.

        Raises:
            InsufficientStockError: the lines of an item need more than is on
                hand.
        """
        required: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        valuations = []
        for line in issue.lines:
            _require(line.qty > ZERO, INVENTORY_ISSUE, issue.id, "line quantity must be positive")
            required[line.item_id] += line.qty
            balance = self._stock.get_balance(tenant_id, issue.store_id, line.item_id)
            on_hand = balance.qty_on_hand if balance is not None else ZERO
            if on_hand < required[line.item_id]:
                raise InsufficientStockError(
                    str(line.item_id), str(issue.store_id), str(on_hand), str(required[line.item_id])
                )
            wac = balance.wac_cost
            valuations.append(
                IssueLineValuation(
                    line_id=line.id,
                    item_id=line.item_id,
                    qty=line.qty,
                    unit_cost=wac,
                    line_total=money(self._config, line.qty * wac),
                )
            )
        return valuations

    def _prepare(self, issue: InvIssue, tenant_id: UUID, posting_date: date) -> PostingPlan:
        _require(
            issue.crop_cycle_id is not None and issue.project_id is not None,
            INVENTORY_ISSUE, issue.id, "crop cycle and project are required to post an issue",
        )
        self._period_guard.check_posting(issue.crop_cycle_id, tenant_id, posting_date)
        project = get_for_tenant(self._session, Project, issue.project_id, tenant_id)
        _require(project is not None, INVENTORY_ISSUE, issue.id, "project not found")
        _require(bool(issue.lines), INVENTORY_ISSUE, issue.id, "issue has no lines")

        valuations = self.value_lines(issue, tenant_id)
        total = sum((v.line_total for v in valuations), ZERO)
        ledger_lines = debit_credit_pair(
            self._accounts, self._config, tenant_id, "INPUTS_EXPENSE", "INVENTORY_INPUTS", total
        )

        def issue_stock(group: PostingGroup) -> None:
            lines_by_id = {line.id: line for line in issue.lines}
            for valuation in valuations:
                line = lines_by_id[valuation.line_id]
                line.unit_cost_snapshot = valuation.unit_cost
                line.line_total = valuation.line_total
                self._stock.apply_movement(
                    tenant_id,
                    group.id,
                    issue.store_id,
                    valuation.item_id,
                    MovementType.ISSUE.value,
                    -valuation.qty,
                    -valuation.line_total,
                    valuation.unit_cost,
                    posting_date,
                    INVENTORY_ISSUE.name,
                    issue.id,
                )
            logger.info(
                "inventory_issued",
                extra={
                    "doc_no": issue.doc_no,
                    "posting_group_id": str(group.id),
                    "line_count": len(valuations),
                    "total_value": total,
                },
            )

        return PostingPlan(
            crop_cycle_id=issue.crop_cycle_id,
            allocations=[
                AllocationSpec(
                    allocation_type=InventoryAllocationType.POOL_SHARE.value,
                    amount=total,
                    project_id=issue.project_id,
                    party_id=project.party_id,
                    machine_id=issue.machine_id,
                    allocation_scope=issue.allocation_mode,
                    rule_snapshot=snapshot(
                        source="inv_issue",
                        inv_issue_id=issue.id,
                        allocation_mode=issue.allocation_mode,
                        hari_id=issue.hari_id,
                        landlord_share_pct=issue.landlord_share_pct,
                        hari_share_pct=issue.hari_share_pct,
                        lines=[
                            {"item_id": v.item_id, "qty": v.qty, "wac": v.unit_cost, "line_total": v.line_total}
                            for v in valuations
                        ],
                    ),
                )
            ],
            ledger_lines=ledger_lines,
            on_created=issue_stock,
        )
