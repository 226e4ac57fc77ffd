"""
Internal machinery service posting (``farm_modules.machinery.service_posting``).

An internal service is machine work the farm does for one of its own
projects, priced from the service's rate card at posting time:

    amount = round(base_rate * quantity, 2)

    Dr MACHINERY_SERVICE_EXPENSE             amount
    Cr MACHINERY_INTERNAL_SERVICE_CLEARING   amount

plus one MACHINERY_SERVICE allocation row (amount only; quantity, unit and
base rate are frozen in the rule snapshot) against the project's party.

Payment in kind
---------------
When the service carries ``in_kind_item_id`` and ``in_kind_rate_per_unit``,
posting also creates a DRAFT inventory issue of
``quantity * in_kind_rate_per_unit`` units from ``in_kind_store_id`` and
posts it through the ``InventoryPoster`` in the same transaction, with key
``machinery_service_in_kind:<service id>``.  A HARI_ONLY issue records the
project's party as ``hari_id``; any other scope copies the project's profit
split.  Reversing the service reverses that issue too.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock
from farm_kernel.domain.protocols import InventoryPoster
from farm_kernel.exceptions import DocumentValidationError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.posting import PostingGroup
from farm_kernel.selectors.base import get_for_tenant
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import AllocationSpec, DocumentFamily, PostingPlan
from farm_kernel.services.reversal_service import DEFAULT_REVERSAL_REASON
from farm_kernel.utils.idempotency import generate_idempotency_key
from farm_modules._posting_helpers import (
    build_runner,
    debit_credit_pair,
    money,
    require_positive_amount,
    require_project_party,
    snapshot,
)
from farm_modules.inventory.orm import InvIssue, InvIssueLine
from farm_modules.inventory.service import InventoryIssuePostingService
from farm_modules.machinery.models import MachineryAllocationType, PoolScope
from farm_modules.machinery.orm import MachineRateCard, MachineryService

logger = get_logger("modules.machinery.service")

MACHINERY_SERVICE = DocumentFamily(
    name="machinery_service",
    source_type="MACHINERY_SERVICE",
    model=MachineryService,
)

IN_KIND_KEY_PREFIX = "machinery_service_in_kind"


def in_kind_issue_key(service_id: UUID) -> str:
    return generate_idempotency_key(IN_KIND_KEY_PREFIX, service_id)


class MachineryServicePostingService:
    """
    post / reverse for internal machinery services.

    ``inventory_poster`` defaults to an ``InventoryIssuePostingService`` on
    the same session with ``auto_commit=False``, so the in-kind issue shares
    this orchestrator's transaction.
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
        inventory_poster: InventoryPoster | None = None,
    ):
        self._session = session
        self._accounts = account_resolver
        self._period_guard = period_guard
        self._config = config
        self._inventory = inventory_poster or InventoryIssuePostingService(
            session, account_resolver, period_guard, config, clock, auto_commit=False
        )
        self._runner = build_runner(session, period_guard, config, clock, auto_commit)

    def post(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        return self._runner.post(
            MACHINERY_SERVICE,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda service: self._prepare(service, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        def reverse_in_kind(service: MachineryService, original, reversal) -> None:
            if service.in_kind_inventory_issue_id is None:
                return
            self._inventory.reverse_issue(
                service.in_kind_inventory_issue_id,
                tenant_id,
                posting_date,
                f"{reason or DEFAULT_REVERSAL_REASON} (machinery service reversal)",
            )

        return self._runner.reverse(
            MACHINERY_SERVICE, document_id, tenant_id, posting_date, reason,
            on_reversed=reverse_in_kind,
        )

    def _prepare(
        self, service: MachineryService, tenant_id: UUID, posting_date: date
    ) -> PostingPlan:
        project, cycle = self._period_guard.check_project_posting(
            service.project_id, tenant_id, posting_date
        )

        rate_card = None
        if service.rate_card_id is not None:
            rate_card = get_for_tenant(
                self._session, MachineRateCard, service.rate_card_id, tenant_id
            )
        if rate_card is None or rate_card.base_rate is None:
            raise DocumentValidationError(
                MACHINERY_SERVICE.name, str(service.id), "rate card has no base rate"
            )
        if service.is_paid_in_kind and service.in_kind_store_id is None:
            raise DocumentValidationError(
                MACHINERY_SERVICE.name,
                str(service.id),
                "payment in kind requires in_kind_store_id",
            )

        amount = money(self._config, rate_card.base_rate * service.quantity)
        require_positive_amount(MACHINERY_SERVICE.name, service.id, amount)

        ledger_lines = debit_credit_pair(
            self._accounts,
            self._config,
            tenant_id,
            "MACHINERY_SERVICE_EXPENSE",
            "MACHINERY_INTERNAL_SERVICE_CLEARING",
            amount,
        )

        def settle(group: PostingGroup) -> None:
            service.amount = amount
            if service.is_paid_in_kind:
                self._issue_in_kind(service, project, tenant_id, posting_date)

        return PostingPlan(
            crop_cycle_id=cycle.id,
            allocations=[
                AllocationSpec(
                    allocation_type=MachineryAllocationType.MACHINERY_SERVICE.value,
                    amount=amount,
                    project_id=service.project_id,
                    party_id=project.party_id,
                    machine_id=service.machine_id,
                    allocation_scope=service.allocation_scope,
                    rule_snapshot=snapshot(
                        source="machinery_service",
                        machinery_service_id=service.id,
                        rate_card_id=rate_card.id,
                        base_rate=rate_card.base_rate,
                        quantity=service.quantity,
                        unit=rate_card.rate_unit,
                        posting_date=posting_date,
                    ),
                )
            ],
            ledger_lines=ledger_lines,
            on_created=settle,
        )

    def _issue_in_kind(self, service: MachineryService, project, tenant_id: UUID, posting_date: date) -> None:
        in_kind_qty = service.quantity * service.in_kind_rate_per_unit
        issue = InvIssue(
            tenant_id=tenant_id,
            doc_no=f"MS-INKIND-{service.id}",
            store_id=service.in_kind_store_id,
            crop_cycle_id=project.crop_cycle_id,
            project_id=project.id,
            doc_date=posting_date,
            allocation_mode=service.allocation_scope,
        )
        if service.allocation_scope == PoolScope.HARI_ONLY.value:
            issue.hari_id = require_project_party(MACHINERY_SERVICE.name, service.id, project)
        else:
            if project.landlord_share_pct is None or project.hari_share_pct is None:
                raise DocumentValidationError(
                    MACHINERY_SERVICE.name,
                    str(service.id),
                    f"project {project.id} has no profit split for in-kind allocation",
                )
            issue.landlord_share_pct = project.landlord_share_pct
            issue.hari_share_pct = project.hari_share_pct
        issue.lines.append(
            InvIssueLine(tenant_id=tenant_id, item_id=service.in_kind_item_id, qty=in_kind_qty)
        )
        self._session.add(issue)
        self._session.flush()

        group = self._inventory.post_issue(
            issue.id, tenant_id, posting_date, in_kind_issue_key(service.id)
        )
        service.in_kind_quantity = in_kind_qty
        service.in_kind_inventory_issue_id = issue.id
        logger.info(
            "machinery_service_paid_in_kind",
            extra={
                "inv_issue_id": str(issue.id),
                "in_kind_quantity": in_kind_qty,
                "inventory_posting_group_id": str(group.id),
            },
        )
