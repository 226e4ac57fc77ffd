"""
Sale posting (``farm_modules.sales.service``).

    Dr AR                amount
    Cr PROJECT_REVENUE   amount

plus one SALE_REVENUE allocation row against the buyer.  The crop cycle
comes from the sale's project when it has one, else from the sale itself.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock
from farm_kernel.exceptions import DocumentValidationError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.posting import PostingGroup
from farm_kernel.models.reference import Party, Project
from farm_kernel.selectors.base import get_for_tenant
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import AllocationSpec, DocumentFamily, PostingPlan
from farm_modules._posting_helpers import (
    build_runner,
    debit_credit_pair,
    money,
    require_positive_amount,
    snapshot,
)
from farm_modules.sales.orm import Sale

logger = get_logger("modules.sales.service")

SALE = DocumentFamily(name="sale", source_type="SALE", model=Sale)


class SalePostingService:
    """post / reverse for sales."""

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
        self._runner = build_runner(session, period_guard, config, clock, auto_commit)

    def post(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        return self._runner.post(
            SALE,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda sale: self._prepare(sale, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        return self._runner.reverse(SALE, document_id, tenant_id, posting_date, reason)

    def _crop_cycle_for(self, sale: Sale, tenant_id: UUID) -> UUID:
        if sale.project_id is not None:
            project = get_for_tenant(self._session, Project, sale.project_id, tenant_id)
            if project is None:
                raise DocumentValidationError(SALE.name, str(sale.id), "project not found")
            return project.crop_cycle_id
        if sale.crop_cycle_id is None:
            raise DocumentValidationError(
                SALE.name, str(sale.id), "a project or crop cycle is required to post a sale"
            )
        return sale.crop_cycle_id

    def _prepare(self, sale: Sale, tenant_id: UUID, posting_date: date) -> PostingPlan:
        crop_cycle_id = self._crop_cycle_for(sale, tenant_id)
        self._period_guard.check_posting(crop_cycle_id, tenant_id, posting_date)
        if get_for_tenant(self._session, Party, sale.buyer_party_id, tenant_id) is None:
            raise DocumentValidationError(SALE.name, str(sale.id), "buyer not found")

        amount = money(self._config, sale.amount)
        require_positive_amount(SALE.name, sale.id, amount)

        def stamp_cycle(group: PostingGroup) -> None:
            sale.crop_cycle_id = crop_cycle_id
            logger.debug(
                "sale_receivable_raised",
                extra={"buyer_party_id": str(sale.buyer_party_id), "amount": amount},
            )

        return PostingPlan(
            crop_cycle_id=crop_cycle_id,
            allocations=[
                AllocationSpec(
                    allocation_type="SALE_REVENUE",
                    amount=amount,
                    project_id=sale.project_id,
                    party_id=sale.buyer_party_id,
                    rule_snapshot=snapshot(
                        source="sale",
                        sale_id=sale.id,
                        buyer_party_id=sale.buyer_party_id,
                        sale_date=sale.sale_date,
                    ),
                )
            ],
            ledger_lines=debit_credit_pair(
                self._accounts, self._config, tenant_id, "AR", "PROJECT_REVENUE", amount
            ),
            on_created=stamp_cycle,
        )
