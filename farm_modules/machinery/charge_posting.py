"""
Machinery charge posting (``farm_modules.machinery.charge_posting``).

A machinery charge bills a landlord for priced machine usage on a project:

    Dr MACHINERY_SERVICE_EXPENSE   total of line amounts
    Cr DUE_TO_LANDLORD             total of line amounts

plus one MACHINERY_CHARGE allocation row against the landlord, whose rule
snapshot freezes every charge line (work log, usage, unit, rate, amount and
rate card).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock
from farm_kernel.logging_config import get_logger
from farm_kernel.models.posting import PostingGroup
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
from farm_modules.machinery.models import MachineryAllocationType
from farm_modules.machinery.orm import MachineryCharge

logger = get_logger("modules.machinery.charge")

MACHINERY_CHARGE = DocumentFamily(
    name="machinery_charge",
    source_type="MACHINERY_CHARGE",
    model=MachineryCharge,
)


class MachineryChargePostingService:
    """post / reverse for machinery charges."""

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
            MACHINERY_CHARGE,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda charge: self._prepare(charge, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        return self._runner.reverse(MACHINERY_CHARGE, document_id, tenant_id, posting_date, reason)

    def _prepare(self, charge: MachineryCharge, tenant_id: UUID, posting_date: date) -> PostingPlan:
        self._period_guard.check_posting(charge.crop_cycle_id, tenant_id, posting_date)

        amount = money(
            self._config, sum((line.amount for line in charge.lines), Decimal("0"))
        )
        require_positive_amount(MACHINERY_CHARGE.name, charge.id, amount)

        ledger_lines = debit_credit_pair(
            self._accounts,
            self._config,
            tenant_id,
            "MACHINERY_SERVICE_EXPENSE",
            "DUE_TO_LANDLORD",
            amount,
        )
        line_summary = [
            {
                "line_id": line.id,
                "work_log_id": line.machine_work_log_id,
                "usage_qty": line.usage_qty,
                "unit": line.unit,
                "rate": line.rate,
                "amount": line.amount,
                "rate_card_id": line.rate_card_id,
            }
            for line in charge.lines
        ]

        def stamp_total(group: PostingGroup) -> None:
            charge.total_amount = amount
            logger.info(
                "machinery_charge_posted",
                extra={
                    "charge_no": charge.charge_no,
                    "posting_group_id": str(group.id),
                    "amount": amount,
                    "line_count": len(line_summary),
                },
            )

        return PostingPlan(
            crop_cycle_id=charge.crop_cycle_id,
            allocations=[
                AllocationSpec(
                    allocation_type=MachineryAllocationType.MACHINERY_CHARGE.value,
                    amount=amount,
                    project_id=charge.project_id,
                    party_id=charge.landlord_party_id,
                    allocation_scope=charge.pool_scope,
                    rule_snapshot=snapshot(
                        source="machinery_charge",
                        machinery_charge_id=charge.id,
                        pool_scope=charge.pool_scope,
                        charge_date=charge.charge_date,
                        lines=line_summary,
                    ),
                )
            ],
            ledger_lines=ledger_lines,
            on_created=stamp_total,
        )
