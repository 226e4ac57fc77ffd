"""
Labour work log posting (``farm_modules.labour.service``).

    amount = round(units * rate, 2)

    Dr LABOUR_EXPENSE   amount
    Cr WAGES_PAYABLE    amount

plus one POOL_SHARE allocation row against the project's party.  Posting
adds the amount to the worker's payable balance; reversing takes it off
again.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock
from farm_kernel.exceptions import DocumentValidationError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.posting import PostingGroup
from farm_kernel.models.reference import Project
from farm_kernel.selectors.base import get_for_tenant, tenant_select
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import AllocationSpec, DocumentFamily, PostingPlan
from farm_kernel.utils.money import ZERO
from farm_modules._posting_helpers import (
    build_runner,
    debit_credit_pair,
    money,
    require_positive_amount,
    snapshot,
)
from farm_modules.labour.orm import LabWorkerBalance, LabWorkLog, Worker

logger = get_logger("modules.labour.service")

LABOUR_WORK_LOG = DocumentFamily(
    name="lab_work_log",
    source_type="LABOUR_WORK_LOG",
    model=LabWorkLog,
)


class LabourPostingService:
    """post / reverse for labour work logs."""

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
            LABOUR_WORK_LOG,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda work_log: self._prepare(work_log, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        def release_wages(work_log: LabWorkLog, original, reversal) -> None:
            adjust_worker_balance(
                self._session, tenant_id, work_log.worker_id, -(work_log.amount or ZERO)
            )

        return self._runner.reverse(
            LABOUR_WORK_LOG, document_id, tenant_id, posting_date, reason,
            on_reversed=release_wages,
        )

    def payable_balance(self, tenant_id: UUID, worker_id: UUID) -> Decimal:
        balance = worker_balance(self._session, tenant_id, worker_id)
        return balance.payable_balance if balance is not None else ZERO

    def _prepare(self, work_log: LabWorkLog, tenant_id: UUID, posting_date: date) -> PostingPlan:
        if work_log.crop_cycle_id is None or work_log.project_id is None:
            raise DocumentValidationError(
                LABOUR_WORK_LOG.name,
                str(work_log.id),
                "crop cycle and project are required to post a work log",
            )
        self._period_guard.check_posting(work_log.crop_cycle_id, tenant_id, posting_date)
        project = get_for_tenant(self._session, Project, work_log.project_id, tenant_id)
        if project is None:
            raise DocumentValidationError(LABOUR_WORK_LOG.name, str(work_log.id), "project not found")
        if get_for_tenant(self._session, Worker, work_log.worker_id, tenant_id) is None:
            raise DocumentValidationError(LABOUR_WORK_LOG.name, str(work_log.id), "worker not found")

        amount = money(self._config, work_log.units * work_log.rate)
        require_positive_amount(LABOUR_WORK_LOG.name, work_log.id, amount)

        def accrue_wages(group: PostingGroup) -> None:
            work_log.amount = amount
            adjust_worker_balance(self._session, tenant_id, work_log.worker_id, amount)

        return PostingPlan(
            crop_cycle_id=work_log.crop_cycle_id,
            allocations=[
                AllocationSpec(
                    allocation_type="POOL_SHARE",
                    amount=amount,
                    project_id=work_log.project_id,
                    party_id=project.party_id,
                    machine_id=work_log.machine_id,
                    rule_snapshot=snapshot(
                        source="lab_work_log",
                        lab_work_log_id=work_log.id,
                        worker_id=work_log.worker_id,
                        rate_basis=work_log.rate_basis,
                        units=work_log.units,
                        rate=work_log.rate,
                    ),
                )
            ],
            ledger_lines=debit_credit_pair(
                self._accounts, self._config, tenant_id, "LABOUR_EXPENSE", "WAGES_PAYABLE", amount
            ),
            on_created=accrue_wages,
        )


def worker_balance(
    session: Session, tenant_id: UUID, worker_id: UUID, *, for_update: bool = False
) -> LabWorkerBalance | None:
    stmt = tenant_select(LabWorkerBalance, tenant_id, LabWorkerBalance.worker_id == worker_id)
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def adjust_worker_balance(session: Session, tenant_id: UUID, worker_id: UUID, delta: Decimal) -> None:
    """Add ``delta`` to the worker's payable balance, creating the row on first use."""
    balance = worker_balance(session, tenant_id, worker_id, for_update=True)
    if balance is None:
        balance = LabWorkerBalance(tenant_id=tenant_id, worker_id=worker_id, payable_balance=ZERO)
        session.add(balance)
    balance.payable_balance = (balance.payable_balance or ZERO) + delta
    session.flush()
    logger.debug(
        "worker_balance_adjusted",
        extra={
            "worker_id": str(worker_id),
            "delta": delta,
            "payable_balance": balance.payable_balance,
        },
    )
