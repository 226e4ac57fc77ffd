"""
Machine maintenance job posting (``farm_modules.machinery.maintenance_posting``).

    Dr MACHINERY_MAINTENANCE_EXPENSE   sum of job lines
    Cr AP                              when a vendor did the work
    Cr ACCRUED_EXPENSES                otherwise

Maintenance is not tied to a crop cycle or project: the posting group has no
crop cycle and only the accounting period is checked.  The single
MACHINERY_MAINTENANCE allocation row carries the machine and, when present,
the vendor party.
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
from farm_modules.machinery.orm import MachineMaintenanceJob

logger = get_logger("modules.machinery.maintenance")

MACHINE_MAINTENANCE_JOB = DocumentFamily(
    name="machine_maintenance_job",
    source_type="MACHINE_MAINTENANCE_JOB",
    model=MachineMaintenanceJob,
)


class MachineMaintenancePostingService:
    """post / reverse for machine maintenance jobs."""

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
            MACHINE_MAINTENANCE_JOB,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda job: self._prepare(job, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        return self._runner.reverse(
            MACHINE_MAINTENANCE_JOB, document_id, tenant_id, posting_date, reason
        )

    def _prepare(
        self, job: MachineMaintenanceJob, tenant_id: UUID, posting_date: date
    ) -> PostingPlan:
        self._period_guard.ensure_posting_date_allowed(tenant_id, posting_date)

        if not job.lines:
            raise DocumentValidationError(
                MACHINE_MAINTENANCE_JOB.name, str(job.id), "maintenance job has no lines"
            )
        amount = money(self._config, sum((line.amount for line in job.lines), Decimal("0")))
        require_positive_amount(MACHINE_MAINTENANCE_JOB.name, job.id, amount)

        credit_role = "AP" if job.vendor_party_id is not None else "ACCRUED_EXPENSES"
        ledger_lines = debit_credit_pair(
            self._accounts,
            self._config,
            tenant_id,
            "MACHINERY_MAINTENANCE_EXPENSE",
            credit_role,
            amount,
        )

        def stamp_total(group: PostingGroup) -> None:
            job.total_amount = amount

        return PostingPlan(
            crop_cycle_id=None,
            allocations=[
                AllocationSpec(
                    allocation_type=MachineryAllocationType.MACHINERY_MAINTENANCE.value,
                    amount=amount,
                    party_id=job.vendor_party_id,
                    machine_id=job.machine_id,
                    rule_snapshot=snapshot(
                        source="machine_maintenance_job",
                        machine_maintenance_job_id=job.id,
                        job_no=job.job_no,
                        job_date=job.job_date,
                        maintenance_type_id=job.maintenance_type_id,
                        vendor_party_id=job.vendor_party_id,
                        lines=[
                            {"line_id": line.id, "description": line.description, "amount": line.amount}
                            for line in job.lines
                        ],
                    ),
                )
            ],
            ledger_lines=ledger_lines,
            on_created=stamp_total,
        )
