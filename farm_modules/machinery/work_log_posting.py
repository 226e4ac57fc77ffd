"""
Machine work log posting (``farm_modules.machinery.work_log_posting``).

Posting a work log records machine usage against a project as a single
usage-only allocation row (quantity + meter unit).  It creates no ledger
entries; money is attached later when charge generation prices the log into
a machinery charge.

Rules:
    - crop cycle OPEN, posting date inside it, accounting period not CLOSED;
    - ``usage_qty`` >= 0;
    - the project must have a party (the pool the usage is allocated to).
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
from farm_kernel.models.reference import Project
from farm_kernel.selectors.base import get_for_tenant
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import AllocationSpec, DocumentFamily, PostingPlan
from farm_kernel.utils.money import ZERO
from farm_modules._posting_helpers import build_runner, require_project_party, snapshot
from farm_modules.machinery.models import MachineryAllocationType, PoolScope
from farm_modules.machinery.orm import Machine, MachineWorkLog

logger = get_logger("modules.machinery.work_log")

MACHINE_WORK_LOG = DocumentFamily(
    name="machine_work_log",
    source_type="MACHINE_WORK_LOG",
    model=MachineWorkLog,
)


class MachineWorkLogPostingService:
    """post / reverse for machine work logs (usage only)."""

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
        self._runner = build_runner(session, period_guard, config, clock, auto_commit)

    def post(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        return self._runner.post(
            MACHINE_WORK_LOG,
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
        return self._runner.reverse(MACHINE_WORK_LOG, document_id, tenant_id, posting_date, reason)

    def _prepare(self, work_log: MachineWorkLog, tenant_id: UUID, posting_date: date) -> PostingPlan:
        self._period_guard.check_posting(work_log.crop_cycle_id, tenant_id, posting_date)

        if work_log.usage_qty is None or work_log.usage_qty < ZERO:
            raise DocumentValidationError(
                MACHINE_WORK_LOG.name,
                str(work_log.id),
                "usage_qty must be greater than or equal to zero",
            )

        project = get_for_tenant(self._session, Project, work_log.project_id, tenant_id)
        if project is None:
            raise DocumentValidationError(
                MACHINE_WORK_LOG.name, str(work_log.id), "project not found"
            )
        party_id = require_project_party(MACHINE_WORK_LOG.name, work_log.id, project)
        machine = get_for_tenant(self._session, Machine, work_log.machine_id, tenant_id)
        if machine is None:
            raise DocumentValidationError(
                MACHINE_WORK_LOG.name, str(work_log.id), "machine not found"
            )

        logger.debug(
            "work_log_usage_prepared",
            extra={"usage_qty": work_log.usage_qty, "unit": machine.meter_unit},
        )
        return PostingPlan(
            crop_cycle_id=work_log.crop_cycle_id,
            allocations=[
                AllocationSpec(
                    allocation_type=MachineryAllocationType.MACHINERY_USAGE.value,
                    quantity=work_log.usage_qty,
                    unit=machine.meter_unit,
                    project_id=work_log.project_id,
                    party_id=party_id,
                    machine_id=machine.id,
                    rule_snapshot=snapshot(
                        source="machine_work_log",
                        machine_work_log_id=work_log.id,
                        meter_start=work_log.meter_start,
                        meter_end=work_log.meter_end,
                        pool_scope=work_log.pool_scope or PoolScope.SHARED.value,
                    ),
                )
            ],
        )
