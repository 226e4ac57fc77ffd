"""
ReversalService -- generic equal-and-opposite posting groups.

Responsibility:
    Given an existing posting group, produce a new REVERSAL posting group
    that nets it to zero.  The original is never touched.

Architecture position:
    Kernel > Services.  Called by PostingRunner.reverse() on behalf of every
    document family.  Flushes only; the orchestrator owns the transaction.

Invariants enforced:
    - The original posting group is never modified.
    - Ledger entries are mirrored with debit and credit swapped, so each
      account nets to zero across the pair.
    - Usage-only allocation rows are mirrored with quantity negated and
      amount left null.
    - Money-bearing allocation rows are mirrored first (same amount, rule
      snapshot annotated with ``reversal_of`` / ``reversal_reason``) and
      their amount is then negated in a separate step before flush.  The
      ledger swap does not touch allocation amounts, which are a
      denormalised reporting field; allocation reports rely on the negative
      sign.
    - A REVERSAL posting group cannot itself be reversed.
    - At most one reversal per original: a repeat on the same date is an
      idempotent replay, any other date is AlreadyReversedError.

Failure modes:
    - DocumentNotFoundError: posting group missing for the tenant.
    - CannotReverseReversalError: target is a reversal.
    - PeriodClosedError: crop cycle closed, or the reversal date falls in a
      CLOSED accounting period (other than the original date).
    - AlreadyReversedError: reversed earlier on a different date.

Audit relevance:
    The reversal group carries ``reversal_of_id`` and
    ``correction_reason``; every mirrored allocation snapshot records the
    original group id and reason.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from farm_kernel.exceptions import (
    AlreadyReversedError,
    CannotReverseReversalError,
    DocumentNotFoundError,
)
from farm_kernel.logging_config import get_logger
from farm_kernel.models.posting import (
    REVERSAL_SOURCE_TYPE,
    AllocationRow,
    LedgerEntry,
    PostingGroup,
)
from farm_kernel.selectors.base import get_for_tenant, tenant_select
from farm_kernel.services.base import BaseService
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.utils.idempotency import reversal_key

logger = get_logger("services.reversal")

DEFAULT_REVERSAL_REASON = "Reversed"


@dataclass(frozen=True)
class ReversalResult:
    """Outcome of ``reverse_posting_group``."""

    posting_group: PostingGroup
    original: PostingGroup
    replayed: bool


class ReversalService(BaseService):
    """
    Generic reversal primitive.

    Contract:
        ``reverse_posting_group`` returns a flushed reversal posting group
        inside the caller's transaction.

    Non-goals:
        - Does not change source-document status; the orchestrator does.
        - Does not undo module side effects (stock movements, worker
          balances); the orchestrator's reversal hook does.
    """

    def __init__(self, session: Session, period_guard: PeriodGuard):
        super().__init__(session)
        self._period_guard = period_guard

    def reverse_posting_group(
        self,
        posting_group_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> ReversalResult:
        if reason is None:
            reason = DEFAULT_REVERSAL_REASON
        original = get_for_tenant(self.session, PostingGroup, posting_group_id, tenant_id)
        if original is None:
            raise DocumentNotFoundError("PostingGroup", str(posting_group_id))

        if original.source_type == REVERSAL_SOURCE_TYPE or original.is_reversal:
            raise CannotReverseReversalError(str(original.id))

        if original.crop_cycle_id is not None:
            self._period_guard.ensure_open(original.crop_cycle_id, tenant_id)
        self._period_guard.ensure_reversal_date_allowed(
            tenant_id, original.posting_date, posting_date
        )

        existing = self.session.execute(
            tenant_select(
                PostingGroup,
                tenant_id,
                PostingGroup.reversal_of_id == original.id,
            )
        ).scalars().all()
        for reversal in existing:
            if reversal.posting_date == posting_date:
                logger.info(
                    "reversal_idempotent_replay",
                    extra={
                        "original_posting_group_id": str(original.id),
                        "reversal_posting_group_id": str(reversal.id),
                    },
                )
                return ReversalResult(reversal, original, replayed=True)
        if existing:
            raise AlreadyReversedError("PostingGroup", str(original.id))

        with self.session.no_autoflush:
            reversal = PostingGroup(
                id=uuid4(),
                tenant_id=tenant_id,
                crop_cycle_id=original.crop_cycle_id,
                source_type=REVERSAL_SOURCE_TYPE,
                source_id=original.id,
                posting_date=posting_date,
                idempotency_key=reversal_key(original.id, posting_date),
                reversal_of_id=original.id,
                correction_reason=reason,
            )

            for entry in original.ledger_entries:
                reversal.ledger_entries.append(
                    LedgerEntry(
                        tenant_id=tenant_id,
                        account_id=entry.account_id,
                        debit_amount=entry.credit_amount,
                        credit_amount=entry.debit_amount,
                        currency_code=entry.currency_code,
                    )
                )

            mirrored = [
                (row, self._mirror_allocation(row, original, reason))
                for row in original.allocation_rows
            ]
            for _, mirror in mirrored:
                reversal.allocation_rows.append(mirror)
            self._negate_money_allocations(mirrored)

            self.session.add(reversal)

        self.session.flush()

        logger.info(
            "reversal_posting_group_created",
            extra={
                "original_posting_group_id": str(original.id),
                "reversal_posting_group_id": str(reversal.id),
                "posting_date": posting_date,
                "ledger_entry_count": len(reversal.ledger_entries),
                "allocation_row_count": len(reversal.allocation_rows),
            },
        )
        return ReversalResult(reversal, original, replayed=False)

    @staticmethod
    def _mirror_allocation(
        row: AllocationRow, original: PostingGroup, reason: str | None
    ) -> AllocationRow:
        snapshot = dict(row.rule_snapshot or {})
        snapshot["reversal_of"] = str(original.id)
        snapshot["reversal_reason"] = reason

        mirror = AllocationRow(
            tenant_id=row.tenant_id,
            project_id=row.project_id,
            party_id=row.party_id,
            machine_id=row.machine_id,
            allocation_type=row.allocation_type,
            allocation_scope=row.allocation_scope,
            rule_snapshot=snapshot,
        )
        if row.is_usage_only:
            mirror.quantity = -row.quantity
            mirror.unit = row.unit
        else:
            mirror.amount = row.amount
        return mirror

    @staticmethod
    def _negate_money_allocations(
        mirrored: list[tuple[AllocationRow, AllocationRow]],
    ) -> None:
        for source_row, mirror in mirrored:
            if mirror.amount is not None:
                mirror.amount = -source_row.amount
