"""
PostingSelector -- read-only views over posting groups.

Responsibility:
    Tenant-scoped reads used by callers that report on posted data and by
    the test suite: a frozen summary of a posting group, the net effect per
    account across several groups, and the reversal of a group.

Architecture position:
    Kernel > Selectors.  Never writes.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from farm_kernel.models.posting import AllocationRow, LedgerEntry, PostingGroup
from farm_kernel.selectors.base import BaseSelector, get_for_tenant, tenant_select


@dataclass(frozen=True)
class LedgerEntryView:
    account_id: UUID
    account_code: str
    debit_amount: Decimal
    credit_amount: Decimal
    currency_code: str


@dataclass(frozen=True)
class AllocationRowView:
    allocation_type: str
    project_id: UUID | None
    party_id: UUID | None
    machine_id: UUID | None
    allocation_scope: str | None
    amount: Decimal | None
    quantity: Decimal | None
    unit: str | None


@dataclass(frozen=True)
class PostingGroupSummary:
    id: UUID
    tenant_id: UUID
    source_type: str
    source_id: UUID
    posting_date: date
    idempotency_key: str
    reversal_of_id: UUID | None
    correction_reason: str | None
    ledger_entries: tuple[LedgerEntryView, ...]
    allocation_rows: tuple[AllocationRowView, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit_amount for e in self.ledger_entries), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit_amount for e in self.ledger_entries), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


def summarize(group: PostingGroup) -> PostingGroupSummary:
    """Freeze a loaded posting group into a summary DTO."""
    return PostingGroupSummary(
        id=group.id,
        tenant_id=group.tenant_id,
        source_type=group.source_type,
        source_id=group.source_id,
        posting_date=group.posting_date,
        idempotency_key=group.idempotency_key,
        reversal_of_id=group.reversal_of_id,
        correction_reason=group.correction_reason,
        ledger_entries=tuple(
            LedgerEntryView(
                account_id=e.account_id,
                account_code=e.account.code,
                debit_amount=e.debit_amount,
                credit_amount=e.credit_amount,
                currency_code=e.currency_code,
            )
            for e in group.ledger_entries
        ),
        allocation_rows=tuple(
            AllocationRowView(
                allocation_type=r.allocation_type,
                project_id=r.project_id,
                party_id=r.party_id,
                machine_id=r.machine_id,
                allocation_scope=r.allocation_scope,
                amount=r.amount,
                quantity=r.quantity,
                unit=r.unit,
            )
            for r in group.allocation_rows
        ),
    )


class PostingSelector(BaseSelector):
    """Tenant-scoped queries over posting groups."""

    def get(self, posting_group_id: UUID, tenant_id: UUID) -> PostingGroupSummary | None:
        group = get_for_tenant(self.session, PostingGroup, posting_group_id, tenant_id)
        return summarize(group) if group is not None else None

    def for_source(
        self, tenant_id: UUID, source_type: str, source_id: UUID
    ) -> PostingGroupSummary | None:
        group = self.session.execute(
            tenant_select(
                PostingGroup,
                tenant_id,
                PostingGroup.source_type == source_type,
                PostingGroup.source_id == source_id,
            )
        ).scalar_one_or_none()
        return summarize(group) if group is not None else None

    def reversal_of(
        self, posting_group_id: UUID, tenant_id: UUID
    ) -> PostingGroupSummary | None:
        group = self.session.execute(
            tenant_select(PostingGroup, tenant_id, PostingGroup.reversal_of_id == posting_group_id)
        ).scalars().first()
        return summarize(group) if group is not None else None

    def account_net_effect(
        self, tenant_id: UUID, posting_group_ids: list[UUID]
    ) -> dict[UUID, tuple[Decimal, Decimal]]:
        """(total debit, total credit) per account across the given groups."""
        rows = self.session.execute(
            select(
                LedgerEntry.account_id,
                func.sum(LedgerEntry.debit_amount),
                func.sum(LedgerEntry.credit_amount),
            )
            .where(
                LedgerEntry.tenant_id == tenant_id,
                LedgerEntry.posting_group_id.in_(posting_group_ids),
            )
            .group_by(LedgerEntry.account_id)
        ).all()
        return {
            account_id: (Decimal(str(debit or 0)), Decimal(str(credit or 0)))
            for account_id, debit, credit in rows
        }

    def allocation_totals(
        self, tenant_id: UUID, posting_group_ids: list[UUID]
    ) -> tuple[Decimal, Decimal]:
        """(sum of amounts, sum of quantities) across the given groups."""
        amount, quantity = self.session.execute(
            select(func.sum(AllocationRow.amount), func.sum(AllocationRow.quantity))
            .where(
                AllocationRow.tenant_id == tenant_id,
                AllocationRow.posting_group_id.in_(posting_group_ids),
            )
        ).one()
        return Decimal(str(amount or 0)), Decimal(str(quantity or 0))

    def count_for_tenant(self, tenant_id: UUID) -> int:
        return self.session.execute(
            select(func.count()).select_from(PostingGroup).where(PostingGroup.tenant_id == tenant_id)
        ).scalar_one()
