"""
Module: farm_kernel.models.posting
Responsibility: ORM persistence for the ledger store -- PostingGroup (one per
    accounting event), AllocationRow (reporting dimensions attached to a group)
    and LedgerEntry (balanced debit/credit lines).
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models.  MUST NOT import from services/, selectors/ or modules.

Invariants enforced:
    - (tenant_id, idempotency_key) is unique: a retried post finds the group
      it already created.
    - (tenant_id, source_type, source_id) is unique: one original posting per
      source document, and one reversal per original group.
    - Allocation rows carry an amount OR a quantity, never both (CHECK
      constraint plus the flush-time check in db/integrity.py).
    - Ledger amounts are non-negative; each group balances
      (db/integrity.py, before_flush).
    - All three tables are append-only (db/integrity.py).

Failure modes:
    - IntegrityError on either uniqueness constraint -- the posting runner
      turns this into an idempotent replay.
    - UnbalancedPostingError / InvalidAllocationError at flush time.

Audit relevance:
    A reversal never edits the original; it is a new group whose
    ``reversal_of_id`` points back at it and whose ``correction_reason``
    records why.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farm_kernel.db.base import TenantScopedBase, UUIDString
from farm_kernel.models.account import Account

REVERSAL_SOURCE_TYPE = "REVERSAL"


class PostingGroup(TenantScopedBase):
    """
    Header of one accounting event.

    Contract:
        Created exactly once by a posting orchestrator, inside one
        transaction, together with its allocation rows and ledger entries.

    Guarantees:
        - Never mutated after creation.
        - ``reversal_of_id`` is set iff ``source_type`` is REVERSAL.
    """

    __tablename__ = "posting_groups"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "idempotency_key", name="uq_posting_group_idempotency"
        ),
        UniqueConstraint(
            "tenant_id", "source_type", "source_id", name="uq_posting_group_source"
        ),
        Index("idx_posting_group_reversal_of", "tenant_id", "reversal_of_id"),
        Index("idx_posting_group_date", "tenant_id", "posting_date"),
    )

    crop_cycle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("crop_cycles.id"),
        nullable=True,
    )

    source_type: Mapped[str] = mapped_column(String(40), nullable=False)

    source_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    posting_date: Mapped[date] = mapped_column(Date, nullable=False)

    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("posting_groups.id"),
        nullable=True,
    )

    correction_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    allocation_rows: Mapped[list["AllocationRow"]] = relationship(
        back_populates="posting_group",
        cascade="save-update, merge",
        lazy="selectin",
    )

    ledger_entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="posting_group",
        cascade="save-update, merge",
        lazy="selectin",
    )

    reversal_of: Mapped["PostingGroup | None"] = relationship(
        remote_side="PostingGroup.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<PostingGroup {self.id} {self.source_type}:{self.source_id}>"

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit_amount for e in self.ledger_entries), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit_amount for e in self.ledger_entries), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class AllocationRow(TenantScopedBase):
    """
    Reporting dimension attached to a posting group.

    Money-bearing rows carry ``amount``; usage-only rows carry ``quantity``
    and ``unit`` with ``amount`` left null.  ``rule_snapshot`` freezes the
    rate/rule/line data that produced the row.
    """

    __tablename__ = "allocation_rows"

    __table_args__ = (
        CheckConstraint(
            "amount IS NULL OR quantity IS NULL",
            name="ck_allocation_amount_xor_quantity",
        ),
        CheckConstraint(
            "(quantity IS NULL AND unit IS NULL) OR (quantity IS NOT NULL AND unit IS NOT NULL)",
            name="ck_allocation_quantity_has_unit",
        ),
        Index("idx_allocation_posting_group", "posting_group_id"),
        Index("idx_allocation_project", "tenant_id", "project_id"),
    )

    posting_group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("posting_groups.id"),
        nullable=False,
    )

    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=True,
    )

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id"),
        nullable=True,
    )

    # Machines live in farm_modules; no FK from the kernel.
    machine_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    allocation_type: Mapped[str] = mapped_column(String(40), nullable=False)

    allocation_scope: Mapped[str | None] = mapped_column(String(20), nullable=True)

    amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    quantity: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    rule_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    posting_group: Mapped[PostingGroup] = relationship(back_populates="allocation_rows")

    def __repr__(self) -> str:
        if self.amount is not None:
            return f"<AllocationRow {self.allocation_type} amount={self.amount}>"
        return f"<AllocationRow {self.allocation_type} qty={self.quantity} {self.unit}>"

    @property
    def is_usage_only(self) -> bool:
        return self.amount is None and self.quantity is not None


class LedgerEntry(TenantScopedBase):
    """One debit or credit line of a posting group."""

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("debit_amount >= 0", name="ck_ledger_debit_non_negative"),
        CheckConstraint("credit_amount >= 0", name="ck_ledger_credit_non_negative"),
        Index("idx_ledger_posting_group", "posting_group_id"),
        Index("idx_ledger_account", "tenant_id", "account_id"),
    )

    posting_group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("posting_groups.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), default=Decimal("0"), nullable=False
    )

    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), default=Decimal("0"), nullable=False
    )

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    posting_group: Mapped[PostingGroup] = relationship(back_populates="ledger_entries")

    account: Mapped[Account] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.account_id} Dr {self.debit_amount} "
            f"Cr {self.credit_amount} {self.currency_code}>"
        )
