"""
Module: farm_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence for the inventory module: stores,
    items, goods receipts (GRN), issues, stock balances and stock movements.

Architecture position: Modules > Inventory > ORM.  Inherits from
    TenantScopedBase (farm_kernel.db.base).  GRNs and issues mix in
    PostableDocumentMixin so the posting runner drives their lifecycle.
    ``machine_id`` on an issue references the machinery module with NO
    foreign key.

Invariants enforced:
    - All monetary fields and quantities use Decimal (Numeric(38,9)), never
      float.
    - One stock balance per (tenant, store, item).
    - Stock movements are written only by StockService, always together
      with the balance update and always tied to a posting group.

Failure modes:
    - IntegrityError on duplicate document numbers or balance rows.

Audit relevance:
    - Every stock movement points at the posting group that caused it, so
      balances can be rebuilt from posted (and reversed) documents.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farm_kernel.db.base import TenantScopedBase, UUIDString
from farm_kernel.models.document import PostableDocumentMixin


# =============================================================================
# Reference data
# =============================================================================

class InvStore(TenantScopedBase):
    __tablename__ = "inv_stores"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<InvStore {self.name}>"


class InvItem(TenantScopedBase):
    __tablename__ = "inv_items"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    uom: Mapped[str] = mapped_column(String(20), default="UNIT", nullable=False)

    def __repr__(self) -> str:
        return f"<InvItem {self.name} [{self.uom}]>"


# =============================================================================
# Goods receipt (GRN)
# =============================================================================

class InvGrn(PostableDocumentMixin, TenantScopedBase):
    """
    Goods received into a store.

    Paid on account when ``supplier_party_id`` is set, in cash otherwise.
    """

    __tablename__ = "inv_grns"

    __table_args__ = (
        UniqueConstraint("tenant_id", "doc_no", name="uq_inv_grn_doc_no"),
    )

    doc_no: Mapped[str] = mapped_column(String(50), nullable=False)
    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_stores.id"), nullable=False
    )
    supplier_party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=True
    )
    doc_date: Mapped[date] = mapped_column(Date, nullable=False)

    lines: Mapped[list["InvGrnLine"]] = relationship(
        back_populates="grn",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InvGrn {self.doc_no} [{self.status}]>"


class InvGrnLine(TenantScopedBase):
    __tablename__ = "inv_grn_lines"

    grn_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_grns.id"), nullable=False
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_items.id"), nullable=False
    )
    qty: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    line_total: Mapped[Decimal | None] = mapped_column(nullable=True)

    grn: Mapped[InvGrn] = relationship(back_populates="lines")


# =============================================================================
# Issue
# =============================================================================

class InvIssue(PostableDocumentMixin, TenantScopedBase):
    """
    Stock issued from a store to a project, valued at weighted average cost
    when posted.
    """

    __tablename__ = "inv_issues"

    __table_args__ = (
        UniqueConstraint("tenant_id", "doc_no", name="uq_inv_issue_doc_no"),
    )

    doc_no: Mapped[str] = mapped_column(String(50), nullable=False)
    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_stores.id"), nullable=False
    )
    crop_cycle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("crop_cycles.id"), nullable=True
    )
    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=True
    )
    activity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    machine_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    doc_date: Mapped[date] = mapped_column(Date, nullable=False)
    allocation_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    hari_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=True
    )
    landlord_share_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    hari_share_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    lines: Mapped[list["InvIssueLine"]] = relationship(
        back_populates="issue",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InvIssue {self.doc_no} [{self.status}]>"


class InvIssueLine(TenantScopedBase):
    __tablename__ = "inv_issue_lines"

    issue_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_issues.id"), nullable=False
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_items.id"), nullable=False
    )
    qty: Mapped[Decimal] = mapped_column(nullable=False)
    # Filled at posting time from the store's WAC.
    unit_cost_snapshot: Mapped[Decimal | None] = mapped_column(nullable=True)
    line_total: Mapped[Decimal | None] = mapped_column(nullable=True)

    issue: Mapped[InvIssue] = relationship(back_populates="lines")


# =============================================================================
# Stock
# =============================================================================

class InvStockBalance(TenantScopedBase):
    """
    Running quantity and value of one item in one store.

    Guarantees:
        - wac_cost == value_on_hand / qty_on_hand, or 0 when nothing is on
          hand.
    """

    __tablename__ = "inv_stock_balances"

    __table_args__ = (
        UniqueConstraint("tenant_id", "store_id", "item_id", name="uq_inv_stock_balance"),
    )

    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_stores.id"), nullable=False
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_items.id"), nullable=False
    )
    qty_on_hand: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    value_on_hand: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    wac_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    def __repr__(self) -> str:
        return f"<InvStockBalance {self.item_id}@{self.store_id} qty={self.qty_on_hand}>"


class InvStockMovement(TenantScopedBase):
    """One change to a stock balance, caused by one posting group."""

    __tablename__ = "inv_stock_movements"

    __table_args__ = (
        Index("idx_inv_movement_group", "tenant_id", "posting_group_id"),
        Index("idx_inv_movement_item", "tenant_id", "store_id", "item_id"),
    )

    posting_group_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("posting_groups.id"), nullable=False
    )
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_stores.id"), nullable=False
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inv_items.id"), nullable=False
    )
    qty_delta: Mapped[Decimal] = mapped_column(nullable=False)
    value_delta: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost_snapshot: Mapped[Decimal] = mapped_column(nullable=False)
    occurred_on: Mapped[date] = mapped_column(Date, nullable=False)
    source_type: Mapped[str] = mapped_column(String(30), nullable=False)
    source_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<InvStockMovement {self.movement_type} {self.item_id} {self.qty_delta}>"
