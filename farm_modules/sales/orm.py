"""
Module: farm_modules.sales.orm
Responsibility: SQLAlchemy ORM persistence for produce sales billed to a
    buyer on credit.

Architecture position: Modules > Sales > ORM.  Sale mixes in
    PostableDocumentMixin and inherits from TenantScopedBase.

Invariants enforced:
    - One sale per (tenant, doc_no).
    - ``amount`` is the receivable raised against the buyer when it posts.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import TenantScopedBase, UUIDString
from farm_kernel.models.document import PostableDocumentMixin


class Sale(PostableDocumentMixin, TenantScopedBase):
    """Produce sold from a project (or a crop cycle) to a buyer party."""

    __tablename__ = "sales"

    __table_args__ = (
        UniqueConstraint("tenant_id", "doc_no", name="uq_sale_doc_no"),
    )

    doc_no: Mapped[str] = mapped_column(String(50), nullable=False)
    buyer_party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )
    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=True
    )
    crop_cycle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("crop_cycles.id"), nullable=True
    )
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Sale {self.doc_no} {self.amount} [{self.status}]>"
