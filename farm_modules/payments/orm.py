"""
Module: farm_modules.payments.orm
Responsibility: SQLAlchemy ORM persistence for treasury payments: money paid
    out to a party (wages, landlord, vendor, hari) or received from a buyer.

Architecture position: Modules > Payments > ORM.  Payment mixes in
    PostableDocumentMixin and inherits from TenantScopedBase.

Invariants enforced:
    - One payment per (tenant, doc_no).
    - ``direction``, ``method`` and ``purpose`` hold the enum values below.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import TenantScopedBase, UUIDString
from farm_kernel.models.document import PostableDocumentMixin


class PaymentDirection(str, Enum):
    IN = "IN"
    OUT = "OUT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK = "BANK"


class PaymentPurpose(str, Enum):
    GENERAL = "GENERAL"
    WAGES = "WAGES"


class Payment(PostableDocumentMixin, TenantScopedBase):
    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("tenant_id", "doc_no", name="uq_payment_doc_no"),
    )

    doc_no: Mapped[str] = mapped_column(String(50), nullable=False)
    direction: Mapped[str] = mapped_column(String(3), nullable=False)
    party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )
    crop_cycle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("crop_cycles.id"), nullable=True
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[str] = mapped_column(
        String(10), default=PaymentMethod.CASH, nullable=False
    )
    purpose: Mapped[str] = mapped_column(
        String(20), default=PaymentPurpose.GENERAL, nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Payment {self.doc_no} {self.direction} {self.amount} [{self.status}]>"
