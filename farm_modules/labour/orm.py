"""
Module: farm_modules.labour.orm
Responsibility: SQLAlchemy ORM persistence for the labour module: workers,
    labour work logs (postable) and the running wages-payable balance per
    worker.

Architecture position: Modules > Labour > ORM.  Inherits from
    TenantScopedBase; LabWorkLog mixes in PostableDocumentMixin.

Invariants enforced:
    - One payable balance row per (tenant, worker).
    - ``amount`` on a work log is recomputed from units * rate when it posts.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import TenantScopedBase, UUIDString
from farm_kernel.models.document import PostableDocumentMixin


class RateBasis(str, Enum):
    DAILY = "DAILY"
    HOURLY = "HOURLY"
    PIECE = "PIECE"


class Worker(TenantScopedBase):
    __tablename__ = "lab_workers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Worker {self.name}>"


class LabWorkLog(PostableDocumentMixin, TenantScopedBase):
    """Work done by one worker on a project, paid at ``rate`` per unit."""

    __tablename__ = "lab_work_logs"

    __table_args__ = (
        UniqueConstraint("tenant_id", "doc_no", name="uq_lab_work_log_doc_no"),
    )

    doc_no: Mapped[str] = mapped_column(String(50), nullable=False)
    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lab_workers.id"), nullable=False
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    crop_cycle_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("crop_cycles.id"), nullable=True
    )
    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=True
    )
    activity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    machine_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rate_basis: Mapped[str] = mapped_column(
        String(10), default=RateBasis.DAILY, nullable=False
    )
    units: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<LabWorkLog {self.doc_no} {self.units}x{self.rate} [{self.status}]>"


class LabWorkerBalance(TenantScopedBase):
    """Wages owed to one worker: up on posting, down on reversal."""

    __tablename__ = "lab_worker_balances"

    __table_args__ = (
        UniqueConstraint("tenant_id", "worker_id", name="uq_lab_worker_balance"),
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lab_workers.id"), nullable=False
    )
    payable_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
