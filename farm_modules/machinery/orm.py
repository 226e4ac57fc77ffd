"""
Module: farm_modules.machinery.orm
Responsibility: SQLAlchemy ORM persistence for the machinery module: machines,
    rate cards and the four postable machinery documents (work logs,
    machinery charges, maintenance jobs and internal machinery services).

Architecture position: Modules > Machinery > ORM.  Inherits from
    TenantScopedBase (farm_kernel.db.base); postable documents mix in
    PostableDocumentMixin (farm_kernel.models.document) so the posting runner
    can drive their lifecycle.

Invariants enforced:
    - All monetary fields and quantities use Decimal (Numeric(38,9)), never
      float.
    - Enum fields (meter unit, pool scope, rate unit...) are stored as short
      strings.
    - A work log is charged at most once: ``machinery_charge_id`` is stamped
      by charge generation and is never cleared.

Failure modes:
    - IntegrityError on duplicate document numbers within a tenant.

Audit relevance:
    - These rows are operational artifacts.  The financial truth is the
      posting group each document points at through ``posting_group_id``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farm_kernel.db.base import TenantScopedBase, UUIDString
from farm_kernel.models.document import PostableDocumentMixin
from farm_modules.machinery.models import (
    AllocationScope,
    PoolScope,
    PricingModel,
    RateCardMode,
)


# =============================================================================
# Machine
# =============================================================================

class Machine(TenantScopedBase):
    """
    A tractor, harvester, bowser...

    ``meter_unit`` (HOURS, KM, ...) decides which rate cards can price the
    machine's work logs.
    """

    __tablename__ = "machines"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_machine_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    machine_type: Mapped[str] = mapped_column(String(50), nullable=False)
    meter_unit: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Machine {self.code} {self.machine_type} [{self.meter_unit}]>"


# =============================================================================
# MachineRateCard
# =============================================================================

class MachineRateCard(TenantScopedBase):
    """
    Dated billing rate for a single machine or for every machine of a type.

    Guarantees:
        - ``machine_id`` is set for MACHINE cards, ``machine_type`` for
          MACHINE_TYPE cards.
        - ``effective_to`` NULL means open-ended.
    """

    __tablename__ = "machine_rate_cards"

    __table_args__ = (
        Index("idx_rate_card_machine", "tenant_id", "machine_id", "rate_unit"),
        Index("idx_rate_card_type", "tenant_id", "machine_type", "rate_unit"),
    )

    applies_to_mode: Mapped[str] = mapped_column(
        String(20), default=RateCardMode.MACHINE, nullable=False
    )
    machine_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("machines.id"), nullable=True
    )
    machine_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rate_unit: Mapped[str] = mapped_column(String(10), nullable=False)
    pricing_model: Mapped[str] = mapped_column(
        String(20), default=PricingModel.FIXED, nullable=False
    )
    base_rate: Mapped[Decimal] = mapped_column(nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        target = self.machine_id if self.applies_to_mode == RateCardMode.MACHINE else self.machine_type
        return f"<MachineRateCard {self.applies_to_mode}:{target} {self.base_rate}/{self.rate_unit}>"

    def is_effective_on(self, as_of: date) -> bool:
        if not self.is_active or self.effective_from > as_of:
            return False
        return self.effective_to is None or self.effective_to >= as_of


# =============================================================================
# MachineWorkLog (usage only)
# =============================================================================

class MachineWorkLog(PostableDocumentMixin, TenantScopedBase):
    """
    Meter reading for a machine working on a project.

    Posting records usage (quantity + unit) with no money; charge generation
    later prices POSTED, uncharged logs into a machinery charge.
    """

    __tablename__ = "machine_work_logs"

    __table_args__ = (
        UniqueConstraint("tenant_id", "work_log_no", name="uq_machine_work_log_no"),
        Index("idx_work_log_project", "tenant_id", "project_id", "status"),
        Index("idx_work_log_charge", "machinery_charge_id"),
    )

    work_log_no: Mapped[str] = mapped_column(String(50), nullable=False)
    machine_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("machines.id"), nullable=False
    )
    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    crop_cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("crop_cycles.id"), nullable=False
    )
    pool_scope: Mapped[str] = mapped_column(
        String(20), default=PoolScope.SHARED, nullable=False
    )
    activity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    meter_start: Mapped[Decimal | None] = mapped_column(nullable=True)
    meter_end: Mapped[Decimal | None] = mapped_column(nullable=True)
    usage_qty: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Set by charge generation; a charged log is never charged again.
    machinery_charge_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("machinery_charges.id"), nullable=True
    )

    machine: Mapped[Machine] = relationship()

    def __repr__(self) -> str:
        return f"<MachineWorkLog {self.work_log_no} qty={self.usage_qty} [{self.status}]>"


# =============================================================================
# MachineryCharge
# =============================================================================

class MachineryCharge(PostableDocumentMixin, TenantScopedBase):
    """
    Landlord charge for priced machine usage on a project.

    Created by charge generation (one per pool scope), one line per work
    log; ``total_amount`` is the sum of the line amounts.
    """

    __tablename__ = "machinery_charges"

    __table_args__ = (
        UniqueConstraint("tenant_id", "charge_no", name="uq_machinery_charge_no"),
    )

    charge_no: Mapped[str] = mapped_column(String(50), nullable=False)
    landlord_party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )
    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    crop_cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("crop_cycles.id"), nullable=False
    )
    pool_scope: Mapped[str] = mapped_column(
        String(20), default=PoolScope.SHARED, nullable=False
    )
    charge_date: Mapped[date] = mapped_column(Date, nullable=False)
    from_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    to_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    lines: Mapped[list["MachineryChargeLine"]] = relationship(
        back_populates="charge",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<MachineryCharge {self.charge_no} {self.total_amount} [{self.status}]>"


class MachineryChargeLine(TenantScopedBase):
    """One priced work log on a machinery charge."""

    __tablename__ = "machinery_charge_lines"

    machinery_charge_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("machinery_charges.id"), nullable=False
    )
    machine_work_log_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("machine_work_logs.id"), nullable=False
    )
    usage_qty: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(10), nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    rate_card_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("machine_rate_cards.id"), nullable=False
    )

    charge: Mapped[MachineryCharge] = relationship(back_populates="lines")


# =============================================================================
# MachineMaintenanceJob
# =============================================================================

class MachineMaintenanceJob(PostableDocumentMixin, TenantScopedBase):
    """
    Repair or service work on a machine, optionally by an outside vendor.

    Not tied to a crop cycle; only the accounting period is checked when it
    posts.
    """

    __tablename__ = "machine_maintenance_jobs"

    __table_args__ = (
        UniqueConstraint("tenant_id", "job_no", name="uq_maintenance_job_no"),
    )

    job_no: Mapped[str] = mapped_column(String(50), nullable=False)
    machine_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("machines.id"), nullable=False
    )
    maintenance_type_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    vendor_party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=True
    )
    job_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    lines: Mapped[list["MachineMaintenanceJobLine"]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<MachineMaintenanceJob {self.job_no} [{self.status}]>"


class MachineMaintenanceJobLine(TenantScopedBase):
    __tablename__ = "machine_maintenance_job_lines"

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("machine_maintenance_jobs.id"), nullable=False
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    job: Mapped[MachineMaintenanceJob] = relationship(back_populates="lines")


# =============================================================================
# MachineryService (internal)
# =============================================================================

class MachineryService(PostableDocumentMixin, TenantScopedBase):
    """
    Internal machinery service rendered to a project, priced from a rate card
    at posting time.

    May be paid in kind: when ``in_kind_item_id`` and
    ``in_kind_rate_per_unit`` are set, posting also issues
    ``quantity * in_kind_rate_per_unit`` of the item from
    ``in_kind_store_id``.
    """

    __tablename__ = "machinery_services"

    machine_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("machines.id"), nullable=False
    )
    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    rate_card_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("machine_rate_cards.id"), nullable=True
    )
    service_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    allocation_scope: Mapped[str] = mapped_column(
        String(20), default=AllocationScope.SHARED, nullable=False
    )

    in_kind_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("inv_items.id"), nullable=True
    )
    in_kind_rate_per_unit: Mapped[Decimal | None] = mapped_column(nullable=True)
    in_kind_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    in_kind_store_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("inv_stores.id"), nullable=True
    )
    in_kind_inventory_issue_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("inv_issues.id"), nullable=True
    )

    rate_card: Mapped[MachineRateCard | None] = relationship()

    @property
    def is_paid_in_kind(self) -> bool:
        return self.in_kind_item_id is not None and self.in_kind_rate_per_unit is not None

    def __repr__(self) -> str:
        return f"<MachineryService {self.id} qty={self.quantity} [{self.status}]>"
