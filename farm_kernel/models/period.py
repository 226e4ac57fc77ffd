"""
Module: farm_kernel.models.period
Responsibility: ORM persistence for the two kinds of business period the
    PeriodGuard consults: crop cycles (the agronomic season a project belongs
    to) and accounting periods (calendar ranges that finance can close).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A crop cycle accepts postings only while OPEN and only for dates inside
      [start_date, end_date] (either bound may be open-ended).
    - An accounting period in CLOSED (or LOCKED) status rejects new postings; reversals
      dated on the original posting date are still accepted.

Failure modes:
    - PeriodClosedError / PeriodNotFoundError are raised by
      services/period_guard.py, not by these models.
"""

from datetime import date
from enum import Enum

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import TenantScopedBase


class CropCycleStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class PeriodStatus(str, Enum):
    """Accounting period status.  OPEN -> CLOSED -> LOCKED."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    LOCKED = "LOCKED"


class CropCycle(TenantScopedBase):
    """A crop season.  Projects and most farm documents belong to one."""

    __tablename__ = "crop_cycles"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[CropCycleStatus] = mapped_column(
        String(10),
        default=CropCycleStatus.OPEN,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CropCycle {self.name} [{self.status}]>"

    @property
    def is_open(self) -> bool:
        return self.status == CropCycleStatus.OPEN


class AccountingPeriod(TenantScopedBase):
    """
    Calendar period used for month/year-end close.

    Guarantees:
        - contains_date() treats both bounds as inclusive.
    """

    __tablename__ = "accounting_periods"

    __table_args__ = (
        UniqueConstraint("tenant_id", "period_code", name="uq_accounting_period_code"),
        Index("idx_accounting_period_dates", "tenant_id", "start_date", "end_date"),
    )

    period_code: Mapped[str] = mapped_column(String(20), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(10),
        default=PeriodStatus.OPEN,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AccountingPeriod {self.period_code} [{self.status}]>"

    @property
    def is_closed(self) -> bool:
        return self.status in (PeriodStatus.CLOSED, PeriodStatus.LOCKED)

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date
