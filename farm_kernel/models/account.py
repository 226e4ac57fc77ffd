"""
Module: farm_kernel.models.account
Responsibility: ORM persistence for the per-tenant chart of accounts that the
    AccountResolver reads.  Account codes are the well-known names used by the
    posting orchestrators (e.g. "MACHINERY_SERVICE_EXPENSE", "AP").
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (tenant_id, code) is unique: a code resolves to at most one account.

Failure modes:
    - IntegrityError on duplicate (tenant_id, code).
"""

from enum import Enum

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import TenantScopedBase


class AccountType(str, Enum):
    """Fundamental account classification."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Account(TenantScopedBase):
    """
    Chart of accounts entry for one tenant.

    Chart-of-accounts management lives outside the posting engine; this
    table is read-only from the engine's point of view.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_account_tenant_code"),
    )

    code: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
