"""
Module: farm_kernel.models.reference
Responsibility: Minimal reference data the posting engine reads to populate
    allocation dimensions: parties (landlords, hari, vendors, workers) and
    projects (a field/crop arrangement inside a crop cycle, owned by a party).
Architecture position: Kernel > Models.  Reference-data CRUD is outside the
    posting engine; these tables are read-only from its point of view.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import TenantScopedBase, UUIDString


class Party(TenantScopedBase):
    __tablename__ = "parties"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    party_type: Mapped[str] = mapped_column(String(30), default="OTHER", nullable=False)

    def __repr__(self) -> str:
        return f"<Party {self.name}>"


class Project(TenantScopedBase):
    """
    A project inside a crop cycle.

    ``party_id`` is the counterparty whose pool receives allocations posted
    against the project.
    ``landlord_share_pct`` / ``hari_share_pct`` are the project's profit
    split, copied onto shared in-kind inventory issues.
    """

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    crop_cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("crop_cycles.id"),
        nullable=False,
    )

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("parties.id"),
        nullable=True,
    )

    landlord_share_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    hari_share_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    def __repr__(self) -> str:
        return f"<Project {self.name}>"
