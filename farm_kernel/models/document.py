"""
Module: farm_kernel.models.document
Responsibility: Lifecycle columns shared by every postable source document
    (machinery charges, maintenance jobs, services, work logs, inventory
    documents).  The documents themselves are owned by farm_modules; the
    kernel only reads and stamps these columns.
Architecture position: Kernel > Models.  Mixed into module ORM classes.

Invariants enforced:
    - status moves DRAFT -> POSTED -> REVERSED only (enforced by
      domain/lifecycle.py); REVERSED is terminal.
    - posting_group_id is stamped exactly once, when status becomes POSTED.
    - reversal_posting_group_id is stamped exactly once, when status becomes
      REVERSED.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from farm_kernel.db.base import UUIDString


class DocumentStatus(str, Enum):
    """Lifecycle status of a postable document.  DRAFT -> POSTED -> REVERSED."""

    DRAFT = "DRAFT"
    POSTED = "POSTED"
    REVERSED = "REVERSED"


class PostableDocumentMixin:
    """Status and posting stamps carried by every source document."""

    status: Mapped[DocumentStatus] = mapped_column(
        String(10),
        default=DocumentStatus.DRAFT,
        nullable=False,
    )

    posting_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    posting_group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("posting_groups.id"),
        nullable=True,
    )

    reversal_posting_group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("posting_groups.id"),
        nullable=True,
    )

    @property
    def is_draft(self) -> bool:
        return self.status == DocumentStatus.DRAFT

    @property
    def is_reversed(self) -> bool:
        return self.status == DocumentStatus.REVERSED
