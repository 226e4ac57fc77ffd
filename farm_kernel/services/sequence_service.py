"""
SequenceService -- per-tenant document numbering via locked counter rows.

Responsibility:
    Provides strictly increasing numbers per (tenant, sequence name), used
    for human-facing document numbers such as machinery charge numbers
    (``MCH-000001``).  Uses a counter table with row-level locking
    (``SELECT ... FOR UPDATE``).

Architecture position:
    Kernel > Services.  Called by charge generation inside the unit of work
    that creates the numbered document.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next value;
      the aggregate-max-plus-one pattern is never used.
    - The increment is transactional: a rollback returns the number.

Failure modes:
    - IntegrityError if two first-ever allocations for the same tenant and
      sequence race to create the counter row.  The unit of work rolls back
      and the caller retries.
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, Session, mapped_column

from farm_kernel.db.base import TenantScopedBase
from farm_kernel.logging_config import get_logger
from farm_kernel.selectors.base import tenant_select
from farm_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceCounter(TenantScopedBase):
    """One named counter per tenant."""

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_sequence_counter_tenant_name"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService(BaseService):
    """
    Transactional sequence numbers per tenant.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.
    """

    MACHINERY_CHARGE = "machinery_charge"

    def __init__(self, session: Session):
        super().__init__(session)

    def next_value(self, tenant_id: UUID, sequence_name: str) -> int:
        """
        Lock (or create) the counter row, increment it and return the value.

        Postconditions:
            - Returns an integer > 0, strictly greater than any value
              previously returned for this tenant and sequence.
        """
        counter = self.session.execute(
            tenant_select(SequenceCounter, tenant_id, SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            counter = SequenceCounter(tenant_id=tenant_id, name=sequence_name, current_value=0)
            self.session.add(counter)

        counter.current_value += 1
        self.session.flush()

        logger.debug(
            "sequence_allocated",
            extra={
                "tenant_id": str(tenant_id),
                "sequence_name": sequence_name,
                "value": counter.current_value,
            },
        )
        return counter.current_value

    def current_value(self, tenant_id: UUID, sequence_name: str) -> int | None:
        counter = self.session.execute(
            tenant_select(SequenceCounter, tenant_id, SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
