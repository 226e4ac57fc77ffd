"""
PeriodGuard -- crop cycle and accounting period checks.

Responsibility:
    Decides whether a posting (or reversal) may land on a given date.  Two
    independent period concepts are checked:

    1. Crop cycle: the season a project belongs to.  It must be OPEN and the
       posting date must fall inside its start/end bounds.
    2. Accounting period: a calendar range finance can close.  A new posting
       may not fall in a CLOSED period.  A reversal may use the original
       posting date even if that period has since closed (the pair nets to
       zero inside the period); any other reversal date must not fall in a
       CLOSED period.  Dates with no accounting period are allowed.

Architecture position:
    Kernel > Services.  Read-only collaborator passed explicitly into every
    orchestrator and into ReversalService.

Failure modes:
    - PeriodNotFoundError: crop cycle or project missing for the tenant.
    - PeriodClosedError: cycle not OPEN, date out of bounds, or accounting
      period CLOSED.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from farm_kernel.exceptions import PeriodClosedError, PeriodNotFoundError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.period import AccountingPeriod, CropCycle
from farm_kernel.models.reference import Project
from farm_kernel.selectors.base import get_for_tenant, tenant_select

logger = get_logger("services.period_guard")

CROP_CYCLE = "crop_cycle"
ACCOUNTING_PERIOD = "accounting_period"


class PeriodGuard:
    """
    Period checks for postings and reversals.

    Non-goals:
        - Does not open, close or create periods.
    """

    def __init__(self, session: Session):
        self._session = session

    # ------------------------------------------------------------------
    # Crop cycles
    # ------------------------------------------------------------------

    def ensure_open(self, crop_cycle_id: UUID, tenant_id: UUID) -> CropCycle:
        """Return the crop cycle if it exists for the tenant and is OPEN."""
        cycle = get_for_tenant(self._session, CropCycle, crop_cycle_id, tenant_id)
        if cycle is None:
            raise PeriodNotFoundError(CROP_CYCLE, str(crop_cycle_id))
        if not cycle.is_open:
            self._reject(CROP_CYCLE, cycle.id, None, "crop cycle is closed")
        return cycle

    def ensure_open_for_project(
        self, project_id: UUID, tenant_id: UUID
    ) -> tuple[Project, CropCycle]:
        """Return the project and its crop cycle if that cycle is OPEN."""
        project = get_for_tenant(self._session, Project, project_id, tenant_id)
        if project is None:
            raise PeriodNotFoundError(CROP_CYCLE, f"project {project_id}")
        return project, self.ensure_open(project.crop_cycle_id, tenant_id)

    def ensure_date_in_cycle(self, cycle: CropCycle, posting_date: date) -> None:
        if cycle.start_date is not None and posting_date < cycle.start_date:
            self._reject(
                CROP_CYCLE, cycle.id, posting_date,
                "posting date is before crop cycle start date",
            )
        if cycle.end_date is not None and posting_date > cycle.end_date:
            self._reject(
                CROP_CYCLE, cycle.id, posting_date,
                "posting date is after crop cycle end date",
            )

    # ------------------------------------------------------------------
    # Accounting periods
    # ------------------------------------------------------------------

    def period_for_date(self, tenant_id: UUID, on_date: date) -> AccountingPeriod | None:
        return self._session.execute(
            tenant_select(
                AccountingPeriod,
                tenant_id,
                AccountingPeriod.start_date <= on_date,
                AccountingPeriod.end_date >= on_date,
            )
        ).scalars().first()

    def ensure_posting_date_allowed(self, tenant_id: UUID, posting_date: date) -> None:
        """A new posting may not fall in a CLOSED accounting period."""
        period = self.period_for_date(tenant_id, posting_date)
        if period is not None and period.is_closed:
            self._reject(
                ACCOUNTING_PERIOD, period.id, posting_date,
                f"accounting period {period.period_code} is closed",
            )

    def ensure_reversal_date_allowed(
        self,
        tenant_id: UUID,
        original_posting_date: date,
        reversal_posting_date: date,
    ) -> None:
        """
        Reversal date policy.

        Same date as the original is always allowed; a different date must
        not fall in a CLOSED accounting period.
        """
        if original_posting_date == reversal_posting_date:
            return
        period = self.period_for_date(tenant_id, reversal_posting_date)
        if period is not None and period.is_closed:
            self._reject(
                ACCOUNTING_PERIOD, period.id, reversal_posting_date,
                f"accounting period {period.period_code} is closed; "
                "reverse on the original posting date instead",
            )

    # ------------------------------------------------------------------
    # Combined checks used by the orchestrators
    # ------------------------------------------------------------------

    def check_posting(
        self, crop_cycle_id: UUID, tenant_id: UUID, posting_date: date
    ) -> CropCycle:
        """Crop cycle OPEN, date inside it, accounting period not CLOSED."""
        cycle = self.ensure_open(crop_cycle_id, tenant_id)
        self.ensure_date_in_cycle(cycle, posting_date)
        self.ensure_posting_date_allowed(tenant_id, posting_date)
        return cycle

    def check_project_posting(
        self, project_id: UUID, tenant_id: UUID, posting_date: date
    ) -> tuple[Project, CropCycle]:
        project, cycle = self.ensure_open_for_project(project_id, tenant_id)
        self.ensure_date_in_cycle(cycle, posting_date)
        self.ensure_posting_date_allowed(tenant_id, posting_date)
        return project, cycle

    def _reject(
        self, period_type: str, period_id: UUID, posting_date: date | None, reason: str
    ) -> None:
        logger.info(
            "period_check_rejected",
            extra={
                "period_type": period_type,
                "period_id": str(period_id),
                "posting_date": str(posting_date) if posting_date else None,
                "reason": reason,
            },
        )
        raise PeriodClosedError(
            period_type,
            str(period_id),
            str(posting_date) if posting_date else "",
            reason,
        )
