"""
RateResolver -- dated, priority-ordered rate card lookup.

Responsibility:
    Picks the billing rate for a machine work log:

    1. an active MACHINE card for the log's machine, in the rate unit that
       matches the machine's meter unit;
    2. otherwise an active MACHINE_TYPE card for the machine's type, same
       unit rule.

    A card applies on ``as_of`` when ``effective_from <= as_of`` and
    ``effective_to`` is NULL or ``>= as_of``.  Among applicable cards the
    latest ``effective_from`` wins.

Architecture position:
    Modules > Machinery.  Read-only; used by charge generation.

Failure modes:
    - UnsupportedMeterUnitError: the machine's meter unit has no rate unit.
    - MissingRateError: ``resolve_rates`` found no card for one or more logs.
      Every unresolved log is listed, not just the first.
"""

from datetime import date
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from farm_kernel.exceptions import MissingRateError
from farm_kernel.logging_config import get_logger
from farm_kernel.selectors.base import get_for_tenant, tenant_select
from farm_modules.machinery.models import RateCardMode, ResolvedRate, rate_unit_for_meter
from farm_modules.machinery.orm import Machine, MachineRateCard, MachineWorkLog

logger = get_logger("modules.machinery.rates")


class RateResolver:
    """Resolve rate cards for work logs of one tenant."""

    def __init__(self, session: Session):
        self._session = session

    def resolve_rate(
        self,
        tenant_id: UUID,
        work_log: MachineWorkLog,
        as_of: date | None = None,
    ) -> MachineRateCard | None:
        """
        Best rate card for ``work_log`` on ``as_of``, or None.

        ``as_of`` defaults to the log's posting date, then its work date.
        """
        as_of = as_of or work_log.posting_date or work_log.work_date
        machine = get_for_tenant(self._session, Machine, work_log.machine_id, tenant_id)
        unit = rate_unit_for_meter(machine.id, machine.meter_unit)

        card = self._latest_card(
            tenant_id,
            as_of,
            MachineRateCard.applies_to_mode == RateCardMode.MACHINE.value,
            MachineRateCard.machine_id == machine.id,
            MachineRateCard.rate_unit == unit.value,
        )
        if card is None:
            card = self._latest_card(
                tenant_id,
                as_of,
                MachineRateCard.applies_to_mode == RateCardMode.MACHINE_TYPE.value,
                MachineRateCard.machine_type == machine.machine_type,
                MachineRateCard.rate_unit == unit.value,
            )

        logger.debug(
            "rate_resolved" if card is not None else "rate_unresolved",
            extra={
                "work_log_id": str(work_log.id),
                "machine_id": str(machine.id),
                "rate_unit": unit.value,
                "as_of": as_of,
                "rate_card_id": str(card.id) if card is not None else None,
            },
        )
        return card

    def resolve_rates(
        self,
        tenant_id: UUID,
        work_logs: Iterable[MachineWorkLog],
        as_of: date | None = None,
    ) -> dict[UUID, ResolvedRate]:
        """
        Resolve every work log, keyed by work log id.

        Raises:
            MissingRateError: listing every log without an applicable card.
        """
        resolved: dict[UUID, ResolvedRate] = {}
        unresolved: list[dict] = []

        for work_log in work_logs:
            log_as_of = as_of or work_log.posting_date or work_log.work_date
            card = self.resolve_rate(tenant_id, work_log, log_as_of)
            if card is None:
                machine = get_for_tenant(self._session, Machine, work_log.machine_id, tenant_id)
                unresolved.append(
                    {
                        "work_log_id": str(work_log.id),
                        "machine_id": str(work_log.machine_id),
                        "rate_unit": rate_unit_for_meter(machine.id, machine.meter_unit).value,
                        "as_of": log_as_of.isoformat(),
                    }
                )
                continue
            resolved[work_log.id] = ResolvedRate(
                work_log_id=work_log.id,
                rate_card_id=card.id,
                rate_unit=card.rate_unit,
                rate=card.base_rate,
                applies_to_mode=card.applies_to_mode,
            )

        if unresolved:
            logger.warning(
                "rates_missing",
                extra={"tenant_id": str(tenant_id), "unresolved_count": len(unresolved)},
            )
            raise MissingRateError(unresolved)
        return resolved

    def _latest_card(self, tenant_id: UUID, as_of: date, *criteria) -> MachineRateCard | None:
        stmt = (
            tenant_select(
                MachineRateCard,
                tenant_id,
                *criteria,
                MachineRateCard.is_active.is_(True),
                MachineRateCard.effective_from <= as_of,
                (MachineRateCard.effective_to.is_(None)) | (MachineRateCard.effective_to >= as_of),
            )
            .order_by(MachineRateCard.effective_from.desc())
            .limit(1)
        )
        return self._session.execute(stmt).scalar_one_or_none()
