"""
MachineryChargeGenerator -- turns posted machine usage into landlord charges.

Responsibility:
    Prices every POSTED, not-yet-charged work log of a project inside a date
    range and bills it to a landlord as a machinery charge, one charge per
    pool scope.  Each scope runs in its own transaction:

        1. resolve the rate of every log (all missing rates reported at once)
        2. create the charge (number from SequenceService) with one line per
           log, amount = round(usage_qty * rate, 2)
        3. reserve the logs (``machinery_charge_id``)
        4. post the charge with key
           ``machinery_charge_generation:<project>:<landlord>:<scope>:<from>:<to>``

Architecture position:
    Modules > Machinery.  Owns its transaction boundaries (one commit per
    scope); posts through MachineryChargePostingService with
    ``auto_commit=False``.

Invariants enforced:
    - A work log is charged at most once.
    - Replaying the same call returns the posting groups of the scopes that
      were already generated and writes nothing for them.

Failure modes:
    - DocumentNotFoundError: project or landlord party missing.
    - MissingRateError: a scope has unpriced logs.  That scope leaves
      nothing behind; scopes committed before it stay committed.
    - NoChargeableUsageError: nothing to charge and nothing generated before.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock, SystemClock
from farm_kernel.exceptions import DocumentNotFoundError, NoChargeableUsageError
from farm_kernel.logging_config import LogContext, get_logger
from farm_kernel.models.document import DocumentStatus
from farm_kernel.models.posting import PostingGroup
from farm_kernel.models.reference import Party, Project
from farm_kernel.selectors.base import get_for_tenant, tenant_select
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.sequence_service import SequenceService
from farm_kernel.utils.idempotency import generate_idempotency_key
from farm_modules._posting_helpers import money
from farm_modules.machinery.charge_posting import MachineryChargePostingService
from farm_modules.machinery.models import (
    ChargeDraft,
    ChargeGenerationRequest,
    ChargeLineDraft,
    PoolScope,
)
from farm_modules.machinery.orm import MachineryCharge, MachineryChargeLine, MachineWorkLog
from farm_modules.machinery.rates import RateResolver

logger = get_logger("modules.machinery.charge_generation")

GENERATION_KEY_PREFIX = "machinery_charge_generation"

_SCOPE_ORDER = [scope.value for scope in PoolScope]


def generation_key(request: ChargeGenerationRequest, pool_scope: str) -> str:
    return generate_idempotency_key(
        GENERATION_KEY_PREFIX,
        request.project_id,
        request.landlord_party_id,
        pool_scope,
        request.from_date.isoformat(),
        request.to_date.isoformat(),
    )


class MachineryChargeGenerator:
    """Generate and post machinery charges from posted work logs."""

    def __init__(
        self,
        session: Session,
        account_resolver: AccountResolver,
        period_guard: PeriodGuard,
        config: PostingConfig,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._rates = RateResolver(session)
        self._sequence = SequenceService(session)
        self._charges = MachineryChargePostingService(
            session, account_resolver, period_guard, config, self._clock, auto_commit=False
        )

    def generate(
        self,
        tenant_id: UUID,
        project_id: UUID,
        landlord_party_id: UUID,
        from_date: date,
        to_date: date,
        pool_scope: str | None = None,
        charge_date: date | None = None,
    ) -> list[PostingGroup]:
        """
        Generate one posted charge per pool scope.

        Returns the posting groups of every scope, replayed ones first.
        """
        request = ChargeGenerationRequest(
            tenant_id=tenant_id,
            project_id=project_id,
            landlord_party_id=landlord_party_id,
            from_date=from_date,
            to_date=to_date,
            pool_scope=pool_scope,
            charge_date=charge_date,
        )

        with LogContext.bind(tenant_id=tenant_id, document_type="machinery_charge"):
            project = get_for_tenant(self._session, Project, project_id, tenant_id)
            if project is None:
                raise DocumentNotFoundError("project", str(project_id))
            if get_for_tenant(self._session, Party, landlord_party_id, tenant_id) is None:
                raise DocumentNotFoundError("party", str(landlord_party_id))

            scopes = [pool_scope] if pool_scope else _SCOPE_ORDER
            generated = {
                scope: group
                for scope in scopes
                if (group := self._charges_for_key(tenant_id, generation_key(request, scope)))
                is not None
            }

            by_scope = self._eligible_logs_by_scope(request)
            pending = [
                scope for scope in _ordered(by_scope) if scope not in generated
            ]
            for scope in _ordered(by_scope):
                if scope in generated:
                    logger.info(
                        "charge_generation_scope_replayed",
                        extra={
                            "pool_scope": scope,
                            "posting_group_id": str(generated[scope].id),
                            "uncharged_log_count": len(by_scope[scope]),
                        },
                    )

            if not pending and not generated:
                raise NoChargeableUsageError(
                    str(project_id), from_date.isoformat(), to_date.isoformat(), pool_scope
                )

            results = list(generated.values())
            for scope in pending:
                results.append(
                    self._generate_scope(request, project, scope, by_scope[scope])
                )
            return results

    # ------------------------------------------------------------------

    def _charges_for_key(self, tenant_id: UUID, key: str) -> PostingGroup | None:
        return self._session.execute(
            tenant_select(PostingGroup, tenant_id, PostingGroup.idempotency_key == key)
        ).scalar_one_or_none()

    def _eligible_logs_by_scope(
        self, request: ChargeGenerationRequest
    ) -> dict[str, list[MachineWorkLog]]:
        criteria = [
            MachineWorkLog.project_id == request.project_id,
            MachineWorkLog.status == DocumentStatus.POSTED.value,
            MachineWorkLog.posting_date >= request.from_date,
            MachineWorkLog.posting_date <= request.to_date,
            MachineWorkLog.machinery_charge_id.is_(None),
        ]
        if request.pool_scope:
            criteria.append(MachineWorkLog.pool_scope == request.pool_scope)
        logs = self._session.execute(
            tenant_select(MachineWorkLog, request.tenant_id, *criteria).order_by(
                MachineWorkLog.posting_date, MachineWorkLog.work_log_no
            )
        ).scalars()

        by_scope: dict[str, list[MachineWorkLog]] = defaultdict(list)
        for work_log in logs:
            by_scope[work_log.pool_scope or PoolScope.SHARED.value].append(work_log)
        return by_scope

    def _draft(self, request: ChargeGenerationRequest, scope: str, logs) -> ChargeDraft:
        resolved = self._rates.resolve_rates(request.tenant_id, logs)
        lines = []
        for work_log in logs:
            rate = resolved[work_log.id]
            lines.append(
                ChargeLineDraft(
                    work_log_id=work_log.id,
                    usage_qty=work_log.usage_qty,
                    unit=rate.rate_unit,
                    rate=rate.rate,
                    amount=money(self._config, work_log.usage_qty * rate.rate),
                    rate_card_id=rate.rate_card_id,
                )
            )
        return ChargeDraft(pool_scope=scope, lines=tuple(lines))

    def _generate_scope(
        self,
        request: ChargeGenerationRequest,
        project: Project,
        scope: str,
        logs: list[MachineWorkLog],
    ) -> PostingGroup:
        charge_date = request.charge_date or self._clock.now().date()
        key = generation_key(request, scope)
        try:
            draft = self._draft(request, scope, logs)
            number = self._sequence.next_value(
                request.tenant_id, SequenceService.MACHINERY_CHARGE
            )
            charge = MachineryCharge(
                id=uuid4(),
                tenant_id=request.tenant_id,
                charge_no=self._config.charge_numbering.format(number),
                landlord_party_id=request.landlord_party_id,
                project_id=project.id,
                crop_cycle_id=project.crop_cycle_id,
                pool_scope=scope,
                charge_date=charge_date,
                from_date=request.from_date,
                to_date=request.to_date,
                total_amount=draft.total_amount,
                status=DocumentStatus.DRAFT,
            )
            for line in draft.lines:
                charge.lines.append(
                    MachineryChargeLine(
                        tenant_id=request.tenant_id,
                        machine_work_log_id=line.work_log_id,
                        usage_qty=line.usage_qty,
                        unit=line.unit,
                        rate=line.rate,
                        amount=line.amount,
                        rate_card_id=line.rate_card_id,
                    )
                )
            self._session.add(charge)
            for work_log in logs:
                work_log.machinery_charge_id = charge.id
            self._session.flush()

            group = self._charges.post(charge.id, request.tenant_id, charge_date, key)
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning(
                "charge_generation_failed",
                extra={"pool_scope": scope, "idempotency_key": key},
                exc_info=True,
            )
            raise

        logger.info(
            "charge_generated",
            extra={
                "charge_no": charge.charge_no,
                "pool_scope": scope,
                "line_count": len(draft.lines),
                "total_amount": draft.total_amount,
                "posting_group_id": str(group.id),
                "idempotency_key": key,
            },
        )
        return group


def _ordered(by_scope: dict[str, list]) -> list[str]:
    """Known pool scopes first, in declaration order, then any others."""
    known = [scope for scope in _SCOPE_ORDER if scope in by_scope]
    return known + sorted(scope for scope in by_scope if scope not in _SCOPE_ORDER)
