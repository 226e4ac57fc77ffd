"""
PostingRunner -- the idempotent post / reverse protocol shared by every
document family.

Responsibility:
    Runs the common skeleton of a posting or reversal and delegates the
    family-specific middle (period checks, amount, accounts, allocation
    dimensions, side effects) to a ``prepare`` callback:

    post:
        1. idempotency key = caller key or ``<family>:<id>:post``
        2. existing group for (tenant, key)            -> replay
        3. existing group for (tenant, source, id)     -> replay
        4. load document FOR UPDATE; must be DRAFT     -> NotEligible
        5-6. ``prepare(document)`` -> PostingPlan      (period, rate, accounts)
        7. write group + allocation rows + ledger entries, run plan hook
        8. DRAFT -> POSTED, stamp posting_date / posted_at / group id
        9. commit (auto_commit) and return the loaded group

    reverse:
        document exists -> POSTED -> not REVERSED -> group attached, then the
        ReversalService primitive (period checks, replay, mirror), the
        family's reversal hook, POSTED -> REVERSED, commit.

Architecture position:
    Kernel > Services.  Composed (not inherited) by each orchestrator in
    ``farm_modules``.  This is the only kernel component that commits.

Invariants enforced:
    - Atomicity: any failure after step 3 rolls back everything, leaving the
      document DRAFT and no posting rows behind (auto_commit=True).
    - At-most-once posting: the (tenant, key) and (tenant, source) unique
      constraints decide concurrent races; the loser re-reads the winner.
    - Tenancy: every lookup goes through ``tenant_select``.

Failure modes:
    - DocumentNotFoundError / DocumentNotEligibleError (post).
    - DocumentNotFoundError / NotPostedError / AlreadyReversedError /
      MissingPostingGroupError (reverse), in that order.
    - Anything raised by ``prepare`` or the hooks propagates after rollback.
    - ConcurrentPostingError when a race is lost with auto_commit=False.
    - IntegrityError when a constraint fails and no winning group exists.

Audit relevance:
    Emits ``posting_started``, ``posting_idempotent_replay``,
    ``posting_completed``, ``posting_failed``, ``reversal_completed`` and
    ``reversal_failed`` with tenant, document and group ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from farm_kernel.domain.clock import Clock, SystemClock
from farm_kernel.domain.lifecycle import apply_transition
from farm_kernel.exceptions import (
    AlreadyReversedError,
    ConcurrentPostingError,
    DocumentNotEligibleError,
    DocumentNotFoundError,
    MissingPostingGroupError,
    NotPostedError,
)
from farm_kernel.logging_config import LogContext, get_logger
from farm_kernel.models.account import Account
from farm_kernel.models.document import DocumentStatus
from farm_kernel.models.posting import AllocationRow, LedgerEntry, PostingGroup
from farm_kernel.selectors.base import get_for_tenant, tenant_select
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.reversal_service import DEFAULT_REVERSAL_REASON, ReversalService
from farm_kernel.utils.idempotency import default_posting_key
from farm_kernel.utils.money import ZERO

logger = get_logger("services.posting_runner")


@dataclass(frozen=True)
class DocumentFamily:
    """Identity of a postable document type."""

    name: str           # idempotency key prefix, e.g. "machinery_charge"
    source_type: str    # posting_groups.source_type, e.g. "MACHINERY_CHARGE"
    model: type         # ORM class carrying PostableDocumentMixin


@dataclass(frozen=True)
class LedgerLine:
    account: Account
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass(frozen=True)
class AllocationSpec:
    """One allocation row to create: an amount, or a quantity with unit."""

    allocation_type: str
    amount: Decimal | None = None
    quantity: Decimal | None = None
    unit: str | None = None
    project_id: UUID | None = None
    party_id: UUID | None = None
    machine_id: UUID | None = None
    allocation_scope: str | None = None
    rule_snapshot: dict[str, Any] | None = None


@dataclass
class PostingPlan:
    """What ``prepare`` hands back to the runner."""

    crop_cycle_id: UUID | None
    allocations: list[AllocationSpec]
    ledger_lines: list[LedgerLine] = field(default_factory=list)
    on_created: Callable[[PostingGroup], None] | None = None


class PostingRunner:
    """
    Shared post / reverse skeleton.

    Contract:
        One runner per unit of work.  With ``auto_commit=True`` the runner
        commits on success and rolls back on failure; with
        ``auto_commit=False`` it only flushes and the caller owns the
        transaction (used when one posting triggers another, e.g. an
        in-kind inventory issue inside a machinery service posting).

    Non-goals:
        - Knows nothing about amounts, accounts or dimensions of a family.
    """

    def __init__(
        self,
        session: Session,
        period_guard: PeriodGuard,
        clock: Clock | None = None,
        *,
        currency_code: str = "GBP",
        auto_commit: bool = True,
    ):
        self._session = session
        self._period_guard = period_guard
        self._clock = clock or SystemClock()
        self._currency_code = currency_code
        self._auto_commit = auto_commit
        self._reversal_service = ReversalService(session, period_guard)

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_key(self, tenant_id: UUID, idempotency_key: str) -> PostingGroup | None:
        return self._session.execute(
            tenant_select(PostingGroup, tenant_id, PostingGroup.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    def find_by_source(
        self, tenant_id: UUID, source_type: str, source_id: UUID
    ) -> PostingGroup | None:
        return self._session.execute(
            tenant_select(
                PostingGroup,
                tenant_id,
                PostingGroup.source_type == source_type,
                PostingGroup.source_id == source_id,
            )
        ).scalar_one_or_none()

    def load_document(
        self, family: DocumentFamily, document_id: UUID, tenant_id: UUID
    ) -> Any:
        document = get_for_tenant(
            self._session, family.model, document_id, tenant_id, for_update=True
        )
        if document is None:
            raise DocumentNotFoundError(family.name, str(document_id))
        return document

    # ------------------------------------------------------------------
    # Post
    # ------------------------------------------------------------------

    def post(
        self,
        family: DocumentFamily,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None,
        prepare: Callable[[Any], PostingPlan],
    ) -> PostingGroup:
        """
        Post one document.  See module docstring for the protocol.

        Preconditions:
            - ``prepare`` raises for any reason the document cannot post and
              does not write to the session.
        Postconditions:
            - Returns the posting group for the document (new or replayed).
        """
        key = idempotency_key or default_posting_key(family.name, document_id)

        with LogContext.bind(
            tenant_id=tenant_id, document_type=family.name, document_id=document_id
        ):
            logger.info(
                "posting_started",
                extra={"idempotency_key": key, "posting_date": posting_date},
            )
            try:
                existing = self.find_by_key(tenant_id, key) or self.find_by_source(
                    tenant_id, family.source_type, document_id
                )
                if existing is not None:
                    logger.info(
                        "posting_idempotent_replay",
                        extra={"idempotency_key": key, "posting_group_id": str(existing.id)},
                    )
                    return existing

                document = self.load_document(family, document_id, tenant_id)
                if not document.is_draft:
                    raise DocumentNotEligibleError(
                        family.name,
                        str(document_id),
                        DocumentStatus(document.status).value,
                        DocumentStatus.DRAFT.value,
                    )

                plan = prepare(document)
                group = self._write_plan(family, document_id, tenant_id, posting_date, key, plan)
                if plan.on_created is not None:
                    plan.on_created(group)

                apply_transition(document, family.name, DocumentStatus.POSTED)
                document.posting_date = posting_date
                document.posted_at = self._clock.now()
                document.posting_group_id = group.id
                self._session.flush()

                if self._auto_commit:
                    self._session.commit()

            except IntegrityError as exc:
                return self._recover_from_race(family, document_id, tenant_id, key, exc)
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    "posting_failed",
                    extra={"idempotency_key": key},
                    exc_info=True,
                )
                raise

            logger.info(
                "posting_completed",
                extra={
                    "idempotency_key": key,
                    "posting_group_id": str(group.id),
                    "ledger_entry_count": len(group.ledger_entries),
                    "allocation_row_count": len(group.allocation_rows),
                    "total_debits": group.total_debits,
                },
            )
            return group

    def _write_plan(
        self,
        family: DocumentFamily,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        key: str,
        plan: PostingPlan,
    ) -> PostingGroup:
        with self._session.no_autoflush:
            group = PostingGroup(
                id=uuid4(),
                tenant_id=tenant_id,
                crop_cycle_id=plan.crop_cycle_id,
                source_type=family.source_type,
                source_id=document_id,
                posting_date=posting_date,
                idempotency_key=key,
            )
            for spec in plan.allocations:
                group.allocation_rows.append(
                    AllocationRow(
                        tenant_id=tenant_id,
                        project_id=spec.project_id,
                        party_id=spec.party_id,
                        machine_id=spec.machine_id,
                        allocation_type=spec.allocation_type,
                        allocation_scope=spec.allocation_scope,
                        amount=spec.amount,
                        quantity=spec.quantity,
                        unit=spec.unit,
                        rule_snapshot=spec.rule_snapshot,
                    )
                )
            for line in plan.ledger_lines:
                group.ledger_entries.append(
                    LedgerEntry(
                        tenant_id=tenant_id,
                        account_id=line.account.id,
                        debit_amount=line.debit,
                        credit_amount=line.credit,
                        currency_code=self._currency_code,
                    )
                )
            self._session.add(group)
        self._session.flush()
        return group

    def _recover_from_race(
        self,
        family: DocumentFamily,
        document_id: UUID,
        tenant_id: UUID,
        key: str,
        error: IntegrityError,
    ) -> PostingGroup:
        """
        Resolve a unique-constraint failure on insert.

        Returns the committed winner for the same key or source.  Inside a
        caller's transaction the session cannot be re-read, so the loss is
        reported as ``ConcurrentPostingError``.  When no winner exists the
        failure was not a race and ``error`` is re-raised.
        """
        if not self._auto_commit:
            logger.warning(
                "posting_race_lost_in_outer_transaction",
                extra={"idempotency_key": key},
                exc_info=error,
            )
            raise ConcurrentPostingError(str(tenant_id), key) from error

        self._session.rollback()
        winner = self.find_by_key(tenant_id, key) or self.find_by_source(
            tenant_id, family.source_type, document_id
        )
        if winner is None:
            logger.error(
                "posting_integrity_error",
                extra={"idempotency_key": key},
                exc_info=error,
            )
            raise error
        logger.info(
            "posting_idempotent_replay",
            extra={
                "idempotency_key": key,
                "posting_group_id": str(winner.id),
                "after_race": True,
            },
        )
        return winner

    # ------------------------------------------------------------------
    # Reverse
    # ------------------------------------------------------------------

    def reverse(
        self,
        family: DocumentFamily,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None,
        on_reversed: Callable[[Any, PostingGroup, PostingGroup], None] | None = None,
    ) -> PostingGroup:
        """
        Reverse one posted document.

        ``on_reversed(document, original, reversal)`` runs only when a new
        reversal group was created, to undo module side effects.  A missing
        ``reason`` is recorded as ``DEFAULT_REVERSAL_REASON``.
        """
        if reason is None:
            reason = DEFAULT_REVERSAL_REASON
        with LogContext.bind(
            tenant_id=tenant_id, document_type=family.name, document_id=document_id
        ):
            try:
                document = self.load_document(family, document_id, tenant_id)
                if document.is_draft:
                    raise NotPostedError(
                        family.name, str(document_id), DocumentStatus.DRAFT.value
                    )
                if document.is_reversed:
                    raise AlreadyReversedError(family.name, str(document_id))
                if document.posting_group_id is None:
                    raise MissingPostingGroupError(family.name, str(document_id))

                result = self._reversal_service.reverse_posting_group(
                    document.posting_group_id, tenant_id, posting_date, reason
                )
                if not result.replayed and on_reversed is not None:
                    on_reversed(document, result.original, result.posting_group)

                apply_transition(document, family.name, DocumentStatus.REVERSED)
                document.reversal_posting_group_id = result.posting_group.id
                self._session.flush()

                if self._auto_commit:
                    self._session.commit()

            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning("reversal_failed", exc_info=True)
                raise

            logger.info(
                "reversal_completed",
                extra={
                    "original_posting_group_id": str(result.original.id),
                    "reversal_posting_group_id": str(result.posting_group.id),
                    "posting_date": posting_date,
                    "reason": reason,
                    "replayed": result.replayed,
                },
            )
            return result.posting_group
