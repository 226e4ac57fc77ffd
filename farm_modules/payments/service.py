"""
Payment posting (``farm_modules.payments.service``).

    OUT, purpose WAGES:   Dr WAGES_PAYABLE            Cr CASH | BANK
    OUT, otherwise:       Dr <party payable role>     Cr CASH | BANK
    IN:                   Dr CASH | BANK              Cr AR

The party payable role follows the party type: LANDLORD -> DUE_TO_LANDLORD,
VENDOR -> AP, HARI / KAMDAR -> their party control accounts.  A wage payment
needs a worker linked to the party and takes the amount off that worker's
payable balance; reversing it puts the amount back.  An IN payment may not
exceed what the party owes from posted sales.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock
from farm_kernel.exceptions import DocumentValidationError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.posting import PostingGroup
from farm_kernel.models.reference import Party
from farm_kernel.selectors.base import get_for_tenant, tenant_select
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import AllocationSpec, DocumentFamily, PostingPlan
from farm_kernel.utils.money import ZERO
from farm_modules._posting_helpers import (
    build_runner,
    debit_credit_pair,
    money,
    require_positive_amount,
    snapshot,
)
from farm_modules.labour import Worker, adjust_worker_balance, worker_balance
from farm_modules.payments.orm import Payment, PaymentDirection, PaymentMethod, PaymentPurpose
from farm_modules.payments.selectors import ReceivableSelector

logger = get_logger("modules.payments.service")

PAYMENT = DocumentFamily(name="payment", source_type="PAYMENT", model=Payment)

PAYMENT_REVERSAL_REASON = "Payment reversal"

PAYABLE_ROLE_BY_PARTY_TYPE = {
    "LANDLORD": "DUE_TO_LANDLORD",
    "VENDOR": "AP",
    "HARI": "PARTY_CONTROL_HARI",
    "KAMDAR": "PARTY_CONTROL_KAMDAR",
}


class PaymentPostingService:
    """post / reverse for treasury payments."""

    def __init__(
        self,
        session: Session,
        account_resolver: AccountResolver,
        period_guard: PeriodGuard,
        config: PostingConfig,
        clock: Clock | None = None,
        *,
        auto_commit: bool = True,
    ):
        self._session = session
        self._accounts = account_resolver
        self._period_guard = period_guard
        self._config = config
        self._receivables = ReceivableSelector(session)
        self._runner = build_runner(session, period_guard, config, clock, auto_commit)

    def post(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        return self._runner.post(
            PAYMENT,
            document_id,
            tenant_id,
            posting_date,
            idempotency_key,
            lambda payment: self._prepare(payment, tenant_id, posting_date),
        )

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        """Reverse a posted payment; a wage payment is owed to the worker again."""

        def restore_wages(payment: Payment, original, reversal) -> None:
            if _is_wage_payment(payment):
                worker = self._worker_for(payment, tenant_id)
                adjust_worker_balance(
                    self._session, tenant_id, worker.id, money(self._config, payment.amount)
                )

        return self._runner.reverse(
            PAYMENT, document_id, tenant_id, posting_date, reason or PAYMENT_REVERSAL_REASON,
            on_reversed=restore_wages,
        )

    def _prepare(self, payment: Payment, tenant_id: UUID, posting_date: date) -> PostingPlan:
        if payment.crop_cycle_id is None:
            raise DocumentValidationError(
                PAYMENT.name, str(payment.id), "crop cycle is required to post a payment"
            )
        self._period_guard.check_posting(payment.crop_cycle_id, tenant_id, posting_date)
        party = get_for_tenant(self._session, Party, payment.party_id, tenant_id)
        if party is None:
            raise DocumentValidationError(PAYMENT.name, str(payment.id), "party not found")

        amount = money(self._config, payment.amount)
        require_positive_amount(PAYMENT.name, payment.id, amount)
        cash_role = "BANK" if payment.method == PaymentMethod.BANK else "CASH"
        scope = "LANDLORD_ONLY" if party.party_type == "LANDLORD" else "PARTY_ONLY"
        on_created = None

        if payment.direction == PaymentDirection.IN:
            self._require_receivable(payment, tenant_id, amount, posting_date)
            debit_role, credit_role = cash_role, "AR"
        elif payment.direction == PaymentDirection.OUT:
            if _is_wage_payment(payment):
                worker = self._worker_for(payment, tenant_id)
                self._require_wages_owed(payment, tenant_id, worker, amount)
                debit_role = "WAGES_PAYABLE"

                def pay_wages(group: PostingGroup) -> None:
                    adjust_worker_balance(self._session, tenant_id, worker.id, -amount)

                on_created = pay_wages
            else:
                debit_role = self._payable_role(payment, party)
            credit_role = cash_role
        else:
            raise DocumentValidationError(
                PAYMENT.name, str(payment.id), f"unknown payment direction {payment.direction!r}"
            )

        logger.debug(
            "payment_accounts_resolved",
            extra={
                "direction": payment.direction,
                "debit_role": debit_role,
                "credit_role": credit_role,
            },
        )
        return PostingPlan(
            crop_cycle_id=payment.crop_cycle_id,
            allocations=[
                AllocationSpec(
                    allocation_type="PAYMENT",
                    amount=amount,
                    party_id=party.id,
                    allocation_scope=scope,
                    rule_snapshot=snapshot(
                        source="treasury",
                        payment_id=payment.id,
                        direction=payment.direction,
                        method=payment.method,
                        purpose=payment.purpose,
                        party_type=party.party_type,
                    ),
                )
            ],
            ledger_lines=debit_credit_pair(
                self._accounts, self._config, tenant_id, debit_role, credit_role, amount
            ),
            on_created=on_created,
        )

    def _payable_role(self, payment: Payment, party: Party) -> str:
        try:
            return PAYABLE_ROLE_BY_PARTY_TYPE[party.party_type]
        except KeyError:
            raise DocumentValidationError(
                PAYMENT.name,
                str(payment.id),
                f"no payable account for party type {party.party_type!r}",
            ) from None

    def _worker_for(self, payment: Payment, tenant_id: UUID) -> Worker:
        worker = self._session.execute(
            tenant_select(Worker, tenant_id, Worker.party_id == payment.party_id).order_by(Worker.id)
        ).scalars().first()
        if worker is None:
            raise DocumentValidationError(
                PAYMENT.name, str(payment.id), "no worker is linked to the payment party"
            )
        return worker

    def _require_wages_owed(
        self, payment: Payment, tenant_id: UUID, worker: Worker, amount: Decimal
    ) -> None:
        balance = worker_balance(self._session, tenant_id, worker.id, for_update=True)
        owed = balance.payable_balance if balance is not None else ZERO
        if owed <= ZERO or amount > owed:
            raise DocumentValidationError(
                PAYMENT.name,
                str(payment.id),
                f"amount {amount} exceeds wages payable {owed} for worker {worker.id}",
            )

    def _require_receivable(
        self, payment: Payment, tenant_id: UUID, amount: Decimal, posting_date: date
    ) -> None:
        outstanding = self._receivables.receivable_balance(tenant_id, payment.party_id, posting_date)
        if outstanding <= ZERO or amount > outstanding:
            raise DocumentValidationError(
                PAYMENT.name,
                str(payment.id),
                f"amount {amount} exceeds receivable balance {outstanding}",
            )


def _is_wage_payment(payment: Payment) -> bool:
    return payment.direction == PaymentDirection.OUT and payment.purpose == PaymentPurpose.WAGES
