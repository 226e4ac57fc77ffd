"""
Shared helpers for module posting flows.

Used by farm_modules/*/ orchestrators to reduce duplication when wiring the
kernel PostingRunner, resolving the debit/credit pair of a money-bearing
posting and freezing rule snapshots.

Architecture: Modules layer. Imports only from farm_kernel and farm_config.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from farm_config import PostingConfig
from farm_kernel.domain.clock import Clock
from farm_kernel.exceptions import DocumentValidationError
from farm_kernel.models.reference import Project
from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import LedgerLine, PostingRunner
from farm_kernel.utils.money import ZERO, round_money


def build_runner(
    session: Session,
    period_guard: PeriodGuard,
    config: PostingConfig,
    clock: Clock | None,
    auto_commit: bool,
) -> PostingRunner:
    """PostingRunner in the configured ledger currency."""
    return PostingRunner(
        session,
        period_guard,
        clock,
        currency_code=config.currency_code,
        auto_commit=auto_commit,
    )


def debit_credit_pair(
    account_resolver: AccountResolver,
    config: PostingConfig,
    tenant_id: UUID,
    debit_role: str,
    credit_role: str,
    amount: Decimal,
) -> list[LedgerLine]:
    """One debit and one credit of ``amount`` against two posting roles."""
    debit_account = account_resolver.get_by_code(tenant_id, config.account_code(debit_role))
    credit_account = account_resolver.get_by_code(tenant_id, config.account_code(credit_role))
    return [
        LedgerLine(account=debit_account, debit=amount, credit=ZERO),
        LedgerLine(account=credit_account, debit=ZERO, credit=amount),
    ]


def money(config: PostingConfig, value: Any) -> Decimal:
    """Round to the configured number of amount places."""
    return round_money(value, config.amount_places)


def require_positive_amount(
    document_type: str, document_id: UUID, amount: Decimal
) -> None:
    if amount <= ZERO:
        raise DocumentValidationError(
            document_type, str(document_id), f"amount must be positive, got {amount}"
        )


def require_project_party(document_type: str, document_id: UUID, project: Project) -> UUID:
    """Allocation rows against a project need the project's party."""
    if project.party_id is None:
        raise DocumentValidationError(
            document_type,
            str(document_id),
            f"project {project.id} has no party for allocation rows",
        )
    return project.party_id


def snapshot_value(value: Any) -> Any:
    """JSON-safe copy of a value going into a rule snapshot."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: snapshot_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [snapshot_value(v) for v in value]
    return value


def snapshot(**fields: Any) -> dict[str, Any]:
    """Build a frozen rule snapshot; Decimals, UUIDs and dates become strings."""
    return {key: snapshot_value(value) for key, value in fields.items()}
