"""
Typed exception hierarchy for the farm posting kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Posting failures have to be handled precisely by the HTTP handlers sitting in
front of the orchestrators.  Parsing message strings is fragile, so every
failure is a class of its own:

  1. Every error has a TYPED exception class (catch by type, not message).
  2. Every exception has a CODE class attribute (machine-readable, API-safe).
  3. Exceptions carry structured DATA as attributes, which the structured
     log formatter serialises as ``exc_<name>`` fields.

Example:
    try:
        poster.post(charge_id, tenant_id, date(2024, 6, 1))
    except PeriodClosedError as e:
        api_response(code=e.code, period=e.period_id, reason=e.reason)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FarmKernelError (base)
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- DocumentNotEligibleError
    |   +-- DocumentValidationError
    |
    +-- PostingError
    |   +-- UnbalancedPostingError
    |   +-- InvalidAllocationError
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodNotFoundError
    |
    +-- AccountError
    |   +-- UnknownAccountError
    |
    +-- RateError
    |   +-- MissingRateError
    |   +-- UnsupportedMeterUnitError
    |
    +-- ReversalError
    |   +-- NotPostedError
    |   +-- AlreadyReversedError
    |   +-- MissingPostingGroupError
    |   +-- CannotReverseReversalError
    |
    +-- ChargeGenerationError
    |   +-- NoChargeableUsageError
    |
    +-- InventoryError
    |   +-- InsufficientStockError
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentPostingError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                       | When Raised
------------|----------------------------|-------------------------------------------
Document    | DOCUMENT_NOT_FOUND         | No document with that id for the tenant
            | NOT_ELIGIBLE               | Document not DRAFT when posting
            | INVALID_DOCUMENT           | Document data cannot produce a posting
------------|----------------------------|-------------------------------------------
Posting     | UNBALANCED_POSTING         | sum(debit) != sum(credit) in a group
            | INVALID_ALLOCATION         | Allocation row carries money AND quantity
------------|----------------------------|-------------------------------------------
Period      | PERIOD_CLOSED              | Crop cycle / accounting period not open
            | PERIOD_NOT_FOUND           | Crop cycle missing for the document
------------|----------------------------|-------------------------------------------
Account     | UNKNOWN_ACCOUNT            | Tenant has no account for a code
------------|----------------------------|-------------------------------------------
Rate        | MISSING_RATE               | No rate card for one or more work logs
            | UNSUPPORTED_METER_UNIT     | Machine meter unit has no rate unit
------------|----------------------------|-------------------------------------------
Reversal    | NOT_POSTED                 | Reversing a DRAFT document
            | ALREADY_REVERSED           | Reversing a REVERSED document
            | POSTING_GROUP_MISSING      | POSTED document without a posting group
            | CANNOT_REVERSE_REVERSAL    | Target group is itself a reversal
------------|----------------------------|-------------------------------------------
Charges     | NO_CHARGEABLE_USAGE        | Nothing to charge for the given scope
------------|----------------------------|-------------------------------------------
Inventory   | INSUFFICIENT_STOCK         | Issue quantity exceeds stock on hand
------------|----------------------------|-------------------------------------------
Lifecycle   | INVALID_TRANSITION         | Status change not allowed by the workflow
------------|----------------------------|-------------------------------------------
Concurrency | CONCURRENT_POSTING         | Lost a uniqueness race inside an outer
            |                            | transaction (caller should retry)
------------|----------------------------|-------------------------------------------
Immutability| IMMUTABILITY_VIOLATION     | Update/delete of ledger records

===============================================================================
"""

from __future__ import annotations


class FarmKernelError(Exception):
    """
    Base exception for all farm kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "FARM_KERNEL_ERROR"


# Document-related exceptions


class DocumentError(FarmKernelError):
    """Base exception for source-document errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Source document does not exist for the tenant."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"{document_type} not found: {document_id}")


class DocumentNotEligibleError(DocumentError):
    """Source document is not in the status required for the operation."""

    code: str = "NOT_ELIGIBLE"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        status: str,
        required_status: str,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.status = status
        self.required_status = required_status
        super().__init__(
            f"{document_type} {document_id} is {status}; "
            f"operation requires {required_status}"
        )


class DocumentValidationError(DocumentError):
    """Source document data cannot produce a valid posting."""

    code: str = "INVALID_DOCUMENT"

    def __init__(self, document_type: str, document_id: str, reason: str):
        self.document_type = document_type
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Cannot post {document_type} {document_id}: {reason}")


# Posting-related exceptions


class PostingError(FarmKernelError):
    """Base exception for ledger-store errors."""

    code: str = "POSTING_ERROR"


class UnbalancedPostingError(PostingError):
    """Ledger entries of a posting group do not balance."""

    code: str = "UNBALANCED_POSTING"

    def __init__(self, posting_group_id: str, debits: str, credits: str):
        self.posting_group_id = posting_group_id
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Posting group {posting_group_id} is unbalanced: "
            f"debits={debits}, credits={credits}"
        )


class InvalidAllocationError(PostingError):
    """Allocation row must carry either an amount or a quantity, not both."""

    code: str = "INVALID_ALLOCATION"

    def __init__(self, posting_group_id: str, reason: str):
        self.posting_group_id = posting_group_id
        self.reason = reason
        super().__init__(
            f"Invalid allocation row on posting group {posting_group_id}: {reason}"
        )


# Period-related exceptions


class PeriodError(FarmKernelError):
    """Base exception for period-related errors."""

    code: str = "PERIOD_ERROR"


class PeriodClosedError(PeriodError):
    """Posting date falls outside an open crop cycle or accounting period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_type: str, period_id: str, posting_date: str, reason: str):
        self.period_type = period_type
        self.period_id = period_id
        self.posting_date = posting_date
        self.reason = reason
        super().__init__(
            f"Cannot post on {posting_date} to {period_type} {period_id}: {reason}"
        )


class PeriodNotFoundError(PeriodError):
    """Crop cycle referenced by a document or project does not exist."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_type: str, reference: str):
        self.period_type = period_type
        self.reference = reference
        super().__init__(f"No {period_type} found for {reference}")


# Account-related exceptions


class AccountError(FarmKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class UnknownAccountError(AccountError):
    """Tenant has no account mapped to a well-known code."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, tenant_id: str, account_code: str):
        self.tenant_id = tenant_id
        self.account_code = account_code
        super().__init__(
            f"Tenant {tenant_id} has no active account with code {account_code}"
        )


# Rate-related exceptions


class RateError(FarmKernelError):
    """Base exception for rate resolution errors."""

    code: str = "RATE_ERROR"


class MissingRateError(RateError):
    """
    No applicable rate card for one or more work logs.

    ``unresolved`` lists every affected work log so that all missing rate
    cards can be created in one pass.
    """

    code: str = "MISSING_RATE"

    def __init__(self, unresolved: list[dict]):
        self.unresolved = unresolved
        details = "; ".join(
            f"work log {item['work_log_id']} (machine {item['machine_id']}, "
            f"{item['rate_unit']} on {item['as_of']})"
            for item in unresolved
        )
        super().__init__(f"No rate card found for: {details}")


class UnsupportedMeterUnitError(RateError):
    """Machine meter unit has no corresponding rate unit."""

    code: str = "UNSUPPORTED_METER_UNIT"

    def __init__(self, machine_id: str, meter_unit: str):
        self.machine_id = machine_id
        self.meter_unit = meter_unit
        super().__init__(
            f"Meter unit {meter_unit} of machine {machine_id} is not supported "
            "for rate resolution"
        )


# Reversal-related exceptions


class ReversalError(FarmKernelError):
    """Base exception for reversal-related errors."""

    code: str = "REVERSAL_ERROR"


class NotPostedError(ReversalError):
    """Cannot reverse a document that is not posted."""

    code: str = "NOT_POSTED"

    def __init__(self, document_type: str, document_id: str, status: str):
        self.document_type = document_type
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"Cannot reverse {document_type} {document_id}: status is {status}, not POSTED"
        )


class AlreadyReversedError(ReversalError):
    """Document has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"{document_type} {document_id} has already been reversed")


class MissingPostingGroupError(ReversalError):
    """Posted document has no posting group attached."""

    code: str = "POSTING_GROUP_MISSING"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(
            f"{document_type} {document_id} has no posting group to reverse"
        )


class CannotReverseReversalError(ReversalError):
    """A reversal posting group cannot itself be reversed."""

    code: str = "CANNOT_REVERSE_REVERSAL"

    def __init__(self, posting_group_id: str):
        self.posting_group_id = posting_group_id
        super().__init__(
            f"Posting group {posting_group_id} is a reversal and cannot be reversed"
        )


# Charge generation exceptions


class ChargeGenerationError(FarmKernelError):
    """Base exception for machinery charge generation."""

    code: str = "CHARGE_GENERATION_ERROR"


class NoChargeableUsageError(ChargeGenerationError):
    """No posted, uncharged work logs match the generation scope."""

    code: str = "NO_CHARGEABLE_USAGE"

    def __init__(self, project_id: str, from_date: str, to_date: str, pool_scope: str | None):
        self.project_id = project_id
        self.from_date = from_date
        self.to_date = to_date
        self.pool_scope = pool_scope
        super().__init__(
            f"No chargeable work logs for project {project_id} between "
            f"{from_date} and {to_date}"
            + (f" in scope {pool_scope}" if pool_scope else "")
        )


# Inventory exceptions


class InventoryError(FarmKernelError):
    """Base exception for inventory posting errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientStockError(InventoryError):
    """Issue quantity exceeds stock on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, store_id: str, on_hand: str, required: str):
        self.item_id = item_id
        self.store_id = store_id
        self.on_hand = on_hand
        self.required = required
        super().__init__(
            f"Insufficient stock for item {item_id} in store {store_id}: "
            f"on hand {on_hand}, required {required}"
        )


# Lifecycle exceptions


class LifecycleError(FarmKernelError):
    """Base exception for document lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """Document status change not permitted by its workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, document_type: str, document_id: str, from_state: str, to_state: str):
        self.document_type = document_type
        self.document_id = document_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"{document_type} {document_id} cannot move from {from_state} to {to_state}"
        )


# Concurrency exceptions


class ConcurrencyError(FarmKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentPostingError(ConcurrencyError):
    """
    Another transaction committed the same posting first.

    Raised only when the posting runs inside a caller-owned transaction
    and therefore cannot roll back to pick up the committed row itself.
    """

    code: str = "CONCURRENT_POSTING"

    def __init__(self, tenant_id: str, idempotency_key: str):
        self.tenant_id = tenant_id
        self.idempotency_key = idempotency_key
        super().__init__(
            f"Posting {idempotency_key} for tenant {tenant_id} was committed "
            "concurrently; retry to obtain the committed result"
        )


# Immutability exceptions


class ImmutabilityError(FarmKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Posting groups, allocation rows and ledger entries are append-only:
    corrections are made by reversal, never by editing.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
