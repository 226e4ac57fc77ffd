"""
ORM-level integrity enforcement for the ledger store.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posting groups, allocation rows and ledger entries form the audit trail of
every farm accounting event.  They are append-only: a mistake is corrected by
a reversal posting group, never by editing rows in place.  A posting group's
ledger entries must also balance before they ever reach the database.

SQLAlchemy fires events before the SQL is emitted, so the checks below abort
the flush (and with it the orchestrator's transaction) before anything is
written:

    session.flush()
         |
         v
    [before_flush]  --> _check_new_ledger_rows() --> UnbalancedPostingError
         |                                       --> InvalidAllocationError
         v
    [before_update] --> _forbid_update() ----------> ImmutabilityViolationError
         |
         v
    [before_delete] --> _forbid_delete() ----------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity         | Rule
---------------|-----------------------------------------------------------
PostingGroup   | Immutable from creation.  No update, no delete.
AllocationRow  | Immutable from creation.  Amount XOR quantity on insert.
LedgerEntry    | Immutable from creation.  Group balances on insert.

The builder code (services/posting_runner.py, services/reversal_service.py)
assembles a whole group inside ``session.no_autoflush`` so the balance check
only ever sees complete groups.

===============================================================================
USAGE
===============================================================================

Registered by ``init_engine_from_url()``; registration is idempotent:

    from farm_kernel.db.integrity import register_integrity_listeners
    register_integrity_listeners()

To temporarily disable (TESTS ONLY):

    unregister_integrity_listeners()
"""

from collections import defaultdict
from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.orm import Session

from farm_kernel.exceptions import (
    ImmutabilityViolationError,
    InvalidAllocationError,
    UnbalancedPostingError,
)
from farm_kernel.logging_config import get_logger

logger = get_logger("db.integrity")


def _check_new_ledger_rows(session, flush_context, instances):
    """
    Validate allocation rows and group balance for rows about to be inserted.

    Balance is computed over the whole ``ledger_entries`` collection of every
    group that gains a new entry in this flush.  Entries attached by
    ``posting_group_id`` alone are summed among themselves.
    """
    from farm_kernel.models.posting import AllocationRow, LedgerEntry

    groups = {}
    detached: dict = defaultdict(list)
    for obj in session.new:
        if isinstance(obj, AllocationRow):
            _check_allocation_row(obj)
        elif isinstance(obj, LedgerEntry):
            if obj.posting_group is not None:
                groups[id(obj.posting_group)] = obj.posting_group
            else:
                detached[obj.posting_group_id].append(obj)

    for group in groups.values():
        _check_balanced(group.id, group.ledger_entries)
    for group_id, entries in detached.items():
        _check_balanced(group_id, entries)


def _check_allocation_row(row) -> None:
    group_id = row.posting_group.id if row.posting_group is not None else row.posting_group_id
    if row.amount is not None and row.quantity is not None:
        raise InvalidAllocationError(
            str(group_id), "row carries both an amount and a quantity"
        )
    if row.amount is None and row.quantity is None:
        raise InvalidAllocationError(
            str(group_id), "row carries neither an amount nor a quantity"
        )


def _check_balanced(group_id, entries) -> None:
    debits = sum((e.debit_amount or Decimal("0") for e in entries), Decimal("0"))
    credits = sum((e.credit_amount or Decimal("0") for e in entries), Decimal("0"))
    if debits != credits:
        logger.error(
            "unbalanced_posting_group_rejected",
            extra={
                "posting_group_id": str(group_id),
                "debits": str(debits),
                "credits": str(credits),
            },
        )
        raise UnbalancedPostingError(str(group_id), str(debits), str(credits))


def _forbid_update(mapper, connection, target):
    """Posting groups, allocation rows and ledger entries are append-only."""
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": type(target).__name__, "entity_id": str(target.id)},
    )
    raise ImmutabilityViolationError(
        entity_type=type(target).__name__,
        entity_id=str(target.id),
        reason="Ledger records are immutable; post a reversal instead",
    )


def _forbid_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": type(target).__name__, "entity_id": str(target.id)},
    )
    raise ImmutabilityViolationError(
        entity_type=type(target).__name__,
        entity_id=str(target.id),
        reason="Ledger records cannot be deleted; post a reversal instead",
    )


def _protected_models():
    from farm_kernel.models.posting import AllocationRow, LedgerEntry, PostingGroup

    return (PostingGroup, AllocationRow, LedgerEntry)


def register_integrity_listeners() -> None:
    """
    Register all ledger integrity listeners.  Safe to call repeatedly.
    """
    if not event.contains(Session, "before_flush", _check_new_ledger_rows):
        event.listen(Session, "before_flush", _check_new_ledger_rows)

    for model in _protected_models():
        if not event.contains(model, "before_update", _forbid_update):
            event.listen(model, "before_update", _forbid_update)
        if not event.contains(model, "before_delete", _forbid_delete):
            event.listen(model, "before_delete", _forbid_delete)


def _safe_remove_listener(target, identifier, fn):
    if event.contains(target, identifier, fn):
        event.remove(target, identifier, fn)


def unregister_integrity_listeners() -> None:
    """
    Remove ledger integrity listeners.

    WARNING: Only use this in tests that need to violate the rules on
    purpose to verify detection.
    """
    _safe_remove_listener(Session, "before_flush", _check_new_ledger_rows)
    for model in _protected_models():
        _safe_remove_listener(model, "before_update", _forbid_update)
        _safe_remove_listener(model, "before_delete", _forbid_delete)
