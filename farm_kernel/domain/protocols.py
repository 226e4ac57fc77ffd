"""
Capability interfaces shared by the document posting orchestrators.

Every document family (machinery charge, maintenance job, internal service,
work log, labour, inventory) exposes the same two operations.  Families do
not share a base class; each composes ``PostingRunner`` and satisfies
``DocumentPoster`` structurally.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import UUID

if TYPE_CHECKING:
    from farm_kernel.models.posting import PostingGroup


@runtime_checkable
class DocumentPoster(Protocol):
    """post / reverse capability of one document family."""

    def post(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        ...

    def reverse(
        self,
        document_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        ...


@runtime_checkable
class InventoryPoster(Protocol):
    """Inventory issue posting, consumed by the internal-service orchestrator."""

    def post_issue(
        self,
        issue_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        idempotency_key: str | None = None,
    ) -> PostingGroup:
        ...

    def reverse_issue(
        self,
        issue_id: UUID,
        tenant_id: UUID,
        posting_date: date,
        reason: str | None = None,
    ) -> PostingGroup:
        ...
