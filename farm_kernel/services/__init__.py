"""Kernel services: collaborators, the posting runner and the reversal primitive."""

from farm_kernel.services.account_resolver import AccountResolver
from farm_kernel.services.period_guard import PeriodGuard
from farm_kernel.services.posting_runner import (
    AllocationSpec,
    DocumentFamily,
    LedgerLine,
    PostingPlan,
    PostingRunner,
)
from farm_kernel.services.reversal_service import (
    DEFAULT_REVERSAL_REASON,
    ReversalResult,
    ReversalService,
)
from farm_kernel.services.sequence_service import SequenceService

__all__ = [
    "DEFAULT_REVERSAL_REASON",
    "AccountResolver",
    "AllocationSpec",
    "DocumentFamily",
    "LedgerLine",
    "PeriodGuard",
    "PostingPlan",
    "PostingRunner",
    "ReversalResult",
    "ReversalService",
    "SequenceService",
]
