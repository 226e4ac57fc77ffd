"""ORM models owned by the posting kernel."""

from farm_kernel.models.account import Account, AccountType
from farm_kernel.models.document import DocumentStatus, PostableDocumentMixin
from farm_kernel.models.period import (
    AccountingPeriod,
    CropCycle,
    CropCycleStatus,
    PeriodStatus,
)
from farm_kernel.models.posting import (
    REVERSAL_SOURCE_TYPE,
    AllocationRow,
    LedgerEntry,
    PostingGroup,
)
from farm_kernel.models.reference import Party, Project

__all__ = [
    "Account",
    "AccountType",
    "AccountingPeriod",
    "AllocationRow",
    "CropCycle",
    "CropCycleStatus",
    "DocumentStatus",
    "LedgerEntry",
    "Party",
    "PeriodStatus",
    "PostableDocumentMixin",
    "PostingGroup",
    "Project",
    "REVERSAL_SOURCE_TYPE",
]
