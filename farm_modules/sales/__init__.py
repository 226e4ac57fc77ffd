"""
Sales Module (``farm_modules.sales``).

A posted sale raises a receivable from the buyer and books project revenue.
"""

from farm_modules.sales.orm import Sale
from farm_modules.sales.service import SALE, SalePostingService

__all__ = [
    "SALE",
    "Sale",
    "SalePostingService",
]
