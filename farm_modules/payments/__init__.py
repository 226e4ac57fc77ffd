"""
Payments Module (``farm_modules.payments``).

Treasury payments: money paid out settles wages or a party's payable,
money received settles a buyer's receivable from posted sales.
"""

from farm_modules.payments.orm import Payment, PaymentDirection, PaymentMethod, PaymentPurpose
from farm_modules.payments.selectors import ReceivableSelector
from farm_modules.payments.service import (
    PAYMENT,
    PAYMENT_REVERSAL_REASON,
    PaymentPostingService,
)

__all__ = [
    "PAYMENT",
    "PAYMENT_REVERSAL_REASON",
    "Payment",
    "PaymentDirection",
    "PaymentMethod",
    "PaymentPostingService",
    "PaymentPurpose",
    "ReceivableSelector",
]
