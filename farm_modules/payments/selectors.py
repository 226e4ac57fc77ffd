"""
ReceivableSelector -- what a buyer still owes.

Receivable = posted sales billed to the party minus posted IN payments from
it, both up to an optional date.  Reversed documents drop out of both sums.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from farm_kernel.models.document import DocumentStatus
from farm_kernel.selectors.base import BaseSelector
from farm_modules.payments.orm import Payment, PaymentDirection
from farm_modules.sales.orm import Sale


class ReceivableSelector(BaseSelector):

    def receivable_balance(
        self, tenant_id: UUID, party_id: UUID, as_of: date | None = None
    ) -> Decimal:
        sale_criteria = [
            Sale.tenant_id == tenant_id,
            Sale.buyer_party_id == party_id,
            Sale.status == DocumentStatus.POSTED,
        ]
        payment_criteria = [
            Payment.tenant_id == tenant_id,
            Payment.party_id == party_id,
            Payment.direction == PaymentDirection.IN,
            Payment.status == DocumentStatus.POSTED,
        ]
        if as_of is not None:
            sale_criteria.append(Sale.posting_date <= as_of)
            payment_criteria.append(Payment.posting_date <= as_of)

        billed = self.session.execute(select(func.sum(Sale.amount)).where(*sale_criteria)).scalar()
        received = self.session.execute(
            select(func.sum(Payment.amount)).where(*payment_criteria)
        ).scalar()
        return Decimal(str(billed or 0)) - Decimal(str(received or 0))
