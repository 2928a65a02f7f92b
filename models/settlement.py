from pydantic import BaseModel
from typing import Optional, Literal

from .fields import OptionalTimestamp


PaymentStatus = Literal["paid", "partially_paid", "unpaid"]
DisplayStatus = Literal["paid", "partially_paid", "unpaid", "overdue"]


class SettlementStatus(BaseModel):
    """
    Derived payment state of one invoice.

    ``status`` is never "overdue"; overdue is a display-level override
    exposed through ``is_overdue`` and ``display_status``.
    """
    status: PaymentStatus
    advance_payments: float = 0.0
    total_settled: float = 0.0
    target: float = 0.0                 # Amount that counts as fully settled
    remaining: float = 0.0              # total - total_settled, negative = refund owed
    overpayment: float = 0.0            # 0.0 unless above tolerance
    is_overdue: bool = False

    @property
    def display_status(self) -> DisplayStatus:
        return "overdue" if self.is_overdue else self.status


class ProformaAvailability(BaseModel):
    """How much of a proforma can still be applied to final invoices."""
    total: float
    applied: float
    is_fully_paid: bool
    requires_payment: bool
    available: Optional[float] = None   # None until the proforma itself is paid


class PaymentSummary(BaseModel):
    """Payment totals recomputed from an invoice's payment list."""
    total_paid: float
    status: PaymentStatus
    payment_date: OptionalTimestamp = None
