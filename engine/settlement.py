"""
Invoice settlement calculations.

Derives the payment status of an invoice from its direct payments and the
advance payments settled through proformas:

  advance   sum of proform_allocation amounts, else settled_advance_payments
  settled   total_paid + advance
  target    total, or total * required_advance_payment_percentage / 100
  status    paid when settled >= target (within tolerance),
            partially_paid when anything was settled, otherwise unpaid

Proformas additionally expose how much of their value is still available to
be applied to final invoices.  All functions are pure; "now" is supplied by
the caller for overdue checks.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from models.fields import as_utc
from models.invoice import Invoice
from models.settlement import PaymentStatus, PaymentSummary, ProformaAvailability, SettlementStatus

from .errors import NotAProformaError, ProformaOverdrawnError
from .numeric import DEFAULT_TOLERANCE, precise_compare, required_advance_amount

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SettlementCalculator:
    """
    Stateless settlement rules bound to a tolerance and a clock.

    Usage:
        calc = SettlementCalculator(tolerance=0.01)
        result = calc.derive_status(invoice)
        if result.display_status == "overdue": ...
    """

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.tolerance = tolerance
        self.clock = clock

    # ------------------------------------------------------------------
    # Settlement status
    # ------------------------------------------------------------------

    def advance_payments(self, invoice: Invoice) -> float:
        """Proforma allocations win; the two sources are never summed."""
        if invoice.proform_allocation:
            return sum(a.amount for a in invoice.proform_allocation)
        return invoice.settled_advance_payments

    def settlement_target(self, invoice: Invoice) -> float:
        if invoice.required_advance_payment_percentage > 0:
            return required_advance_amount(
                invoice.total, invoice.required_advance_payment_percentage
            )
        return invoice.total

    def derive_status(self, invoice: Invoice, now: Optional[datetime] = None) -> SettlementStatus:
        advance = self.advance_payments(invoice)
        total_settled = invoice.total_paid + advance
        target = self.settlement_target(invoice)

        status = self._status_for(total_settled, target)

        overpayment = total_settled - target
        if overpayment <= self.tolerance:
            overpayment = 0.0

        result = SettlementStatus(
            status=status,
            advance_payments=advance,
            total_settled=total_settled,
            target=target,
            remaining=invoice.total - total_settled,
            overpayment=overpayment,
            is_overdue=self.is_overdue(invoice, status, now),
        )
        logger.debug(
            "Invoice %s: settled %.2f of target %.2f -> %s%s",
            invoice.number or invoice.id, total_settled, target, status,
            " (overdue)" if result.is_overdue else "",
        )
        return result

    def is_overdue(
        self,
        invoice: Invoice,
        status: PaymentStatus,
        now: Optional[datetime] = None,
    ) -> bool:
        if status == "paid" or invoice.due_date is None:
            return False
        moment = now or self.clock()
        return as_utc(moment) > as_utc(invoice.due_date)

    def _status_for(self, total_settled: float, target: float) -> PaymentStatus:
        if precise_compare(total_settled, target, self.tolerance) >= 0:
            return "paid"
        if total_settled > 0:
            return "partially_paid"
        return "unpaid"

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def summarize_payments(self, invoice: Invoice) -> PaymentSummary:
        """
        Recompute total_paid from the payment list.  payment_date is the
        date of the most recent payment once the invoice is paid.
        """
        total_paid = sum(p.amount for p in invoice.payments)
        recomputed = invoice.model_copy(update={"total_paid": total_paid})
        status = self._status_for(
            total_paid + self.advance_payments(recomputed),
            self.settlement_target(recomputed),
        )

        payment_date = None
        if status == "paid":
            dated = [p.date for p in invoice.payments if p.date is not None]
            if dated:
                payment_date = max(dated, key=as_utc)

        return PaymentSummary(total_paid=total_paid, status=status, payment_date=payment_date)

    # ------------------------------------------------------------------
    # Proformas
    # ------------------------------------------------------------------

    def proforma_availability(
        self,
        proforma: Invoice,
        applied_amount: Optional[float] = None,
    ) -> ProformaAvailability:
        """
        Amount of a proforma still available for final invoices.

        The value is only meaningful once the proforma itself has been paid;
        before that the result reports requires_payment instead of a number.
        applied_amount defaults to the proforma's used_as_advance_payment.
        """
        _require_proforma(proforma)
        applied = proforma.used_as_advance_payment if applied_amount is None else applied_amount
        fully_paid = precise_compare(proforma.total_paid, proforma.total, self.tolerance) >= 0

        if not fully_paid:
            return ProformaAvailability(
                total=proforma.total,
                applied=applied,
                is_fully_paid=False,
                requires_payment=True,
            )
        return ProformaAvailability(
            total=proforma.total,
            applied=applied,
            is_fully_paid=True,
            requires_payment=False,
            available=proforma.total - applied,
        )

    def apply_proforma_usage(self, proforma: Invoice, amount: float) -> float:
        """Return the proforma's new used amount after applying *amount*."""
        _require_proforma(proforma)
        new_used = proforma.used_as_advance_payment + amount
        if precise_compare(new_used, proforma.total, self.tolerance) > 0:
            available = proforma.total - proforma.used_as_advance_payment
            logger.warning(
                "Refusing to apply %.2f from proforma %s: only %.2f available",
                amount, proforma.number or proforma.id, available,
            )
            raise ProformaOverdrawnError(amount, available)
        return new_used

    def release_proforma_usage(self, proforma: Invoice, amount: float) -> float:
        """Return the proforma's used amount after releasing *amount*, floored at 0."""
        return max(0.0, proforma.used_as_advance_payment - amount)

    def check_allocation(self, allocated: float, available: float) -> None:
        if precise_compare(allocated, available, self.tolerance) > 0:
            raise ProformaOverdrawnError(allocated, available)


def _require_proforma(invoice: Invoice) -> None:
    if not invoice.is_proforma:
        raise NotAProformaError(invoice.number or invoice.id)


# ------------------------------------------------------------------
# Functional interface
# ------------------------------------------------------------------

def derive_settlement_status(
    invoice: Invoice,
    tolerance: float = DEFAULT_TOLERANCE,
    now: Optional[datetime] = None,
) -> SettlementStatus:
    return SettlementCalculator(tolerance).derive_status(invoice, now)


def derive_proforma_availability(
    proforma: Invoice,
    applied_amount: Optional[float] = None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> ProformaAvailability:
    return SettlementCalculator(tolerance).proforma_availability(proforma, applied_amount)
