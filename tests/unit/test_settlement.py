"""
Unit tests for invoice settlement and proforma availability.
"""
from datetime import datetime, timedelta, timezone

import pytest

from engine.errors import NotAProformaError, ProformaOverdrawnError
from engine.settlement import (
    SettlementCalculator,
    derive_proforma_availability,
    derive_settlement_status,
)
from models.invoice import Invoice

STATUS_ORDER = {"unpaid": 0, "partially_paid": 1, "paid": 2}


@pytest.mark.unit
class TestDeriveSettlementStatus:
    """Tests for derive_settlement_status."""

    def test_partially_paid_with_proforma_allocation(self, sample_invoice, fixed_now):
        result = derive_settlement_status(Invoice.model_validate(sample_invoice), now=fixed_now)

        assert result.advance_payments == 300.0
        assert result.total_settled == 700.0
        assert result.target == 1000.0
        assert result.status == "partially_paid"
        assert result.remaining == 300.0
        assert result.overpayment == 0.0

    def test_unpaid(self, fixed_now):
        result = derive_settlement_status(Invoice(total=250.0), now=fixed_now)
        assert result.status == "unpaid"
        assert result.remaining == 250.0

    def test_paid_within_tolerance(self, fixed_now):
        """A settled amount one tenth of a cent short still counts as paid."""
        result = derive_settlement_status(Invoice(total=100.0, total_paid=99.995), now=fixed_now)
        assert result.status == "paid"

    def test_short_beyond_tolerance_is_partial(self, fixed_now):
        result = derive_settlement_status(Invoice(total=100.0, total_paid=99.98), now=fixed_now)
        assert result.status == "partially_paid"

    def test_float_residue_is_not_an_overpayment(self, fixed_now):
        result = derive_settlement_status(Invoice(total=100.0, total_paid=100.005), now=fixed_now)
        assert result.status == "paid"
        assert result.overpayment == 0.0

    def test_overpayment_reported(self, fixed_now):
        result = derive_settlement_status(Invoice(total=100.0, total_paid=100.5), now=fixed_now)
        assert result.overpayment == pytest.approx(0.5)
        assert result.remaining == pytest.approx(-0.5)

    def test_allocation_wins_over_settled_advance(self, fixed_now):
        """Both advance sources populated: only the allocation list is counted."""
        invoice = Invoice.model_validate({
            "total": 1000,
            "proformAllocation": [{"amount": 100}, {"amount": 50}],
            "settledAdvancePayments": 500,
        })
        result = derive_settlement_status(invoice, now=fixed_now)
        assert result.advance_payments == 150.0
        assert result.total_settled == 150.0

    def test_empty_allocation_falls_back_to_settled_advance(self, fixed_now):
        invoice = Invoice.model_validate({
            "total": 1000, "totalPaid": 100,
            "proformAllocation": [], "settledAdvancePayments": 200,
        })
        result = derive_settlement_status(invoice, now=fixed_now)
        assert result.advance_payments == 200.0
        assert result.total_settled == 300.0

    def test_required_advance_percentage_sets_target(self, fixed_now):
        invoice = Invoice(total=1000.0, total_paid=300.0, required_advance_payment_percentage=30)
        result = derive_settlement_status(invoice, now=fixed_now)
        assert result.target == 300.0
        assert result.status == "paid"
        assert result.remaining == 700.0

    def test_zero_total_is_paid(self, fixed_now):
        result = derive_settlement_status(Invoice(total=0), now=fixed_now)
        assert result.status == "paid"
        assert result.remaining == 0.0

    def test_correction_invoice_remaining_not_clamped(self, fixed_now):
        """Negative totals: remaining is the refund owed; status compares 0 >= -100."""
        result = derive_settlement_status(Invoice(total=-100.0), now=fixed_now)
        assert result.remaining == -100.0
        assert result.total_settled == 0.0
        assert result.status == "paid"

    def test_missing_numeric_fields_default_to_zero(self, fixed_now):
        invoice = Invoice.model_validate({"total": "abc", "totalPaid": None, "settledAdvancePayments": ""})
        result = derive_settlement_status(invoice, now=fixed_now)
        assert result.total_settled == 0.0
        assert result.status == "paid"

    def test_legacy_string_amounts(self, fixed_now):
        invoice = Invoice.model_validate({"total": "1000,00", "totalPaid": "250.00 zł"})
        result = derive_settlement_status(invoice, now=fixed_now)
        assert result.total_settled == 250.0
        assert result.status == "partially_paid"

    def test_idempotent(self, sample_invoice, fixed_now):
        invoice = Invoice.model_validate(sample_invoice)
        first = derive_settlement_status(invoice, now=fixed_now)
        second = derive_settlement_status(invoice, now=fixed_now)
        assert first == second

    def test_monotonic_in_total_paid(self, fixed_now):
        previous = -1
        for paid in range(0, 1300, 50):
            status = derive_settlement_status(Invoice(total=1000.0, total_paid=paid), now=fixed_now).status
            assert STATUS_ORDER[status] >= previous
            previous = STATUS_ORDER[status]
        assert previous == STATUS_ORDER["paid"]

    def test_end_to_end_advance_percentage(self):
        now = datetime(2024, 6, 15, tzinfo=timezone.utc)
        invoice = Invoice.model_validate({
            "total": 1000,
            "totalPaid": 400,
            "proformAllocation": [{"amount": 300}],
            "requiredAdvancePaymentPercentage": 50,
            "dueDate": (now - timedelta(days=1)).isoformat(),
        })
        result = derive_settlement_status(invoice, now=now)

        assert result.target == 500.0
        assert result.total_settled == 700.0
        assert result.status == "paid"
        assert result.is_overdue is False
        assert result.remaining == 300.0
        assert result.overpayment == 200.0


@pytest.mark.unit
class TestOverdue:

    def test_unpaid_past_due_is_overdue(self, sample_invoice, fixed_now):
        result = derive_settlement_status(Invoice.model_validate(sample_invoice), now=fixed_now)
        assert result.status == "partially_paid"
        assert result.is_overdue is True
        assert result.display_status == "overdue"

    def test_not_overdue_before_due_date(self, sample_invoice):
        now = datetime(2024, 5, 20, tzinfo=timezone.utc)
        result = derive_settlement_status(Invoice.model_validate(sample_invoice), now=now)
        assert result.is_overdue is False
        assert result.display_status == "partially_paid"

    def test_no_due_date_never_overdue(self, fixed_now):
        result = derive_settlement_status(Invoice(total=100.0), now=fixed_now)
        assert result.is_overdue is False

    def test_paid_is_never_overdue(self, fixed_now):
        invoice = Invoice.model_validate({"total": 100, "totalPaid": 100, "dueDate": "2020-01-01"})
        result = derive_settlement_status(invoice, now=fixed_now)
        assert result.is_overdue is False
        assert result.display_status == "paid"

    def test_naive_now_is_treated_as_utc(self, sample_invoice):
        result = derive_settlement_status(Invoice.model_validate(sample_invoice), now=datetime(2024, 6, 2))
        assert result.is_overdue is True

    def test_injected_clock(self, sample_invoice):
        calc = SettlementCalculator(clock=lambda: datetime(2024, 5, 1, tzinfo=timezone.utc))
        assert calc.derive_status(Invoice.model_validate(sample_invoice)).is_overdue is False


@pytest.mark.unit
class TestPayments:

    def test_summary_recomputes_total_and_payment_date(self):
        invoice = Invoice.model_validate({
            "total": 1000,
            "totalPaid": 0,
            "payments": [
                {"id": "p1", "amount": 300, "date": "2024-05-01"},
                {"id": "p2", "amount": 700, "date": "2024-05-20"},
            ],
        })
        summary = SettlementCalculator().summarize_payments(invoice)

        assert summary.total_paid == 1000.0
        assert summary.status == "paid"
        assert summary.payment_date == datetime(2024, 5, 20, tzinfo=timezone.utc)

    def test_partial_summary_has_no_payment_date(self):
        invoice = Invoice.model_validate({
            "total": 1000,
            "payments": [{"amount": 300, "date": "2024-05-01"}],
        })
        summary = SettlementCalculator().summarize_payments(invoice)
        assert summary.status == "partially_paid"
        assert summary.payment_date is None


@pytest.mark.unit
class TestProformaAvailability:

    def test_available_once_paid(self, sample_proforma):
        result = derive_proforma_availability(Invoice.model_validate(sample_proforma))
        assert result.is_fully_paid is True
        assert result.requires_payment is False
        assert result.available == 200.0

    def test_explicit_applied_amount(self, sample_proforma):
        result = derive_proforma_availability(Invoice.model_validate(sample_proforma), applied_amount=450)
        assert result.available == 50.0

    def test_requires_payment_until_paid(self, sample_proforma):
        sample_proforma["totalPaid"] = 100
        result = derive_proforma_availability(Invoice.model_validate(sample_proforma))
        assert result.requires_payment is True
        assert result.available is None

    def test_regular_invoice_rejected(self, sample_invoice):
        with pytest.raises(NotAProformaError):
            derive_proforma_availability(Invoice.model_validate(sample_invoice))


@pytest.mark.unit
class TestProformaUsage:

    def test_apply_within_total(self, sample_proforma):
        calc = SettlementCalculator()
        assert calc.apply_proforma_usage(Invoice.model_validate(sample_proforma), 200) == 500.0

    def test_apply_beyond_total_raises(self, sample_proforma):
        calc = SettlementCalculator()
        with pytest.raises(ProformaOverdrawnError) as exc_info:
            calc.apply_proforma_usage(Invoice.model_validate(sample_proforma), 250)
        assert exc_info.value.available == 200.0

    def test_release_floors_at_zero(self, sample_proforma):
        calc = SettlementCalculator()
        assert calc.release_proforma_usage(Invoice.model_validate(sample_proforma), 100) == 200.0
        assert calc.release_proforma_usage(Invoice.model_validate(sample_proforma), 400) == 0.0

    def test_check_allocation(self):
        calc = SettlementCalculator()
        calc.check_allocation(200.01, 200.0)
        with pytest.raises(ProformaOverdrawnError):
            calc.check_allocation(250.0, 200.0)


@pytest.mark.unit
class TestRecordDefaults:
    """Explicit nulls in stored documents fall back to the documented defaults."""

    def test_null_collections_and_flags(self, fixed_now):
        invoice = Invoice.model_validate({
            "total": 100,
            "totalPaid": 50,
            "payments": None,
            "isProforma": None,
            "linkedAdvanceInvoices": None,
            "proformAllocation": None,
        })

        assert invoice.payments == []
        assert invoice.is_proforma is False
        assert invoice.linked_advance_invoices == []
        assert derive_settlement_status(invoice, now=fixed_now).status == "partially_paid"

    def test_null_payments_summarize_to_unpaid(self):
        invoice = Invoice.model_validate({"total": 100, "payments": None})
        summary = SettlementCalculator().summarize_payments(invoice)
        assert summary.total_paid == 0
        assert summary.status == "unpaid"

    def test_null_proforma_flag_is_a_regular_invoice(self):
        with pytest.raises(NotAProformaError):
            derive_proforma_availability(Invoice.model_validate({"total": 100, "isProforma": None}))
