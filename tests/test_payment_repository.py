"""PaymentRepository: payments move the invoice's amount_paid and status together."""

from datetime import datetime

import pytest

from sales_core.domain.models import Payment
from sales_core.errors import (
    BusinessRuleError,
    InvalidPaginationError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
)
from sales_core.pagination import PaginationParams


@pytest.fixture
def invoice(make_invoice):
    return make_invoice(status="sent")


def pay(repos, invoice_id, amount, **fields):
    return repos.payments.create(Payment(invoice_id=invoice_id, amount=amount, **fields))


class TestRecordPayments:
    def test_partial_then_paid(self, repos, invoice):
        pay(repos, invoice.id, 400.0)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 400.0
        assert loaded.status == "partial"

        pay(repos, invoice.id, 700.0)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 1100.0
        assert loaded.status == "paid"
        assert loaded.balance_due == 0

    def test_payment_fields(self, repos, invoice, clock):
        payment = pay(repos, invoice.id, 250.0, payment_method="card", reference="TX-1")
        assert payment.id is not None
        assert payment.payment_date == clock.now
        assert payment.created_at == clock.now

        loaded = repos.payments.get_by_id(payment.id)
        assert loaded.reference == "TX-1"
        assert loaded.payment_method == "card"

    def test_explicit_payment_date(self, repos, invoice):
        paid_on = datetime(2026, 3, 1, 9, 30)
        payment = pay(repos, invoice.id, 10.0, payment_date=paid_on)
        assert repos.payments.get_by_id(payment.id).payment_date == paid_on

    def test_listed_by_invoice_in_date_order(self, repos, invoice):
        late = pay(repos, invoice.id, 20.0, payment_date=datetime(2026, 3, 10))
        early = pay(repos, invoice.id, 10.0, payment_date=datetime(2026, 3, 1))
        assert [p.id for p in repos.payments.get_by_invoice(invoice.id)] == [early.id, late.id]

    @pytest.mark.parametrize("amount", [0, -5.0])
    def test_amount_must_be_positive(self, repos, invoice, amount):
        with pytest.raises(BusinessRuleError):
            pay(repos, invoice.id, amount)

    def test_unknown_invoice(self, repos, store):
        with pytest.raises(InvoiceNotFoundError):
            pay(repos, 999, 10.0)
        assert store.scalar("SELECT COUNT(*) FROM payments") == 0

    def test_cancelled_invoice(self, repos, store, invoice):
        repos.invoices.update_status(invoice.id, "cancelled")
        with pytest.raises(BusinessRuleError):
            pay(repos, invoice.id, 10.0)
        assert store.scalar("SELECT COUNT(*) FROM payments") == 0


class TestDeletePayments:
    def test_refund_steps_status_back(self, repos, invoice):
        first = pay(repos, invoice.id, 400.0)
        second = pay(repos, invoice.id, 700.0)
        assert repos.invoices.get_by_id(invoice.id).status == "paid"

        repos.payments.delete(second.id)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 400.0
        assert loaded.status == "partial"

        repos.payments.delete(first.id)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 0
        assert loaded.status == "sent"

    def test_amount_paid_floored_at_zero(self, repos, store, invoice):
        payment = pay(repos, invoice.id, 300.0)
        with store.transaction() as cur:
            cur.execute("UPDATE invoices SET amount_paid = 100 WHERE id = ?", (invoice.id,))

        repos.payments.delete(payment.id)
        assert repos.invoices.get_by_id(invoice.id).amount_paid == 0

    def test_missing_payment(self, repos):
        with pytest.raises(PaymentNotFoundError):
            repos.payments.delete(12)

    def test_get_missing(self, repos):
        with pytest.raises(PaymentNotFoundError):
            repos.payments.get_by_id(12)

    def test_refund_on_cancelled_invoice_keeps_status(self, repos, invoice):
        payment = pay(repos, invoice.id, 300.0)
        repos.invoices.update_status(invoice.id, "cancelled")

        repos.payments.delete(payment.id)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 0
        assert loaded.status == "cancelled"


class TestUpdatePayments:
    def test_raise_amount_to_full(self, repos, invoice):
        payment = pay(repos, invoice.id, 400.0)
        payment.amount = 1100.0
        updated = repos.payments.update(payment.id, payment)

        assert updated.amount == 1100.0
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 1100.0
        assert loaded.status == "paid"

    def test_lower_amount_steps_back_to_partial(self, repos, invoice):
        first = pay(repos, invoice.id, 600.0)
        pay(repos, invoice.id, 500.0)
        assert repos.invoices.get_by_id(invoice.id).status == "paid"

        first.amount = 100.0
        repos.payments.update(first.id, first)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 600.0
        assert loaded.status == "partial"

    def test_amount_paid_floored_at_zero(self, repos, store, invoice):
        payment = pay(repos, invoice.id, 300.0)
        with store.transaction() as cur:
            cur.execute("UPDATE invoices SET amount_paid = 100 WHERE id = ?", (invoice.id,))

        payment.amount = 50.0
        repos.payments.update(payment.id, payment)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 0
        assert loaded.status == "sent"

    def test_fields_written_and_invoice_kept(self, repos, invoice, make_invoice):
        other = make_invoice(status="sent")
        payment = pay(repos, invoice.id, 200.0)

        changes = Payment(invoice_id=other.id, amount=250.0, payment_method="cash",
                          reference="R-9", payment_date=datetime(2026, 3, 2, 8, 0))
        updated = repos.payments.update(payment.id, changes)
        assert updated.invoice_id == invoice.id

        loaded = repos.payments.get_by_id(payment.id)
        assert loaded.invoice_id == invoice.id
        assert loaded.amount == 250.0
        assert loaded.payment_method == "cash"
        assert loaded.reference == "R-9"
        assert loaded.payment_date == datetime(2026, 3, 2, 8, 0)
        assert repos.invoices.get_by_id(other.id).amount_paid == 0

    def test_missing_date_keeps_stored_one(self, repos, invoice):
        paid_on = datetime(2026, 3, 1, 9, 30)
        payment = pay(repos, invoice.id, 10.0, payment_date=paid_on)

        repos.payments.update(payment.id, Payment(amount=20.0))
        assert repos.payments.get_by_id(payment.id).payment_date == paid_on

    def test_cancelled_invoice_keeps_status(self, repos, invoice):
        payment = pay(repos, invoice.id, 300.0)
        repos.invoices.update_status(invoice.id, "cancelled")

        payment.amount = 1100.0
        repos.payments.update(payment.id, payment)
        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.amount_paid == 1100.0
        assert loaded.status == "cancelled"

    @pytest.mark.parametrize("amount", [0, -1.0])
    def test_amount_must_be_positive(self, repos, invoice, amount):
        payment = pay(repos, invoice.id, 300.0)
        with pytest.raises(BusinessRuleError):
            repos.payments.update(payment.id, Payment(amount=amount))
        assert repos.invoices.get_by_id(invoice.id).amount_paid == 300.0

    def test_missing_payment(self, repos):
        with pytest.raises(PaymentNotFoundError):
            repos.payments.update(12, Payment(amount=5.0))


class TestPaymentListings:
    def test_get_all_newest_first(self, repos, invoice):
        dates = [datetime(2026, 3, day) for day in (3, 9, 1, 5)]
        for paid_on in dates:
            pay(repos, invoice.id, 10.0, payment_date=paid_on)

        page = repos.payments.get_all(PaginationParams(page=1, page_size=3))
        assert page.total_items == 4
        assert page.total_pages == 2
        assert [p.payment_date for p in page.items] == sorted(dates, reverse=True)[:3]

    def test_get_by_period_inclusive(self, repos, invoice):
        for day in (1, 5, 10, 20):
            pay(repos, invoice.id, 10.0, payment_date=datetime(2026, 3, day))

        result = repos.payments.get_by_period(datetime(2026, 3, 5), datetime(2026, 3, 10))
        assert result.total_items == 2
        assert [p.payment_date.day for p in result.items] == [10, 5]

    def test_invalid_page(self, repos):
        with pytest.raises(InvalidPaginationError):
            repos.payments.get_all(PaginationParams(page=0, page_size=10))
