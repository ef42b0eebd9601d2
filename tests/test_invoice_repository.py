"""
InvoiceRepository: derived status on update, the payment delete guard
and the overdue listing with its status write-back.
"""

from datetime import timedelta

import pytest

from sales_core.domain.models import Payment
from sales_core.errors import InvoiceNotFoundError, RelatedRecordsExistError

from conftest import line_items


def stored_status(store, invoice_id):
    return store.scalar("SELECT status FROM invoices WHERE id = ?", (invoice_id,))


class TestCreateAndRead:
    def test_defaults(self, make_invoice, clock):
        invoice = make_invoice()
        assert invoice.invoice_no == "INV-2026-000001"
        assert invoice.status == "draft"
        assert invoice.amount_paid == 0
        assert invoice.due_date == clock.now + timedelta(days=30)
        assert invoice.balance_due == 1100.0

    def test_payments_and_sales_order_loaded(self, repos, make_sales_order, make_invoice):
        order = make_sales_order()
        invoice = make_invoice(sales_order_id=order.id, so_no=order.so_no, status="sent")
        repos.payments.create(Payment(invoice_id=invoice.id, amount=300.0, payment_method="bank transfer"))

        loaded = repos.invoices.get_by_id(invoice.id)
        assert loaded.sales_order.so_no == order.so_no
        assert [p.amount for p in loaded.payments] == [300.0]
        assert loaded.balance_due == 800.0

    def test_get_by_sales_order(self, repos, make_sales_order, make_invoice):
        order = make_sales_order()
        invoice = make_invoice(sales_order_id=order.id)
        make_invoice()
        assert [i.id for i in repos.invoices.get_by_sales_order(order.id)] == [invoice.id]

    def test_not_found(self, repos):
        with pytest.raises(InvoiceNotFoundError):
            repos.invoices.get_by_id(404)


class TestDerivedStatusOnUpdate:
    def test_nothing_paid_keeps_status(self, repos, make_invoice):
        invoice = make_invoice()
        updated = repos.invoices.update(invoice.id, invoice)
        assert updated.status == "draft"

    def test_half_paid_becomes_partial(self, repos, make_invoice):
        invoice = make_invoice(status="sent")
        invoice.amount_paid = 550.0
        updated = repos.invoices.update(invoice.id, invoice)
        assert updated.status == "partial"
        assert updated.amount_paid == 550.0

    def test_fully_paid_becomes_paid(self, repos, make_invoice):
        invoice = make_invoice(status="sent")
        invoice.amount_paid = 1100.0
        assert repos.invoices.update(invoice.id, invoice).status == "paid"

    def test_explicit_status_change_wins(self, repos, make_invoice):
        invoice = make_invoice(status="sent")
        invoice.amount_paid = 550.0
        invoice.status = "overdue"
        updated = repos.invoices.update(invoice.id, invoice)
        assert updated.status == "overdue"
        assert updated.amount_paid == 550.0

    def test_zero_amount_keeps_recorded_payments(self, repos, make_invoice):
        invoice = make_invoice(status="sent")
        repos.payments.create(Payment(invoice_id=invoice.id, amount=400.0))

        invoice = repos.invoices.get_by_id(invoice.id)
        invoice.amount_paid = 0
        invoice.notes = "Reminder sent"
        updated = repos.invoices.update(invoice.id, invoice)

        assert updated.amount_paid == 400.0
        assert updated.status == "partial"
        assert updated.notes == "Reminder sent"

    def test_recompute_applies_to_cancelled_invoice(self, repos, make_invoice):
        invoice = make_invoice(status="sent")
        repos.payments.create(Payment(invoice_id=invoice.id, amount=300.0))
        repos.invoices.update_status(invoice.id, "cancelled")

        invoice = repos.invoices.get_by_id(invoice.id)
        assert invoice.status == "cancelled"
        updated = repos.invoices.update(invoice.id, invoice)
        assert updated.status == "partial"

    def test_items_replaced(self, repos, make_invoice):
        invoice = make_invoice(items=line_items(1))
        old_ids = {i.id for i in invoice.items}
        invoice.items = line_items(2, 3)
        updated = repos.invoices.update(invoice.id, invoice)
        assert len(updated.items) == 2
        assert not old_ids & {i.id for i in updated.items}


class TestDeleteGuard:
    def test_blocked_by_payment(self, repos, store, make_invoice):
        invoice = make_invoice(status="sent", items=line_items(1, 2))
        repos.payments.create(Payment(invoice_id=invoice.id, amount=100.0))

        with pytest.raises(RelatedRecordsExistError) as exc_info:
            repos.invoices.delete(invoice.id)
        assert exc_info.value.dependent == "payment"
        assert exc_info.value.count == 1

        loaded = repos.invoices.get_by_id(invoice.id)
        assert len(loaded.items) == 2
        assert len(loaded.payments) == 1
        assert loaded.amount_paid == 100.0

    def test_delete_unpaid(self, repos, store, make_invoice):
        invoice = make_invoice()
        repos.invoices.delete(invoice.id)
        assert store.scalar("SELECT COUNT(*) FROM invoice_items") == 0
        assert not repos.invoices.exists(invoice.id)


class TestOverdue:
    def test_marks_overdue_and_persists(self, repos, store, clock, make_invoice):
        invoice = make_invoice(status="sent", due_date=clock.now - timedelta(days=1))

        result = repos.invoices.get_overdue()
        assert [i.id for i in result.items] == [invoice.id]
        assert result.items[0].status == "overdue"
        assert stored_status(store, invoice.id) == "overdue"

    def test_settled_and_future_excluded(self, repos, clock, make_invoice):
        past = clock.now - timedelta(days=5)
        late_partial = make_invoice(status="partial", amount_paid=100.0, due_date=past)
        already_overdue = make_invoice(status="overdue", due_date=past - timedelta(days=1))
        make_invoice(status="paid", due_date=past)
        make_invoice(status="cancelled", due_date=past)
        make_invoice(status="sent", due_date=clock.now + timedelta(days=5))

        result = repos.invoices.get_overdue()
        assert [i.id for i in result.items] == [already_overdue.id, late_partial.id]
        assert all(i.status == "overdue" for i in result.items)

    def test_write_failure_still_reports_overdue(self, repos, store, clock, make_invoice):
        invoice = make_invoice(status="sent", due_date=clock.now - timedelta(days=2))
        store.connection.execute(
            """
            CREATE TRIGGER block_overdue BEFORE UPDATE OF status ON invoices
            WHEN NEW.status = 'overdue'
            BEGIN
                SELECT RAISE(ABORT, 'overdue writes disabled');
            END
            """
        )

        result = repos.invoices.get_overdue()
        assert [i.status for i in result.items] == ["overdue"]
        assert stored_status(store, invoice.id) == "sent"
        assert not store.connection.in_transaction
