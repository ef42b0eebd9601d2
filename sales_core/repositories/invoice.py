"""Invoice repository."""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from ..domain.models import Invoice, LineItem
from ..domain.status import (
    INVOICE_SETTLED_STATUSES,
    INVOICE_STATUS,
    InvoiceStatus,
    derive_invoice_status,
)
from ..errors import InvoiceNotFoundError, RepositoryError
from ..pagination import PaginatedResult, PaginationParams
from ..utils.dates import to_db_datetime
from .base import DocumentRepository

logger = logging.getLogger(__name__)


class InvoiceRepository(DocumentRepository):
    """
    Invoices, their line items and payments.

    Status is partly derived:
    - update() recomputes paid/partial from amount_paid when the caller
      leaves the status unchanged
    - payments (PaymentRepository) move amount_paid and the status together
    - get_overdue() writes 'overdue' back as a side effect of the read
    """

    table = "invoices"
    entity = "invoice"
    not_found_error = InvoiceNotFoundError
    model = Invoice
    number_column = "invoice_no"
    prefix_key = "invoice"
    columns = (
        "invoice_no", "sales_order_id", "so_no", "contact_id", "status",
        "issue_date", "due_date",
        "subtotal", "tax_total", "discount_total", "grand_total", "amount_paid",
        "payment_terms", "notes",
    )
    date_columns = ("created_at", "updated_at", "issue_date", "due_date")
    status_machine = INVOICE_STATUS
    item_table = "invoice_items"
    item_fk = "invoice_id"
    item_model = LineItem
    dependents = (("payments", "invoice_id", "payment"),)

    def __init__(self, store, contacts=None, sales_orders=None, payments=None, clock=None):
        super().__init__(store, contacts=contacts, clock=clock)
        self.sales_orders = sales_orders
        self.payments = payments

    def _load_references(self, doc: Invoice) -> None:
        super()._load_references(doc)
        if self.sales_orders is not None and doc.sales_order_id:
            doc.sales_order = self.sales_orders.find_header(doc.sales_order_id)
        if self.payments is not None:
            doc.payments = self.payments.get_by_invoice(doc.id)

    def _update_overrides(self, doc: Invoice, existing: Invoice) -> Dict[str, Any]:
        # amount_paid is owned by payments; 0 means "not supplied"
        if not doc.amount_paid:
            return {"amount_paid": existing.amount_paid}
        return {}

    def _after_update(self, cur: sqlite3.Cursor, doc_id: int, values: Dict[str, Any], existing: Invoice) -> None:
        # Recomputed from amount_paid even for cancelled invoices: the transition table is not consulted here
        if values["status"] != existing.status:
            return
        derived = derive_invoice_status(values["amount_paid"], values["grand_total"])
        if derived is not None and derived != values["status"]:
            logger.info(f"invoice {doc_id}: status recomputed {values['status']} -> {derived}")
            cur.execute("UPDATE invoices SET status = ? WHERE id = ?", (derived, doc_id))

    def get_by_sales_order(self, sales_order_id: int) -> List[Invoice]:
        return self._select("sales_order_id = ?", [sales_order_id])

    def get_overdue(self, params: Optional[PaginationParams] = None) -> PaginatedResult:
        """
        Unsettled invoices whose due date has passed, oldest due first.

        Deliberate side effect: every returned invoice not yet marked
        'overdue' gets that status written back, one best-effort write per
        invoice. A failed write is logged and swallowed, and the returned
        invoice reports 'overdue' either way.
        """
        now = self._now()
        placeholders = ", ".join("?" * len(INVOICE_SETTLED_STATUSES))
        result = self._paginate(
            f"due_date < ? AND status NOT IN ({placeholders})",
            [to_db_datetime(now), *INVOICE_SETTLED_STATUSES],
            params,
            order_by="due_date ASC, id ASC",
        )

        overdue = InvoiceStatus.OVERDUE.value
        for invoice in result.items:
            if invoice.status != overdue:
                self._write_back_overdue(invoice.id, now)
                invoice.status = overdue
        return result

    def _write_back_overdue(self, invoice_id: int, now) -> bool:
        placeholders = ", ".join("?" * len(INVOICE_SETTLED_STATUSES))
        try:
            with self.store.transaction() as cur:
                cur.execute(
                    f"UPDATE invoices SET status = ?, updated_at = ? "
                    f"WHERE id = ? AND status NOT IN ({placeholders})",
                    (InvoiceStatus.OVERDUE.value, to_db_datetime(now), invoice_id, *INVOICE_SETTLED_STATUSES),
                )
            return True
        except (sqlite3.Error, RepositoryError) as e:
            logger.warning(f"Could not mark invoice {invoice_id} overdue: {e}")
            return False
