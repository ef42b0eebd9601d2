"""Payments against invoices."""

import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

from ..cancellation import OperationContext
from ..domain.models import Payment
from ..domain.status import InvoiceStatus, derive_invoice_status, status_after_refund
from ..errors import BusinessRuleError, InvoiceNotFoundError, PaymentNotFoundError
from ..pagination import PaginatedResult, PaginationParams
from ..utils.dates import to_db_datetime
from .base import BaseRepository

logger = logging.getLogger(__name__)

PAYMENT_COLUMNS = ("invoice_id", "amount", "payment_date", "payment_method", "reference", "notes")


class PaymentRepository(BaseRepository):
    """
    Payments are created independently of their invoice but always move
    the invoice's amount_paid and status in the same transaction:
    the amount is written first, then the status derived from it.
    """

    table = "payments"
    entity = "payment"
    not_found_error = PaymentNotFoundError
    date_columns = ("payment_date", "created_at")
    default_order = "payment_date ASC, id ASC"
    listing_order = "payment_date DESC, id DESC"

    def _hydrate(self, row: sqlite3.Row) -> Payment:
        return Payment(id=row["id"], **self._from_row(row, PAYMENT_COLUMNS + ("created_at",)))

    def get_by_id(self, payment_id: int) -> Payment:
        row = self._fetch_row(payment_id)
        if row is None:
            raise self._not_found(payment_id)
        return self._hydrate(row)

    def get_by_invoice(self, invoice_id: int) -> List[Payment]:
        return self._select("invoice_id = ?", [invoice_id])

    def get_all(self, params: Optional[PaginationParams] = None) -> PaginatedResult:
        """Every payment, most recent payment_date first."""
        return self._paginate(params=params, order_by=self.listing_order)

    def get_by_period(
        self,
        start: datetime,
        end: datetime,
        params: Optional[PaginationParams] = None,
    ) -> PaginatedResult:
        """Payments whose payment_date falls within [start, end]."""
        return self._paginate(
            "payment_date >= ? AND payment_date <= ?",
            [to_db_datetime(start), to_db_datetime(end)],
            params,
            order_by=self.listing_order,
        )

    def create(self, payment: Payment, ctx: Optional[OperationContext] = None) -> Payment:
        """
        Record a payment and update the invoice.

        Raises:
            InvoiceNotFoundError: invoice does not exist
            BusinessRuleError: amount <= 0 or the invoice is cancelled
        """
        if payment.amount is None or payment.amount <= 0:
            raise BusinessRuleError(f"Payment amount must be positive (got {payment.amount})")

        now = self._now()
        payment_date = payment.payment_date or now
        logger.info(f"Recording payment of {payment.amount} on invoice {payment.invoice_id}")

        try:
            with self.store.transaction(ctx=ctx, isolation_level="IMMEDIATE") as cur:
                invoice = cur.execute(
                    "SELECT amount_paid, grand_total, status FROM invoices WHERE id = ?",
                    (payment.invoice_id,),
                ).fetchone()
                if invoice is None:
                    raise InvoiceNotFoundError(payment.invoice_id)
                if invoice["status"] == InvoiceStatus.CANCELLED.value:
                    raise BusinessRuleError(f"Invoice {payment.invoice_id} is cancelled")

                cur.execute(
                    """
                    INSERT INTO payments (invoice_id, amount, payment_date, payment_method, reference, notes, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (payment.invoice_id, payment.amount, to_db_datetime(payment_date),
                     payment.payment_method, payment.reference, payment.notes, to_db_datetime(now)),
                )
                payment_id = cur.lastrowid

                amount_paid = invoice["amount_paid"] + payment.amount
                cur.execute(
                    "UPDATE invoices SET amount_paid = ?, updated_at = ? WHERE id = ?",
                    (amount_paid, to_db_datetime(now), payment.invoice_id),
                )
                new_status = derive_invoice_status(amount_paid, invoice["grand_total"])
                if new_status is not None:
                    cur.execute("UPDATE invoices SET status = ? WHERE id = ?", (new_status, payment.invoice_id))
        except sqlite3.Error as e:
            raise self._store_error(f"create payment for invoice {payment.invoice_id}", e) from e

        payment.id = payment_id
        payment.payment_date = payment_date
        payment.created_at = now
        return payment

    def update(self, payment_id: int, payment: Payment, ctx: Optional[OperationContext] = None) -> Payment:
        """
        Overwrite a payment and move the invoice's amount_paid by the
        difference (floored at 0), then re-derive its status: 'paid',
        'partial' or back to 'sent'. A cancelled invoice keeps its status.

        The payment stays on its original invoice; payment.invoice_id is ignored.

        Raises:
            PaymentNotFoundError: payment does not exist
            BusinessRuleError: amount <= 0
        """
        if payment.amount is None or payment.amount <= 0:
            raise BusinessRuleError(f"Payment amount must be positive (got {payment.amount})")

        now = self._now()
        logger.info(f"Updating payment {payment_id}")

        try:
            with self.store.transaction(ctx=ctx, isolation_level="IMMEDIATE") as cur:
                existing = cur.execute("SELECT * FROM payments WHERE id = ?", (payment_id,)).fetchone()
                if existing is None:
                    raise self._not_found(payment_id)
                current = self._hydrate(existing)
                invoice_id = current.invoice_id

                invoice = cur.execute(
                    "SELECT amount_paid, grand_total, status FROM invoices WHERE id = ?", (invoice_id,)
                ).fetchone()

                payment_date = payment.payment_date or current.payment_date
                cur.execute(
                    """
                    UPDATE payments
                    SET amount = ?, payment_date = ?, payment_method = ?, reference = ?, notes = ?
                    WHERE id = ?
                    """,
                    (payment.amount, to_db_datetime(payment_date), payment.payment_method,
                     payment.reference, payment.notes, payment_id),
                )

                amount_paid = max(0.0, invoice["amount_paid"] + payment.amount - current.amount)
                cur.execute(
                    "UPDATE invoices SET amount_paid = ?, updated_at = ? WHERE id = ?",
                    (amount_paid, to_db_datetime(now), invoice_id),
                )
                if invoice["status"] != InvoiceStatus.CANCELLED.value:
                    new_status = derive_invoice_status(amount_paid, invoice["grand_total"]) or InvoiceStatus.SENT.value
                    cur.execute("UPDATE invoices SET status = ? WHERE id = ?", (new_status, invoice_id))
        except sqlite3.Error as e:
            raise self._store_error(f"update payment {payment_id}", e) from e

        payment.id = payment_id
        payment.invoice_id = invoice_id
        payment.payment_date = payment_date
        payment.created_at = current.created_at
        return payment

    def delete(self, payment_id: int, ctx: Optional[OperationContext] = None) -> None:
        """
        Remove a payment and take it off the invoice's amount_paid
        (floored at 0); status falls back to 'sent' or 'partial' unless
        the invoice is cancelled.
        """
        logger.info(f"Deleting payment {payment_id}")
        try:
            with self.store.transaction(ctx=ctx, isolation_level="IMMEDIATE") as cur:
                payment = cur.execute(
                    "SELECT invoice_id, amount FROM payments WHERE id = ?", (payment_id,)
                ).fetchone()
                if payment is None:
                    raise self._not_found(payment_id)

                invoice = cur.execute(
                    "SELECT amount_paid, grand_total, status FROM invoices WHERE id = ?", (payment["invoice_id"],)
                ).fetchone()

                cur.execute("DELETE FROM payments WHERE id = ?", (payment_id,))

                amount_paid = max(0.0, invoice["amount_paid"] - payment["amount"])
                cur.execute(
                    "UPDATE invoices SET amount_paid = ?, updated_at = ? WHERE id = ?",
                    (amount_paid, to_db_datetime(self._now()), payment["invoice_id"]),
                )
                # cancelled is terminal
                new_status = None
                if invoice["status"] != InvoiceStatus.CANCELLED.value:
                    new_status = status_after_refund(amount_paid, invoice["grand_total"])
                if new_status is not None:
                    cur.execute("UPDATE invoices SET status = ? WHERE id = ?", (new_status, payment["invoice_id"]))
        except sqlite3.Error as e:
            raise self._store_error(f"delete payment {payment_id}", e) from e
