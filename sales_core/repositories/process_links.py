"""
Links between a sales process and its documents.

Quotation, sales order and purchase order are 1:1 slots stored as
columns on sales_processes; deliveries and invoices are N:M rows in
process_deliveries / process_invoices.

Every link call follows the same steps:
1. the process must exist (SalesProcessNotFoundError)
2. the document must exist, checked through its own repository
   (that repository's NotFound error propagates)
3. an existing identical link is a successful no-op
4. otherwise the link is written

Steps 1-3 run outside the write transaction, so a process or document
deleted concurrently can still end up with a dangling link; the
aggregate load tolerates that.
"""

import logging
import sqlite3
from datetime import datetime

from ..db import Store
from ..errors import SalesProcessNotFoundError, translate_store_error
from ..utils.dates import to_db_datetime

logger = logging.getLogger(__name__)


class ProcessLinker:
    """
    Collaborators are the document repositories whose get_by_id is used
    to verify the linked document.
    """

    def __init__(
        self,
        store: Store,
        quotations,
        sales_orders,
        purchase_orders,
        deliveries,
        invoices,
        clock=None,
    ):
        self.store = store
        self.quotations = quotations
        self.sales_orders = sales_orders
        self.purchase_orders = purchase_orders
        self.deliveries = deliveries
        self.invoices = invoices
        self._clock = clock or datetime.now

    # ------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------

    def link_quotation(self, process_id: int, quotation_id: int) -> bool:
        return self._link_slot(process_id, "quotation_id", self.quotations, quotation_id)

    def link_sales_order(self, process_id: int, sales_order_id: int) -> bool:
        return self._link_slot(process_id, "sales_order_id", self.sales_orders, sales_order_id)

    def link_purchase_order(self, process_id: int, purchase_order_id: int) -> bool:
        return self._link_slot(process_id, "purchase_order_id", self.purchase_orders, purchase_order_id)

    def link_delivery(self, process_id: int, delivery_id: int) -> bool:
        return self._link_many(process_id, "process_deliveries", "delivery_id", self.deliveries, delivery_id)

    def link_invoice(self, process_id: int, invoice_id: int) -> bool:
        return self._link_many(process_id, "process_invoices", "invoice_id", self.invoices, invoice_id)

    def delivery_ids(self, process_id: int) -> list:
        return self._linked_ids("process_deliveries", "delivery_id", process_id)

    def invoice_ids(self, process_id: int) -> list:
        return self._linked_ids("process_invoices", "invoice_id", process_id)

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------

    def _now_db(self) -> str:
        return to_db_datetime(self._clock().replace(microsecond=0))

    def _require_process(self, process_id: int) -> sqlite3.Row:
        try:
            row = self.store.fetch_one("SELECT * FROM sales_processes WHERE id = ?", (process_id,))
        except sqlite3.Error as e:
            raise translate_store_error(f"get sales process {process_id}", e) from e
        if row is None:
            logger.warning(f"sales process {process_id} not found")
            raise SalesProcessNotFoundError(process_id)
        return row

    def _link_slot(self, process_id: int, column: str, repository, document_id: int) -> bool:
        """
        Point a 1:1 slot at a document.

        Returns True if the column was written, False if it already held
        this document. A slot holding a different document is replaced.
        """
        process = self._require_process(process_id)
        repository.get_by_id(document_id)

        current = process[column]
        if current == document_id:
            logger.debug(f"sales process {process_id}: {column}={document_id} already linked")
            return False
        if current is not None:
            logger.warning(
                f"sales process {process_id}: replacing {column} {current} with {document_id}"
            )

        try:
            with self.store.transaction() as cur:
                cur.execute(
                    f"UPDATE sales_processes SET {column} = ?, updated_at = ? WHERE id = ?",
                    (document_id, self._now_db(), process_id),
                )
                if cur.rowcount == 0:
                    raise SalesProcessNotFoundError(process_id)
        except sqlite3.Error as e:
            raise translate_store_error(f"link {column}={document_id} to sales process {process_id}", e) from e

        logger.info(f"sales process {process_id}: linked {column}={document_id}")
        return True

    def _link_many(self, process_id: int, table: str, column: str, repository, document_id: int) -> bool:
        """
        Add an N:M link row.

        Returns True if a row was inserted, False if the pair was already
        linked (including a concurrent insert caught by the primary key).
        """
        self._require_process(process_id)
        repository.get_by_id(document_id)

        try:
            existing = self.store.scalar(
                f"SELECT COUNT(*) FROM {table} WHERE process_id = ? AND {column} = ?",
                (process_id, document_id),
            )
        except sqlite3.Error as e:
            raise translate_store_error(f"check {table} link", e) from e
        if existing:
            logger.debug(f"sales process {process_id}: {column}={document_id} already linked")
            return False

        try:
            with self.store.transaction() as cur:
                cur.execute(
                    f"INSERT INTO {table} (process_id, {column}, created_at) VALUES (?, ?, ?)",
                    (process_id, document_id, self._now_db()),
                )
        except sqlite3.IntegrityError as e:
            error_msg = str(e).lower()
            if "unique" in error_msg or "primary key" in error_msg:
                logger.debug(f"sales process {process_id}: {column}={document_id} linked concurrently")
                return False
            raise translate_store_error(f"link {column}={document_id} to sales process {process_id}", e) from e
        except sqlite3.Error as e:
            raise translate_store_error(f"link {column}={document_id} to sales process {process_id}", e) from e

        logger.info(f"sales process {process_id}: linked {column}={document_id}")
        return True

    def _linked_ids(self, table: str, column: str, process_id: int) -> list:
        try:
            rows = self.store.fetch_all(
                f"SELECT {column} FROM {table} WHERE process_id = ? ORDER BY created_at, {column}",
                (process_id,),
            )
        except sqlite3.Error as e:
            raise translate_store_error(f"list {table} for sales process {process_id}", e) from e
        return [row[0] for row in rows]
