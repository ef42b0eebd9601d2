"""
Sales process aggregate: a process row plus every document it links,
loaded through the owning document repositories.
"""

import logging
import sqlite3
from typing import Optional

from ..cancellation import OperationContext
from ..domain.models import SalesProcess
from ..errors import RepositoryError, SalesProcessNotFoundError
from ..pagination import PaginatedResult, PaginationParams
from ..utils.dates import to_db_datetime
from .base import BaseRepository
from .process_links import ProcessLinker

logger = logging.getLogger(__name__)

PROCESS_COLUMNS = ("contact_id", "status", "total_value", "profit", "notes")
SLOT_COLUMNS = ("quotation_id", "sales_order_id", "purchase_order_id")
DEFAULT_PROCESS_STATUS = "draft"


class SalesProcessRepository(BaseRepository):
    """
    Reads assemble the full document graph:
        process -> contact, quotation, sales order, purchase order,
                   deliveries[], invoices[]

    A linked document that cannot be loaded (deleted since it was linked,
    or failing to read) is left out of the aggregate and logged at debug
    level; it never fails the process load. Listing repeats the assembly
    for every row on the page.

    Link columns and link rows are written only by the ProcessLinker.
    """

    table = "sales_processes"
    entity = "sales process"
    not_found_error = SalesProcessNotFoundError
    date_columns = ("created_at", "updated_at")

    def __init__(
        self,
        store,
        linker: ProcessLinker,
        contacts=None,
        clock=None,
    ):
        super().__init__(store, clock)
        self.linker = linker
        self.contacts = contacts

    # ------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------

    def _load_linked(self, repository, document_id: int, label: str):
        try:
            return repository.get_by_id(document_id)
        except RepositoryError as e:
            logger.debug(f"Skipping linked {label} {document_id}: {e}")
            return None

    def _hydrate(self, row: sqlite3.Row) -> SalesProcess:
        process = SalesProcess(
            id=row["id"],
            **self._from_row(row, PROCESS_COLUMNS + SLOT_COLUMNS + self.date_columns),
        )

        if self.contacts is not None and process.contact_id:
            process.contact = self.contacts.find(process.contact_id)

        if process.quotation_id:
            process.quotation = self._load_linked(self.linker.quotations, process.quotation_id, "quotation")
        if process.sales_order_id:
            process.sales_order = self._load_linked(self.linker.sales_orders, process.sales_order_id, "sales order")
        if process.purchase_order_id:
            process.purchase_order = self._load_linked(
                self.linker.purchase_orders, process.purchase_order_id, "purchase order"
            )

        process.delivery_ids = self.linker.delivery_ids(process.id)
        for delivery_id in process.delivery_ids:
            delivery = self._load_linked(self.linker.deliveries, delivery_id, "delivery")
            if delivery is not None:
                process.deliveries.append(delivery)

        process.invoice_ids = self.linker.invoice_ids(process.id)
        for invoice_id in process.invoice_ids:
            invoice = self._load_linked(self.linker.invoices, invoice_id, "invoice")
            if invoice is not None:
                process.invoices.append(invoice)

        return process

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get_by_id(self, process_id: int) -> SalesProcess:
        row = self._fetch_row(process_id)
        if row is None:
            raise self._not_found(process_id)
        return self._hydrate(row)

    def get_all(self, params: Optional[PaginationParams] = None) -> PaginatedResult:
        return self._paginate(params=params)

    def get_by_contact(self, contact_id: int, params: Optional[PaginationParams] = None) -> PaginatedResult:
        return self._paginate("contact_id = ?", [contact_id], params)

    def get_by_status(self, status: str, params: Optional[PaginationParams] = None) -> PaginatedResult:
        return self._paginate("status = ?", [status], params)

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------

    def create(self, process: SalesProcess) -> SalesProcess:
        """Insert the process row. Documents are attached afterwards with the link_* methods."""
        status = process.status or DEFAULT_PROCESS_STATUS
        now = self._now()
        try:
            with self.store.transaction() as cur:
                cur.execute(
                    """
                    INSERT INTO sales_processes
                        (contact_id, status, total_value, profit, notes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (process.contact_id, status, process.total_value, process.profit, process.notes,
                     to_db_datetime(now), to_db_datetime(now)),
                )
                process.id = cur.lastrowid
        except sqlite3.Error as e:
            raise self._store_error("create sales process", e) from e

        process.status = status
        process.created_at = now
        process.updated_at = now
        logger.info(f"Created sales process {process.id}")
        return process

    def update(self, process_id: int, process: SalesProcess) -> SalesProcess:
        """Overwrite contact, status, totals and notes. Links are not touched."""
        try:
            with self.store.transaction() as cur:
                cur.execute(
                    """
                    UPDATE sales_processes
                    SET contact_id = ?, status = ?, total_value = ?, profit = ?, notes = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (process.contact_id, process.status or DEFAULT_PROCESS_STATUS, process.total_value,
                     process.profit, process.notes, to_db_datetime(self._now()), process_id),
                )
                if cur.rowcount == 0:
                    raise self._not_found(process_id)
        except sqlite3.Error as e:
            raise self._store_error(f"update sales process {process_id}", e) from e
        return self.get_by_id(process_id)

    def delete(self, process_id: int, ctx: Optional[OperationContext] = None) -> None:
        """
        Delete the process and all of its link rows in one transaction.
        Linked documents are never deleted. If the process row does not
        exist, nothing is removed and SalesProcessNotFoundError is raised.
        """
        logger.info(f"Deleting sales process {process_id}")
        try:
            with self.store.transaction(ctx=ctx, isolation_level="IMMEDIATE") as cur:
                cur.execute("DELETE FROM process_deliveries WHERE process_id = ?", (process_id,))
                cur.execute("DELETE FROM process_invoices WHERE process_id = ?", (process_id,))
                cur.execute("DELETE FROM sales_processes WHERE id = ?", (process_id,))
                if cur.rowcount == 0:
                    raise self._not_found(process_id)
        except sqlite3.Error as e:
            raise self._store_error(f"delete sales process {process_id}", e) from e

    # ------------------------------------------------------------
    # Linking (delegated)
    # ------------------------------------------------------------

    def link_quotation(self, process_id: int, quotation_id: int) -> bool:
        return self.linker.link_quotation(process_id, quotation_id)

    def link_sales_order(self, process_id: int, sales_order_id: int) -> bool:
        return self.linker.link_sales_order(process_id, sales_order_id)

    def link_purchase_order(self, process_id: int, purchase_order_id: int) -> bool:
        return self.linker.link_purchase_order(process_id, purchase_order_id)

    def link_delivery(self, process_id: int, delivery_id: int) -> bool:
        return self.linker.link_delivery(process_id, delivery_id)

    def link_invoice(self, process_id: int, invoice_id: int) -> bool:
        return self.linker.link_invoice(process_id, invoice_id)
