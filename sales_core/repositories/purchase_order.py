"""Purchase order repository."""

from typing import List, Optional

from ..domain.models import LineItem, PurchaseOrder
from ..domain.status import PURCHASE_ORDER_OPEN_STATUSES, PURCHASE_ORDER_STATUS
from ..errors import PurchaseOrderNotFoundError
from ..pagination import PaginatedResult, PaginationParams
from ..utils.dates import to_db_datetime
from .base import DocumentRepository


class PurchaseOrderRepository(DocumentRepository):
    table = "purchase_orders"
    entity = "purchase order"
    not_found_error = PurchaseOrderNotFoundError
    model = PurchaseOrder
    number_column = "po_no"
    prefix_key = "purchase_order"
    columns = (
        "po_no", "so_no", "sales_order_id", "contact_id", "status", "expected_date",
        "subtotal", "tax_total", "discount_total", "grand_total",
        "notes", "payment_terms", "shipping_address",
    )
    date_columns = ("created_at", "updated_at", "expected_date")
    status_machine = PURCHASE_ORDER_STATUS
    item_table = "purchase_order_items"
    item_fk = "purchase_order_id"
    item_model = LineItem
    dependents = (("deliveries", "purchase_order_id", "delivery"),)

    def __init__(self, store, contacts=None, sales_orders=None, clock=None):
        super().__init__(store, contacts=contacts, clock=clock)
        self.sales_orders = sales_orders

    def _load_references(self, doc: PurchaseOrder) -> None:
        super()._load_references(doc)
        if self.sales_orders is not None and doc.sales_order_id:
            doc.sales_order = self.sales_orders.find_header(doc.sales_order_id)

    def get_overdue(self, params: Optional[PaginationParams] = None) -> PaginatedResult:
        """
        Open purchase orders (draft/sent/confirmed) whose expected date has
        passed. Read-only: the stored status is not changed.
        """
        now = to_db_datetime(self._now())
        placeholders = ", ".join("?" * len(PURCHASE_ORDER_OPEN_STATUSES))
        return self._paginate(
            f"expected_date < ? AND status IN ({placeholders})",
            [now, *PURCHASE_ORDER_OPEN_STATUSES],
            params,
            order_by="expected_date ASC, id ASC",
        )

    def get_by_sales_order(self, sales_order_id: int) -> List[PurchaseOrder]:
        return self._select("sales_order_id = ?", [sales_order_id])
