"""Delivery repository."""

from typing import List, Optional

from ..domain.models import Delivery, DeliveryItem
from ..domain.status import DELIVERY_STATUS, DeliveryStatus
from ..errors import DeliveryNotFoundError
from ..pagination import PaginatedResult, PaginationParams
from .base import DocumentRepository


class DeliveryRepository(DocumentRepository):
    """
    Deliveries against a purchase order and/or sales order.

    The parent row is written first and the items in a second pass within
    the same transaction. Nothing references a delivery through a foreign
    key, so deletes are never blocked; sales-process links to a deleted
    delivery are left dangling and skipped when the process is loaded.
    """

    table = "deliveries"
    entity = "delivery"
    not_found_error = DeliveryNotFoundError
    model = Delivery
    number_column = "delivery_no"
    prefix_key = "delivery"
    columns = (
        "delivery_no", "purchase_order_id", "po_no", "sales_order_id", "so_no",
        "contact_id", "status", "delivery_date", "received_date",
        "shipping_method", "tracking_number", "shipping_address", "notes",
    )
    date_columns = ("created_at", "updated_at", "delivery_date", "received_date")
    status_machine = DELIVERY_STATUS
    item_table = "delivery_items"
    item_fk = "delivery_id"
    item_model = DeliveryItem
    item_columns = (
        "product_id", "product_name", "product_code", "description",
        "quantity", "received_qty", "notes",
    )

    def __init__(self, store, contacts=None, purchase_orders=None, sales_orders=None, clock=None):
        super().__init__(store, contacts=contacts, clock=clock)
        self.purchase_orders = purchase_orders
        self.sales_orders = sales_orders

    def _load_references(self, doc: Delivery) -> None:
        super()._load_references(doc)
        if self.purchase_orders is not None and doc.purchase_order_id:
            doc.purchase_order = self.purchase_orders.find_header(doc.purchase_order_id)
        if self.sales_orders is not None and doc.sales_order_id:
            doc.sales_order = self.sales_orders.find_header(doc.sales_order_id)

    def get_pending(self, params: Optional[PaginationParams] = None) -> PaginatedResult:
        return self.get_by_status(DeliveryStatus.PENDING, params)

    def get_by_sales_order(self, sales_order_id: int) -> List[Delivery]:
        return self._select("sales_order_id = ?", [sales_order_id])

    def get_by_purchase_order(self, purchase_order_id: int) -> List[Delivery]:
        return self._select("purchase_order_id = ?", [purchase_order_id])
