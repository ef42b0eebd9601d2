"""Sales order repository, including conversion from an accepted quotation."""

import logging
from datetime import timedelta
from typing import List, Optional

from ..cancellation import OperationContext
from ..config import SALES_ORDER_LEAD_DAYS
from ..domain.models import LineItem, SalesOrder
from ..domain.status import SALES_ORDER_STATUS, QuotationStatus, SalesOrderStatus
from ..errors import BusinessRuleError, SalesOrderNotFoundError
from .base import DocumentRepository

logger = logging.getLogger(__name__)


class SalesOrderRepository(DocumentRepository):
    """
    Sales orders and their line items.

    Delete is refused while purchase orders, deliveries or invoices
    reference the order.
    """

    table = "sales_orders"
    entity = "sales order"
    not_found_error = SalesOrderNotFoundError
    model = SalesOrder
    number_column = "so_no"
    prefix_key = "sales_order"
    columns = (
        "so_no", "quotation_id", "contact_id", "status", "expected_date",
        "subtotal", "tax_total", "discount_total", "grand_total",
        "notes", "payment_terms", "shipping_address",
    )
    date_columns = ("created_at", "updated_at", "expected_date")
    status_machine = SALES_ORDER_STATUS
    item_table = "sales_order_items"
    item_fk = "sales_order_id"
    item_model = LineItem
    dependents = (
        ("purchase_orders", "sales_order_id", "purchase order"),
        ("deliveries", "sales_order_id", "delivery"),
        ("invoices", "sales_order_id", "invoice"),
    )

    def __init__(self, store, contacts=None, quotations=None, clock=None):
        super().__init__(store, contacts=contacts, clock=clock)
        self.quotations = quotations

    def _load_references(self, doc: SalesOrder) -> None:
        super()._load_references(doc)
        if self.quotations is not None and doc.quotation_id:
            doc.quotation = self.quotations.find_header(doc.quotation_id)

    def get_by_quotation(self, quotation_id: int) -> List[SalesOrder]:
        return self._select("quotation_id = ?", [quotation_id])

    def create_from_quotation(self, quotation_id: int, ctx: Optional[OperationContext] = None) -> SalesOrder:
        """
        Create a confirmed sales order from an accepted quotation.

        Totals, notes and items are copied; the expected date is set
        SALES_ORDER_LEAD_DAYS from now and the number comes from the
        sales order sequence.

        Raises:
            QuotationNotFoundError: quotation does not exist
            BusinessRuleError: quotation is not accepted
        """
        if self.quotations is None:
            raise RuntimeError("SalesOrderRepository was built without a quotation repository")

        quotation = self.quotations.get_by_id(quotation_id)
        if quotation.status != QuotationStatus.ACCEPTED.value:
            raise BusinessRuleError(
                f"Quotation {quotation.quotation_no} must be accepted to create a sales order "
                f"(status is '{quotation.status}')"
            )

        order = SalesOrder(
            quotation_id=quotation.id,
            contact_id=quotation.contact_id,
            status=SalesOrderStatus.CONFIRMED.value,
            expected_date=self._now() + timedelta(days=SALES_ORDER_LEAD_DAYS),
            subtotal=quotation.subtotal,
            tax_total=quotation.tax_total,
            discount_total=quotation.discount_total,
            grand_total=quotation.grand_total,
            notes=quotation.notes,
            items=[
                LineItem(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    product_code=item.product_code,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount=item.discount,
                    tax=item.tax,
                    total=item.total,
                )
                for item in quotation.items
            ],
        )
        logger.info(f"Converting quotation {quotation.quotation_no} to a sales order")
        return self.create(order, ctx=ctx)
