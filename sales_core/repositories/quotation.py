"""Quotation repository."""

import logging
from typing import Optional

from ..domain.models import LineItem, Quotation
from ..domain.status import QUOTATION_DECIDED_STATUSES, QUOTATION_STATUS
from ..errors import QuotationNotFoundError
from ..pagination import PaginatedResult, PaginationParams
from ..utils.dates import to_db_datetime
from .base import DocumentRepository

logger = logging.getLogger(__name__)


class QuotationRepository(DocumentRepository):
    """
    Quotations and their line items.

    Delete is refused while any sales order was created from the quotation.
    Expiry is only reported by get_expired; the stored status is never
    rewritten on read.
    """

    table = "quotations"
    entity = "quotation"
    not_found_error = QuotationNotFoundError
    model = Quotation
    number_column = "quotation_no"
    prefix_key = "quotation"
    columns = (
        "quotation_no", "contact_id", "status", "expiry_date",
        "subtotal", "tax_total", "discount_total", "grand_total",
        "notes", "terms",
    )
    date_columns = ("created_at", "updated_at", "expiry_date")
    status_machine = QUOTATION_STATUS
    item_table = "quotation_items"
    item_fk = "quotation_id"
    item_model = LineItem
    dependents = (("sales_orders", "quotation_id", "sales order"),)

    def get_expired(self, params: Optional[PaginationParams] = None) -> PaginatedResult:
        """Quotations past expiry_date that were neither accepted nor rejected."""
        now = to_db_datetime(self._now())
        placeholders = ", ".join("?" * len(QUOTATION_DECIDED_STATUSES))
        return self._paginate(
            f"expiry_date < ? AND status NOT IN ({placeholders})",
            [now, *QUOTATION_DECIDED_STATUSES],
            params,
            order_by="expiry_date ASC, id ASC",
        )
