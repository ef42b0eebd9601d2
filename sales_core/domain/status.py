"""
Document status values and transition rules.

Pure logic, no I/O. Repositories consult these machines on create,
update and explicit status changes; derived invoice statuses (payments,
overdue) are computed here but written by the invoice/payment
repositories.
"""
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Union

from ..errors import BusinessRuleError, InvalidStatusTransitionError


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SalesOrderStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PurchaseOrderStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    RETURNED = "returned"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


StatusLike = Union[str, Enum]


def status_value(status: Optional[StatusLike]) -> str:
    """Plain string for an enum member or string; None becomes ''."""
    if status is None:
        return ""
    if isinstance(status, Enum):
        return status.value
    return str(status)


class StatusMachine:
    """
    Legal states and transitions for one document type.

    Staying in the same state is always allowed; any other move must be
    listed in the transition table.
    """

    def __init__(self, document: str, initial: StatusLike, transitions: Mapping[StatusLike, Iterable[StatusLike]]):
        self.document = document
        self.initial = status_value(initial)
        self.transitions: Dict[str, FrozenSet[str]] = {
            status_value(src): frozenset(status_value(dst) for dst in targets)
            for src, targets in transitions.items()
        }

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def is_valid(self, status: StatusLike) -> bool:
        return status_value(status) in self.transitions

    def is_terminal(self, status: StatusLike) -> bool:
        return not self.transitions.get(status_value(status))

    def can_transition(self, current: StatusLike, new: StatusLike) -> bool:
        current, new = status_value(current), status_value(new)
        if not self.is_valid(current) or not self.is_valid(new):
            return False
        return current == new or new in self.transitions[current]

    def check_valid(self, status: StatusLike) -> str:
        value = status_value(status)
        if not self.is_valid(value):
            raise BusinessRuleError(
                f"Invalid {self.document} status '{value}' "
                f"(expected one of: {', '.join(sorted(self.states))})"
            )
        return value

    def check_transition(self, current: StatusLike, new: StatusLike) -> str:
        new_value = self.check_valid(new)
        if not self.can_transition(current, new_value):
            raise InvalidStatusTransitionError(self.document, status_value(current), new_value)
        return new_value


QUOTATION_STATUS = StatusMachine("quotation", QuotationStatus.DRAFT, {
    QuotationStatus.DRAFT: [QuotationStatus.SENT, QuotationStatus.CANCELLED],
    QuotationStatus.SENT: [
        QuotationStatus.ACCEPTED, QuotationStatus.REJECTED,
        QuotationStatus.EXPIRED, QuotationStatus.CANCELLED,
    ],
    QuotationStatus.ACCEPTED: [QuotationStatus.CANCELLED],
    QuotationStatus.REJECTED: [QuotationStatus.CANCELLED],
    QuotationStatus.EXPIRED: [QuotationStatus.CANCELLED],
    QuotationStatus.CANCELLED: [],
})

SALES_ORDER_STATUS = StatusMachine("sales order", SalesOrderStatus.DRAFT, {
    SalesOrderStatus.DRAFT: [SalesOrderStatus.CONFIRMED, SalesOrderStatus.CANCELLED],
    SalesOrderStatus.CONFIRMED: [SalesOrderStatus.PROCESSING, SalesOrderStatus.CANCELLED],
    SalesOrderStatus.PROCESSING: [SalesOrderStatus.COMPLETED, SalesOrderStatus.CANCELLED],
    SalesOrderStatus.COMPLETED: [],
    SalesOrderStatus.CANCELLED: [],
})

PURCHASE_ORDER_STATUS = StatusMachine("purchase order", PurchaseOrderStatus.DRAFT, {
    PurchaseOrderStatus.DRAFT: [PurchaseOrderStatus.SENT, PurchaseOrderStatus.CANCELLED],
    PurchaseOrderStatus.SENT: [PurchaseOrderStatus.CONFIRMED, PurchaseOrderStatus.CANCELLED],
    PurchaseOrderStatus.CONFIRMED: [PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED],
    PurchaseOrderStatus.RECEIVED: [],
    PurchaseOrderStatus.CANCELLED: [],
})

DELIVERY_STATUS = StatusMachine("delivery", DeliveryStatus.PENDING, {
    DeliveryStatus.PENDING: [DeliveryStatus.SHIPPED, DeliveryStatus.RETURNED],
    DeliveryStatus.SHIPPED: [DeliveryStatus.DELIVERED, DeliveryStatus.RETURNED],
    DeliveryStatus.DELIVERED: [DeliveryStatus.RETURNED],
    DeliveryStatus.RETURNED: [],
})

INVOICE_STATUS = StatusMachine("invoice", InvoiceStatus.DRAFT, {
    InvoiceStatus.DRAFT: [InvoiceStatus.SENT, InvoiceStatus.CANCELLED],
    InvoiceStatus.SENT: [
        InvoiceStatus.PARTIAL, InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.PARTIAL: [InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED],
    InvoiceStatus.OVERDUE: [InvoiceStatus.PARTIAL, InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
    InvoiceStatus.PAID: [],
    InvoiceStatus.CANCELLED: [],
})

# Invoices in these states never become overdue
INVOICE_SETTLED_STATUSES = (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)

# Quotations in these states are excluded from the expired listing
QUOTATION_DECIDED_STATUSES = (QuotationStatus.ACCEPTED.value, QuotationStatus.REJECTED.value)

# Purchase orders still awaiting goods
PURCHASE_ORDER_OPEN_STATUSES = (
    PurchaseOrderStatus.DRAFT.value,
    PurchaseOrderStatus.SENT.value,
    PurchaseOrderStatus.CONFIRMED.value,
)


def derive_invoice_status(amount_paid: float, grand_total: float) -> Optional[str]:
    """
    Status implied by the amount paid.

    Returns 'paid' when amount_paid >= grand_total, 'partial' when
    0 < amount_paid < grand_total, and None when nothing has been paid
    (the stored status is left alone).
    """
    if amount_paid <= 0:
        return None
    if amount_paid >= grand_total:
        return InvoiceStatus.PAID.value
    return InvoiceStatus.PARTIAL.value


def status_after_refund(amount_paid: float, grand_total: float) -> Optional[str]:
    """Status after a payment is removed: 'sent' when nothing is left paid, 'partial' when short."""
    if amount_paid <= 0:
        return InvoiceStatus.SENT.value
    if amount_paid < grand_total:
        return InvoiceStatus.PARTIAL.value
    return None
