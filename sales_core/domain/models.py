"""
Domain models for the sales module.

Plain data classes, no I/O. Field names match the store's column names.
Reference fields (contact, sales_order, payments, ...) are filled in by
the repositories on read and ignored on write.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Contact:
    id: Optional[int] = None
    name: str = ""
    email: str = ""
    phone: str = ""
    contact_type: str = "customer"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class LineItem:
    """Priced line on a quotation, sales order, purchase order or invoice."""
    id: Optional[int] = None
    document_id: Optional[int] = None  # owning document, set by the repository
    product_id: Optional[int] = None
    product_name: str = ""
    product_code: str = ""
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0
    discount: float = 0.0
    tax: float = 0.0
    total: float = 0.0


@dataclass
class DeliveryItem:
    id: Optional[int] = None
    document_id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: str = ""
    product_code: str = ""
    description: str = ""
    quantity: float = 1.0
    received_qty: float = 0.0
    notes: str = ""


@dataclass
class Quotation:
    id: Optional[int] = None
    quotation_no: str = ""
    contact_id: Optional[int] = None
    status: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    subtotal: float = 0.0
    tax_total: float = 0.0
    discount_total: float = 0.0
    grand_total: float = 0.0
    notes: str = ""
    terms: str = ""
    items: List[LineItem] = field(default_factory=list)

    contact: Optional[Contact] = None


@dataclass
class SalesOrder:
    id: Optional[int] = None
    so_no: str = ""
    quotation_id: Optional[int] = None
    contact_id: Optional[int] = None
    status: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expected_date: Optional[datetime] = None
    subtotal: float = 0.0
    tax_total: float = 0.0
    discount_total: float = 0.0
    grand_total: float = 0.0
    notes: str = ""
    payment_terms: str = ""
    shipping_address: str = ""
    items: List[LineItem] = field(default_factory=list)

    contact: Optional[Contact] = None
    quotation: Optional[Quotation] = None


@dataclass
class PurchaseOrder:
    id: Optional[int] = None
    po_no: str = ""
    so_no: str = ""
    sales_order_id: Optional[int] = None
    contact_id: Optional[int] = None
    status: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expected_date: Optional[datetime] = None  # drives the overdue listing
    subtotal: float = 0.0
    tax_total: float = 0.0
    discount_total: float = 0.0
    grand_total: float = 0.0
    notes: str = ""
    payment_terms: str = ""
    shipping_address: str = ""
    items: List[LineItem] = field(default_factory=list)

    contact: Optional[Contact] = None
    sales_order: Optional[SalesOrder] = None


@dataclass
class Delivery:
    id: Optional[int] = None
    delivery_no: str = ""
    purchase_order_id: Optional[int] = None
    po_no: str = ""
    sales_order_id: Optional[int] = None
    so_no: str = ""
    contact_id: Optional[int] = None
    status: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    shipping_method: str = ""
    tracking_number: str = ""
    shipping_address: str = ""
    notes: str = ""
    items: List[DeliveryItem] = field(default_factory=list)

    contact: Optional[Contact] = None
    purchase_order: Optional[PurchaseOrder] = None
    sales_order: Optional[SalesOrder] = None


@dataclass
class Payment:
    id: Optional[int] = None
    invoice_id: Optional[int] = None
    amount: float = 0.0
    payment_date: Optional[datetime] = None
    payment_method: str = ""
    reference: str = ""
    notes: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Invoice:
    id: Optional[int] = None
    invoice_no: str = ""
    sales_order_id: Optional[int] = None
    so_no: str = ""
    contact_id: Optional[int] = None
    status: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    subtotal: float = 0.0
    tax_total: float = 0.0
    discount_total: float = 0.0
    grand_total: float = 0.0
    amount_paid: float = 0.0
    payment_terms: str = ""
    notes: str = ""
    items: List[LineItem] = field(default_factory=list)

    contact: Optional[Contact] = None
    sales_order: Optional[SalesOrder] = None
    payments: List[Payment] = field(default_factory=list)

    @property
    def balance_due(self) -> float:
        return max(0.0, self.grand_total - self.amount_paid)


@dataclass
class SalesProcess:
    """
    Quote-to-cash aggregate. References at most one quotation, sales order
    and purchase order, and any number of deliveries and invoices. It never
    owns those documents.
    """
    id: Optional[int] = None
    contact_id: Optional[int] = None
    status: str = "draft"
    total_value: float = 0.0
    profit: float = 0.0
    notes: str = ""
    quotation_id: Optional[int] = None
    sales_order_id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    delivery_ids: List[int] = field(default_factory=list)
    invoice_ids: List[int] = field(default_factory=list)

    contact: Optional[Contact] = None
    quotation: Optional[Quotation] = None
    sales_order: Optional[SalesOrder] = None
    purchase_order: Optional[PurchaseOrder] = None
    deliveries: List[Delivery] = field(default_factory=list)
    invoices: List[Invoice] = field(default_factory=list)
