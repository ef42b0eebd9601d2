"""
Repository layer for the sales module.

RepositoryFactory builds every repository once around a shared Store and
wires the cross-repository collaborators through constructors.
"""

from ..db import Store
from .base import BaseRepository, DocumentRepository
from .contact import ContactRepository
from .delivery import DeliveryRepository
from .invoice import InvoiceRepository
from .payment import PaymentRepository
from .process_links import ProcessLinker
from .purchase_order import PurchaseOrderRepository
from .quotation import QuotationRepository
from .sales_order import SalesOrderRepository
from .sales_process import SalesProcessRepository


class RepositoryFactory:
    """
    Repositories sharing one store handle.

    Usage:
        >>> store = Store(db_path)
        >>> store.migrate()
        >>> repos = RepositoryFactory(store)
        >>> repos.processes.link_delivery(process.id, delivery.id)
    """

    def __init__(self, store: Store, clock=None):
        self.store = store
        self.contacts = ContactRepository(store, clock=clock)
        self.quotations = QuotationRepository(store, contacts=self.contacts, clock=clock)
        self.sales_orders = SalesOrderRepository(
            store, contacts=self.contacts, quotations=self.quotations, clock=clock,
        )
        self.purchase_orders = PurchaseOrderRepository(
            store, contacts=self.contacts, sales_orders=self.sales_orders, clock=clock,
        )
        self.deliveries = DeliveryRepository(
            store, contacts=self.contacts, purchase_orders=self.purchase_orders,
            sales_orders=self.sales_orders, clock=clock,
        )
        self.payments = PaymentRepository(store, clock=clock)
        self.invoices = InvoiceRepository(
            store, contacts=self.contacts, sales_orders=self.sales_orders,
            payments=self.payments, clock=clock,
        )
        self.linker = ProcessLinker(
            store,
            quotations=self.quotations,
            sales_orders=self.sales_orders,
            purchase_orders=self.purchase_orders,
            deliveries=self.deliveries,
            invoices=self.invoices,
            clock=clock,
        )
        self.processes = SalesProcessRepository(
            store, linker=self.linker, contacts=self.contacts, clock=clock,
        )


__all__ = [
    "BaseRepository",
    "ContactRepository",
    "DeliveryRepository",
    "DocumentRepository",
    "InvoiceRepository",
    "PaymentRepository",
    "ProcessLinker",
    "PurchaseOrderRepository",
    "QuotationRepository",
    "RepositoryFactory",
    "SalesOrderRepository",
    "SalesProcessRepository",
]
