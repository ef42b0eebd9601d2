"""
ERP sales core: document repositories, status machines and sales-process
linkage on top of SQLite.

Typical wiring:
    >>> from sales_core.db import Store
    >>> from sales_core.repositories import RepositoryFactory
    >>> store = Store(db_path)
    >>> store.migrate()
    >>> repos = RepositoryFactory(store)
    >>> repos.quotations.create(quotation)
"""

__version__ = "0.1.0"
