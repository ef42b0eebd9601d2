"""
Exception taxonomy for the sales repositories.

Every error raised by the data-access layer derives from RepositoryError,
so callers can branch on the concrete type (not-found, blocked delete,
pagination, store failure) instead of parsing messages.
"""

import sqlite3
from typing import Optional


# ============================================================
# Base
# ============================================================

class RepositoryError(Exception):
    """Base exception for repository operations"""
    pass


# ============================================================
# Store constraint violations
# ============================================================

class DuplicateKeyError(RepositoryError):
    """Raised when UNIQUE constraint is violated"""
    pass


class ForeignKeyError(RepositoryError):
    """Raised when FOREIGN KEY constraint is violated"""
    pass


class BusinessRuleError(RepositoryError):
    """Raised when CHECK constraint is violated"""
    pass


class StoreError(RepositoryError):
    """Any other store failure, wrapped with the operation that hit it."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class TransactionFailedError(RepositoryError):
    """BEGIN or COMMIT failed at the store level."""
    pass


class DatabaseConnectionError(RepositoryError):
    """The shared store connection could not be established."""
    pass


class MigrationError(RepositoryError):
    """A schema migration script failed; the database is left at the previous version."""

    def __init__(self, version: int, cause: BaseException):
        self.version = version
        self.cause = cause
        super().__init__(f"Migration {version} failed: {cause}")


# ============================================================
# Not found
# ============================================================

class NotFoundError(RepositoryError):
    """Raised when entity not found"""

    entity = "record"

    def __init__(self, entity_id=None, message: Optional[str] = None):
        self.entity_id = entity_id
        if message is None:
            message = f"{self.entity} {entity_id} not found"
        super().__init__(message)


class QuotationNotFoundError(NotFoundError):
    entity = "quotation"


class SalesOrderNotFoundError(NotFoundError):
    entity = "sales order"


class PurchaseOrderNotFoundError(NotFoundError):
    entity = "purchase order"


class DeliveryNotFoundError(NotFoundError):
    entity = "delivery"


class InvoiceNotFoundError(NotFoundError):
    entity = "invoice"


class PaymentNotFoundError(NotFoundError):
    entity = "payment"


class SalesProcessNotFoundError(NotFoundError):
    entity = "sales process"


class ContactNotFoundError(NotFoundError):
    entity = "contact"


# ============================================================
# Request / rule violations
# ============================================================

class InvalidPaginationError(RepositoryError):
    """page < 1 or page_size outside the configured bounds."""

    def __init__(self, page: int, page_size: int, max_page_size: int):
        self.page = page
        self.page_size = page_size
        self.max_page_size = max_page_size
        super().__init__(
            f"Invalid pagination: page={page}, page_size={page_size} "
            f"(page must be >= 1, page_size must be between 1 and {max_page_size})"
        )


class RelatedRecordsExistError(RepositoryError):
    """Delete refused because dependent records still reference the document."""

    def __init__(self, entity: str, entity_id: int, dependent: str, count: int):
        self.entity = entity
        self.entity_id = entity_id
        self.dependent = dependent
        self.count = count
        super().__init__(
            f"Cannot delete {entity} {entity_id}: {count} related {dependent} record(s) exist"
        )


class InvalidStatusTransitionError(RepositoryError):
    """Status change not allowed by the document's status machine."""

    def __init__(self, document: str, current: str, new: str):
        self.document = document
        self.current = current
        self.new = new
        super().__init__(f"Invalid {document} status transition: {current} -> {new}")


# ============================================================
# Cancellation
# ============================================================

class OperationAbortedError(RepositoryError):
    """A multi-step write was stopped by its OperationContext."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"{message} ({stage})")


class OperationCancelledError(OperationAbortedError):
    def __init__(self, stage: str):
        super().__init__(stage, "Operation cancelled")


class OperationTimeoutError(OperationAbortedError):
    def __init__(self, stage: str):
        super().__init__(stage, "Operation timed out")


# ============================================================
# Store error translation
# ============================================================

def translate_store_error(operation: str, exc: BaseException) -> RepositoryError:
    """
    Map a sqlite3 error to the repository taxonomy.

    Repository errors pass through unchanged; integrity errors are
    classified by message the way SQLite reports them.
    """
    if isinstance(exc, RepositoryError):
        return exc

    if isinstance(exc, sqlite3.IntegrityError):
        error_msg = str(exc).lower()
        if "foreign key" in error_msg:
            return ForeignKeyError(f"{operation}: foreign key constraint failed ({exc})")
        elif "check constraint" in error_msg:
            return BusinessRuleError(f"{operation}: business rule violated ({exc})")
        elif "unique" in error_msg:
            return DuplicateKeyError(f"{operation}: duplicate key ({exc})")

    return StoreError(operation, exc)
