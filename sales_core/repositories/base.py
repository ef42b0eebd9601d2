"""
Shared machinery for the sales repositories.

DocumentRepository implements the lifecycle every sales document shares:
- create: numbered parent row + items in one transaction
- get_by_id / paginated listings with items and references loaded
- update: wholesale overwrite of the parent, items replaced (not merged)
- delete: refused while dependent records exist, items then parent
- update_status: explicit status change checked by the status machine

Subclasses declare their table layout as class attributes and extend the
hooks (_load_references, _update_overrides, _after_update).
"""

import logging
import sqlite3
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from ..cancellation import OperationContext, check_context
from ..config import DEFAULT_PAGE, DOCUMENT_PREFIXES
from ..db import Store
from ..domain.status import StatusLike, StatusMachine, status_value
from ..errors import NotFoundError, RelatedRecordsExistError, RepositoryError, translate_store_error
from ..numbering import next_document_number
from ..pagination import PaginatedResult, PaginationParams
from ..utils.dates import from_db_datetime, to_db_datetime

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

PRICED_ITEM_COLUMNS = (
    "product_id", "product_name", "product_code", "description",
    "quantity", "unit_price", "discount", "tax", "total",
)


class BaseRepository:
    """Store access, clock, pagination and error translation shared by all repositories."""

    table: str = ""
    entity: str = "record"
    not_found_error: Type[NotFoundError] = NotFoundError
    date_columns: Tuple[str, ...] = ()
    default_order = "created_at DESC, id DESC"

    def __init__(self, store: Store, clock: Optional[Clock] = None):
        self.store = store
        self._clock = clock or datetime.now

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock().replace(microsecond=0)

    def _to_db(self, column: str, value: Any) -> Any:
        if column in self.date_columns:
            return to_db_datetime(value)
        if column == "status":
            return status_value(value)
        return value

    def _from_row(self, row: sqlite3.Row, names: Sequence[str]) -> Dict[str, Any]:
        return {
            name: from_db_datetime(row[name]) if name in self.date_columns else row[name]
            for name in names
        }

    def _store_error(self, operation: str, exc: BaseException) -> RepositoryError:
        logger.error(f"{operation} failed: {exc}")
        return translate_store_error(operation, exc)

    def _not_found(self, entity_id: Any) -> NotFoundError:
        logger.warning(f"{self.entity} {entity_id} not found")
        return self.not_found_error(entity_id)

    def _fetch_row(self, entity_id: int) -> Optional[sqlite3.Row]:
        try:
            return self.store.fetch_one(f"SELECT * FROM {self.table} WHERE id = ?", (entity_id,))
        except sqlite3.Error as e:
            raise self._store_error(f"get {self.entity} {entity_id}", e) from e

    def _hydrate(self, row: sqlite3.Row):
        """Map one row of this repository's table to its model; every repository supplies its own."""
        raise NotImplementedError

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def _page_params(self, params: Optional[PaginationParams]) -> PaginationParams:
        if params is None:
            params = PaginationParams(DEFAULT_PAGE, self.store.default_page_size)
        return params.validate(self.store.max_page_size)

    def _paginate(
        self,
        where: str = "",
        values: Sequence[Any] = (),
        params: Optional[PaginationParams] = None,
        order_by: Optional[str] = None,
    ) -> PaginatedResult:
        """
        Count + one page of rows, each hydrated.

        Pagination is validated before any statement is issued.
        """
        params = self._page_params(params)
        where_sql = f"WHERE {where}" if where else ""
        order_sql = order_by or self.default_order

        try:
            total = self.store.scalar(f"SELECT COUNT(*) FROM {self.table} {where_sql}", values)
            rows = self.store.fetch_all(
                f"SELECT * FROM {self.table} {where_sql} ORDER BY {order_sql} LIMIT ? OFFSET ?",
                [*values, params.limit, params.offset],
            )
        except sqlite3.Error as e:
            raise self._store_error(f"list {self.entity}", e) from e

        items = [self._hydrate(row) for row in rows]
        return PaginatedResult.build(items, total, params)

    def _select(self, where: str, values: Sequence[Any], order_by: Optional[str] = None) -> list:
        try:
            rows = self.store.fetch_all(
                f"SELECT * FROM {self.table} WHERE {where} ORDER BY {order_by or self.default_order}",
                values,
            )
        except sqlite3.Error as e:
            raise self._store_error(f"list {self.entity}", e) from e
        return [self._hydrate(row) for row in rows]


class DocumentRepository(BaseRepository):
    """
    Base class for quotation, sales order, purchase order, delivery and
    invoice repositories.

    Class attributes describe the table layout:
        model / number_column / prefix_key / columns / status_machine
        item_table / item_fk / item_model / item_columns
        dependents: (table, column, label) rows that block a delete
    """

    model: type = object
    number_column: str = ""
    prefix_key: str = ""
    columns: Tuple[str, ...] = ()
    status_machine: StatusMachine
    item_table: str = ""
    item_fk: str = ""
    item_model: type = object
    item_columns: Tuple[str, ...] = PRICED_ITEM_COLUMNS
    dependents: Tuple[Tuple[str, str, str], ...] = ()

    def __init__(self, store: Store, contacts=None, clock: Optional[Clock] = None):
        super().__init__(store, clock)
        self.contacts = contacts

    @property
    def prefix(self) -> str:
        return DOCUMENT_PREFIXES[self.prefix_key]

    # ------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------

    def _header_from_row(self, row: sqlite3.Row):
        fields = self._from_row(row, self.columns + ("created_at", "updated_at"))
        return self.model(id=row["id"], **fields)

    def _item_from_row(self, row: sqlite3.Row):
        return self.item_model(
            id=row["id"],
            document_id=row[self.item_fk],
            **{name: row[name] for name in self.item_columns},
        )

    def _load_items(self, doc_id: int, cur: Optional[sqlite3.Cursor] = None) -> list:
        sql = f"SELECT * FROM {self.item_table} WHERE {self.item_fk} = ? ORDER BY id"
        if cur is not None:
            rows = cur.execute(sql, (doc_id,)).fetchall()
        else:
            rows = self.store.fetch_all(sql, (doc_id,))
        return [self._item_from_row(row) for row in rows]

    def _insert_items(
        self,
        cur: sqlite3.Cursor,
        doc_id: int,
        items: Sequence[Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """Insert every item under doc_id. Incoming item ids are ignored: rows always get a new identity."""
        columns = (self.item_fk,) + self.item_columns
        sql = (
            f"INSERT INTO {self.item_table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(['?'] * len(columns))})"
        )
        for index, item in enumerate(items):
            check_context(ctx, f"{self.entity} item {index + 1}/{len(items)}")
            cur.execute(sql, [doc_id, *(getattr(item, name) for name in self.item_columns)])

    def _load_references(self, doc) -> None:
        """Attach directly referenced records. Subclasses add their own."""
        if self.contacts is not None and doc.contact_id:
            doc.contact = self.contacts.find(doc.contact_id)

    def _hydrate(self, row: sqlite3.Row):
        doc = self._header_from_row(row)
        try:
            doc.items = self._load_items(doc.id)
        except sqlite3.Error as e:
            raise self._store_error(f"load {self.entity} {doc.id} items", e) from e
        self._load_references(doc)
        return doc

    def _column_values(self, doc, overrides: Dict[str, Any]) -> Dict[str, Any]:
        return {name: overrides.get(name, getattr(doc, name)) for name in self.columns}

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get_by_id(self, doc_id: int):
        """
        Load a document with its items and references.

        Raises:
            <Type>NotFoundError: no row with this id
            StoreError: any other store failure
        """
        row = self._fetch_row(doc_id)
        if row is None:
            raise self._not_found(doc_id)
        return self._hydrate(row)

    def find_header(self, doc_id: int):
        """Parent row only (no items, no references), or None."""
        row = self._fetch_row(doc_id)
        return self._header_from_row(row) if row is not None else None

    def exists(self, doc_id: int) -> bool:
        return self._fetch_row(doc_id) is not None

    def get_all(self, params: Optional[PaginationParams] = None) -> PaginatedResult:
        return self._paginate(params=params)

    def get_by_status(self, status: StatusLike, params: Optional[PaginationParams] = None) -> PaginatedResult:
        status = self.status_machine.check_valid(status)
        return self._paginate("status = ?", [status], params)

    def get_by_contact(self, contact_id: int, params: Optional[PaginationParams] = None) -> PaginatedResult:
        return self._paginate("contact_id = ?", [contact_id], params)

    def get_by_period(
        self,
        start: datetime,
        end: datetime,
        params: Optional[PaginationParams] = None,
    ) -> PaginatedResult:
        """Documents created within [start, end]."""
        return self._paginate(
            "created_at >= ? AND created_at <= ?",
            [to_db_datetime(start), to_db_datetime(end)],
            params,
        )

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------

    def create(self, doc, ctx: Optional[OperationContext] = None):
        """
        Persist a new document with its items.

        Empty status defaults to the machine's initial state; an empty
        document number is drawn from the per-prefix/year sequence inside
        the same transaction. Any failure (including cancellation) rolls
        back the parent row, the items and the sequence increment.

        Returns:
            The same object with id, number, status, timestamps and
            reloaded items filled in.
        """
        status = self.status_machine.check_valid(doc.status or self.status_machine.initial)
        now = self._now()
        requested_number = getattr(doc, self.number_column)
        logger.info(f"Creating {self.entity} {requested_number or '(auto number)'} with {len(doc.items)} item(s)")

        try:
            with self.store.transaction(ctx=ctx, isolation_level="IMMEDIATE") as cur:
                number = requested_number or next_document_number(cur, self.prefix, now.year)
                values = self._column_values(doc, {self.number_column: number, "status": status})
                values["created_at"] = now
                values["updated_at"] = now

                names = list(values)
                cur.execute(
                    f"INSERT INTO {self.table} ({', '.join(names)}) "
                    f"VALUES ({', '.join(['?'] * len(names))})",
                    [self._to_db(name, values[name]) for name in names],
                )
                doc_id = cur.lastrowid

                self._insert_items(cur, doc_id, doc.items, ctx)
                items = self._load_items(doc_id, cur)
        except sqlite3.Error as e:
            raise self._store_error(f"create {self.entity}", e) from e

        doc.id = doc_id
        setattr(doc, self.number_column, number)
        doc.status = status
        doc.created_at = now
        doc.updated_at = now
        doc.items = items
        self._load_references(doc)
        logger.info(f"Created {self.entity} {number} (id={doc_id})")
        return doc

    def update(self, doc_id: int, doc, ctx: Optional[OperationContext] = None):
        """
        Overwrite a document and replace its items.

        Every column except id and created_at is taken from ``doc``; an
        empty number or status keeps the stored one. Existing items are
        deleted and the incoming ones inserted with fresh ids, all in one
        transaction.

        Raises:
            <Type>NotFoundError: document does not exist
            InvalidStatusTransitionError: status change not allowed
        """
        existing = self.get_by_id(doc_id)
        status = self.status_machine.check_transition(existing.status, doc.status or existing.status)
        overrides = {
            self.number_column: getattr(doc, self.number_column) or getattr(existing, self.number_column),
            "status": status,
        }
        overrides.update(self._update_overrides(doc, existing))
        values = self._column_values(doc, overrides)
        now = self._now()
        logger.info(f"Updating {self.entity} {doc_id} ({len(doc.items)} item(s))")

        try:
            with self.store.transaction(ctx=ctx, isolation_level="IMMEDIATE") as cur:
                names = list(values)
                set_clause = ", ".join(f"{name} = ?" for name in names)
                cur.execute(
                    f"UPDATE {self.table} SET {set_clause}, updated_at = ? WHERE id = ?",
                    [*(self._to_db(name, values[name]) for name in names), to_db_datetime(now), doc_id],
                )
                if cur.rowcount == 0:
                    raise self._not_found(doc_id)

                cur.execute(f"DELETE FROM {self.item_table} WHERE {self.item_fk} = ?", (doc_id,))
                self._insert_items(cur, doc_id, doc.items, ctx)
                self._after_update(cur, doc_id, values, existing)
        except sqlite3.Error as e:
            raise self._store_error(f"update {self.entity} {doc_id}", e) from e

        return self.get_by_id(doc_id)

    def _update_overrides(self, doc, existing) -> Dict[str, Any]:
        return {}

    def _after_update(self, cur: sqlite3.Cursor, doc_id: int, values: Dict[str, Any], existing) -> None:
        """Runs inside the update transaction after the row and items are written."""

    def update_status(self, doc_id: int, status: StatusLike, ctx: Optional[OperationContext] = None):
        """Explicit status change, validated against the transition table."""
        existing = self.get_by_id(doc_id)
        new_status = self.status_machine.check_transition(existing.status, status)
        if new_status == existing.status:
            return existing

        logger.info(f"{self.entity} {doc_id}: {existing.status} -> {new_status}")
        try:
            with self.store.transaction(ctx=ctx) as cur:
                cur.execute(
                    f"UPDATE {self.table} SET status = ?, updated_at = ? WHERE id = ?",
                    (new_status, to_db_datetime(self._now()), doc_id),
                )
        except sqlite3.Error as e:
            raise self._store_error(f"update {self.entity} {doc_id} status", e) from e
        return self.get_by_id(doc_id)

    def delete(self, doc_id: int, ctx: Optional[OperationContext] = None) -> None:
        """
        Delete a document and its items.

        Raises:
            RelatedRecordsExistError: dependents still reference it (nothing deleted)
            <Type>NotFoundError: no row with this id
        """
        logger.info(f"Deleting {self.entity} {doc_id}")
        self._check_dependents(doc_id)

        try:
            with self.store.transaction(ctx=ctx, isolation_level="IMMEDIATE") as cur:
                cur.execute(f"DELETE FROM {self.item_table} WHERE {self.item_fk} = ?", (doc_id,))
                cur.execute(f"DELETE FROM {self.table} WHERE id = ?", (doc_id,))
                if cur.rowcount == 0:
                    raise self._not_found(doc_id)
        except sqlite3.Error as e:
            raise self._store_error(f"delete {self.entity} {doc_id}", e) from e

    def count_dependents(self, doc_id: int) -> Dict[str, int]:
        """Number of referencing rows per dependent type."""
        counts = {}
        for table, column, label in self.dependents:
            try:
                counts[label] = self.store.scalar(
                    f"SELECT COUNT(*) FROM {table} WHERE {column} = ?", (doc_id,)
                )
            except sqlite3.Error as e:
                raise self._store_error(f"count {label} for {self.entity} {doc_id}", e) from e
        return counts

    def _check_dependents(self, doc_id: int) -> None:
        for label, count in self.count_dependents(doc_id).items():
            if count > 0:
                logger.warning(f"Refusing to delete {self.entity} {doc_id}: {count} {label} record(s)")
                raise RelatedRecordsExistError(self.entity, doc_id, label, count)
