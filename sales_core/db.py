"""
SQLite store: connection handling, transactions and schema migrations.

- Connection management with PRAGMA configuration
- Transaction context manager with cancellation checkpoints
- Migration runner over numbered SQL scripts
- Schema verification and integrity checks
- Store: the single shared connection handed to every repository

Design Principles:
- Foreign keys enforced (PRAGMA foreign_keys=ON)
- WAL journal mode
- Explicit BEGIN/COMMIT (connections run in autocommit mode, so nothing
  is ever opened implicitly)
- Idempotent migration application
"""

import argparse
import logging
import sqlite3
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from .cancellation import OperationContext, check_context
from .config import SETTINGS_FILENAME, get_pagination_limits
from .errors import DatabaseConnectionError, MigrationError, TransactionFailedError
from .utils.paths import get_db_path, get_migrations_dir

logger = logging.getLogger(__name__)


# ============================================================
# Configuration Constants
# ============================================================

MIGRATIONS_DIR: Path = get_migrations_dir()

PRAGMA_CONFIG = {
    "foreign_keys": "ON",           # Enforce FK constraints
    "journal_mode": "WAL",          # Write-Ahead Logging for concurrency
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "busy_timeout": 5000,           # Wait 5s for lock (milliseconds)
}

MEMORY_DB = ":memory:"

EXPECTED_TABLES = {
    "schema_version", "document_sequences", "contacts",
    "quotations", "quotation_items",
    "sales_orders", "sales_order_items",
    "purchase_orders", "purchase_order_items",
    "deliveries", "delivery_items",
    "invoices", "invoice_items", "payments",
    "sales_processes", "process_deliveries", "process_invoices",
}


# ============================================================
# Connection Management
# ============================================================

def open_connection(db_path: "Path | str | None" = None) -> sqlite3.Connection:
    """
    Open SQLite connection with PRAGMA configuration applied.

    Args:
        db_path: Database file (default: data/sales.db). ":memory:" is accepted.

    Returns:
        Configured sqlite3.Connection (rows accessible by column name)

    Raises:
        sqlite3.OperationalError: Database locked or inaccessible
        sqlite3.DatabaseError: Corrupted database file
    """
    if db_path is None:
        db_path = get_db_path()

    if str(db_path) != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(db_path),
        timeout=30.0,
        check_same_thread=False,  # access is serialized by Store
        isolation_level=None,     # transactions are always explicit
    )
    conn.row_factory = sqlite3.Row

    cursor = conn.cursor()
    for pragma, value in PRAGMA_CONFIG.items():
        cursor.execute(f"PRAGMA {pragma}={value}")

    fk_enabled = cursor.execute("PRAGMA foreign_keys").fetchone()[0]
    if fk_enabled != 1:
        conn.close()
        raise sqlite3.OperationalError("Failed to enable foreign keys (PRAGMA foreign_keys=ON)")

    return conn


def close_connection(conn: Optional[sqlite3.Connection]) -> None:
    if conn:
        conn.close()


@contextmanager
def transaction(
    conn: sqlite3.Connection,
    isolation_level: str = "DEFERRED",
    ctx: Optional[OperationContext] = None,
) -> Iterator[sqlite3.Cursor]:
    """
    Transaction context manager with automatic commit/rollback.

    Args:
        conn: SQLite connection
        isolation_level: DEFERRED (default), IMMEDIATE, or EXCLUSIVE
        ctx: Optional cancellation context, checked before BEGIN, right
             after BEGIN and right before COMMIT

    Yields:
        sqlite3.Cursor: Cursor for executing queries

    Usage:
        >>> with transaction(conn, "IMMEDIATE") as cur:
        ...     cur.execute("INSERT INTO contacts (name) VALUES (?)", ("ACME",))

    Errors raised inside the block roll the transaction back and propagate
    unchanged. A failing BEGIN or COMMIT raises TransactionFailedError.
    """
    check_context(ctx, "before transaction")

    cursor = conn.cursor()
    try:
        cursor.execute(f"BEGIN {isolation_level}")
    except sqlite3.Error as e:
        raise TransactionFailedError(f"BEGIN {isolation_level} failed: {e}") from e

    try:
        check_context(ctx, "transaction started")
        yield cursor
        check_context(ctx, "before commit")
    except BaseException:
        conn.rollback()
        raise

    try:
        conn.commit()
    except sqlite3.Error as e:
        if conn.in_transaction:
            conn.rollback()
        raise TransactionFailedError(f"COMMIT failed: {e}") from e


# ============================================================
# Migration Management
# ============================================================

def get_current_schema_version(conn: sqlite3.Connection) -> int:
    """Current schema version (0 if schema_version table doesn't exist)."""
    try:
        result = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return result[0] if result[0] is not None else 0
    except sqlite3.OperationalError:
        return 0


def get_pending_migrations(
    conn: sqlite3.Connection,
    migrations_dir: Optional[Path] = None,
) -> List[Tuple[int, Path]]:
    """
    List pending migration scripts as (version, filepath), sorted by version.

    Naming convention: NNN_description.sql (e.g. 001_sales_schema.sql)
    """
    migrations_dir = Path(migrations_dir) if migrations_dir is not None else MIGRATIONS_DIR
    current_version = get_current_schema_version(conn)

    if not migrations_dir.exists():
        return []

    pending = []
    for migration_file in sorted(migrations_dir.glob("*.sql")):
        version_str = migration_file.stem.split("_")[0]
        try:
            version = int(version_str)
        except ValueError:
            logger.warning(f"Skipping invalid migration filename: {migration_file.name}")
            continue

        if version > current_version:
            pending.append((version, migration_file))

    return sorted(pending, key=lambda x: x[0])


def apply_migrations(
    conn: sqlite3.Connection,
    migrations_dir: Optional[Path] = None,
    dry_run: bool = False,
) -> int:
    """
    Apply all pending migrations.

    Each script runs together with its schema_version row inside one
    transaction, so a failing script leaves the database at the previous
    version.

    Returns:
        Number of migrations applied (0 for dry_run)

    Raises:
        MigrationError: A script failed
    """
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_version ("
        " version INTEGER PRIMARY KEY,"
        " description TEXT NOT NULL DEFAULT '',"
        " applied_at TEXT NOT NULL DEFAULT (datetime('now')))"
    )

    current_version = get_current_schema_version(conn)
    pending = get_pending_migrations(conn, migrations_dir)

    if not pending:
        logger.debug(f"Database schema is up-to-date (version {current_version})")
        return 0

    if dry_run:
        for version, filepath in pending:
            logger.info(f"Pending migration [{version}] {filepath.name}")
        return 0

    applied_count = 0
    for version, migration_path in pending:
        logger.info(f"Applying migration {version}: {migration_path.name}")
        migration_sql = migration_path.read_text(encoding="utf-8")
        description = migration_path.stem.replace("'", "''")

        script = (
            "BEGIN EXCLUSIVE;\n"
            f"{migration_sql}\n;\n"
            f"INSERT INTO schema_version (version, description) VALUES ({version}, '{description}');\n"
            "COMMIT;"
        )
        try:
            conn.executescript(script)
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.rollback()
            logger.error(f"Migration {version} failed: {e}")
            raise MigrationError(version, e) from e

        applied_count += 1

    logger.info(f"Schema version: {current_version} -> {get_current_schema_version(conn)}")
    return applied_count


# ============================================================
# Health Checks
# ============================================================

def verify_schema(conn: sqlite3.Connection) -> bool:
    """
    Check that every expected table exists, foreign keys are on and at
    least one migration has been applied.
    """
    actual_tables = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    missing_tables = EXPECTED_TABLES - actual_tables
    if missing_tables:
        logger.error(f"Missing tables: {', '.join(sorted(missing_tables))}")
        return False

    if conn.execute("PRAGMA foreign_keys").fetchone()[0] != 1:
        logger.error("Foreign keys are not enabled")
        return False

    if get_current_schema_version(conn) == 0:
        logger.error("Schema version is 0 (no migrations applied)")
        return False

    return True


def integrity_check(conn: sqlite3.Connection) -> bool:
    """PRAGMA integrity_check plus PRAGMA foreign_key_check."""
    integrity_result = conn.execute("PRAGMA integrity_check").fetchall()
    if len(integrity_result) != 1 or integrity_result[0][0] != "ok":
        for row in integrity_result:
            logger.error(f"Integrity check: {row[0]}")
        return False

    fk_violations = conn.execute("PRAGMA foreign_key_check").fetchall()
    if fk_violations:
        logger.error(f"Foreign key violations found ({len(fk_violations)})")
        for row in fk_violations[:10]:
            logger.error(f"  table={row[0]} rowid={row[1]} parent={row[2]}")
        return False

    return True


def get_database_stats(conn: sqlite3.Connection, db_path: "Path | str | None" = None) -> dict:
    """Table/index counts, schema version, file size and per-table row counts."""
    stats = {}
    stats["tables_count"] = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='table'"
    ).fetchone()[0]
    stats["indices_count"] = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='index' AND name NOT LIKE 'sqlite_%'"
    ).fetchone()[0]
    stats["schema_version"] = get_current_schema_version(conn)

    if db_path is not None and str(db_path) != MEMORY_DB and Path(db_path).exists():
        stats["db_size_mb"] = round(Path(db_path).stat().st_size / (1024 * 1024), 2)

    row_counts = {}
    tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name").fetchall()
    for row in tables:
        table_name = row[0]
        if table_name != "sqlite_sequence":
            row_counts[table_name] = conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()[0]
    stats["row_counts"] = row_counts

    return stats


# ============================================================
# Store
# ============================================================

class Store:
    """
    Shared store handle injected into every repository.

    The connection is opened lazily on first use behind an initialization
    lock, so concurrent first access from several repositories still opens
    exactly one connection. All statements on the connection are
    serialized through a re-entrant lock (single-writer discipline).

    Usage:
        >>> store = Store(Path("data/sales.db"))
        >>> store.migrate()
        >>> with store.transaction(isolation_level="IMMEDIATE") as cur:
        ...     cur.execute(...)
    """

    def __init__(
        self,
        db_path: "Path | str | None" = None,
        settings_file: Optional[Path] = None,
        migrations_dir: Optional[Path] = None,
        connection_factory: Callable[["Path | str"], sqlite3.Connection] = open_connection,
    ):
        self.db_path = db_path if db_path is not None else get_db_path()
        self.migrations_dir = migrations_dir
        self._connection_factory = connection_factory
        self._conn: Optional[sqlite3.Connection] = None
        self._init_lock = threading.Lock()
        self._lock = threading.RLock()
        self.default_page_size, self.max_page_size = get_pagination_limits(settings_file)

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            with self._init_lock:
                if self._conn is None:
                    try:
                        self._conn = self._connection_factory(self.db_path)
                    except (sqlite3.Error, OSError) as e:
                        logger.error(f"Could not open database {self.db_path}: {e}")
                        raise DatabaseConnectionError(
                            f"Could not open database {self.db_path}: {e}"
                        ) from e
                    logger.info(f"Opened database {self.db_path}")
        return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        with self._init_lock:
            if self._conn is not None:
                with self._lock:
                    close_connection(self._conn)
                self._conn = None

    @contextmanager
    def transaction(
        self,
        ctx: Optional[OperationContext] = None,
        isolation_level: str = "DEFERRED",
    ) -> Iterator[sqlite3.Cursor]:
        conn = self.connection
        with self._lock:
            with transaction(conn, isolation_level=isolation_level, ctx=ctx) as cur:
                yield cur

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        conn = self.connection
        with self._lock:
            return conn.execute(sql, params).fetchone()

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        conn = self.connection
        with self._lock:
            return conn.execute(sql, params).fetchall()

    def scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = self.fetch_one(sql, params)
        return row[0] if row is not None else None

    def migrate(self, dry_run: bool = False) -> int:
        conn = self.connection
        with self._lock:
            return apply_migrations(conn, self.migrations_dir, dry_run=dry_run)

    def schema_version(self) -> int:
        conn = self.connection
        with self._lock:
            return get_current_schema_version(conn)


# ============================================================
# CLI Interface
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m sales_core.db",
        description="Sales database maintenance",
    )
    parser.add_argument("command", choices=["init", "migrate", "verify", "stats"])
    parser.add_argument("--db", type=Path, default=None, help="Database file (default: data/sales.db)")
    parser.add_argument("--dry-run", action="store_true", help="migrate: list pending scripts only")
    args = parser.parse_args(argv)

    settings_file = args.db.parent / SETTINGS_FILENAME if args.db is not None else None
    store = Store(args.db, settings_file=settings_file)
    try:
        if args.command in ("init", "migrate"):
            if args.dry_run:
                for version, path in get_pending_migrations(store.connection, store.migrations_dir):
                    print(f"  [{version}] {path.name}")
                return 0
            applied = store.migrate()
            print(f"✓ Migrations applied: {applied} (schema version {store.schema_version()})")
            return 0

        if args.command == "verify":
            healthy = verify_schema(store.connection) and integrity_check(store.connection)
            print("✓ Database is healthy" if healthy else "✗ Database has issues")
            return 0 if healthy else 1

        stats = get_database_stats(store.connection, store.db_path)
        print("Database Statistics:")
        print(f"  Schema version: {stats['schema_version']}")
        print(f"  Tables: {stats['tables_count']}")
        print(f"  Indices: {stats['indices_count']}")
        if "db_size_mb" in stats:
            print(f"  Database size: {stats['db_size_mb']} MB")
        print("  Row counts:")
        for table, count in sorted(stats["row_counts"].items()):
            print(f"    {table}: {count:,}")
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
