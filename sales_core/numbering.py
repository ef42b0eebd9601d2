"""
Document numbers (``QT-2026-000001``) from the document_sequences table.

The counter row is incremented with a single upsert inside the caller's
write transaction, so two concurrent creates can never draw the same
value; the UNIQUE constraint on each number column backs this up for
numbers supplied by callers.
"""
import sqlite3

from .config import DOCUMENT_NUMBER_FORMAT


def next_sequence_value(cur: sqlite3.Cursor, prefix: str, year: int) -> int:
    """Increment and return the counter for (prefix, year). Call inside a write transaction."""
    cur.execute(
        """
        INSERT INTO document_sequences (prefix, year, last_value)
        VALUES (?, ?, 1)
        ON CONFLICT (prefix, year) DO UPDATE SET last_value = last_value + 1
        """,
        (prefix, year),
    )
    cur.execute(
        "SELECT last_value FROM document_sequences WHERE prefix = ? AND year = ?",
        (prefix, year),
    )
    return cur.fetchone()[0]


def format_document_number(prefix: str, year: int, seq: int) -> str:
    return DOCUMENT_NUMBER_FORMAT.format(prefix=prefix, year=year, seq=seq)


def next_document_number(cur: sqlite3.Cursor, prefix: str, year: int) -> str:
    return format_document_number(prefix, year, next_sequence_value(cur, prefix, year))
