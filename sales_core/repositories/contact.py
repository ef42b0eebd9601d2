"""Contacts referenced by documents and sales processes."""

import logging
import sqlite3
from typing import Optional

from ..domain.models import Contact
from ..errors import ContactNotFoundError
from ..utils.dates import to_db_datetime
from .base import BaseRepository

logger = logging.getLogger(__name__)

CONTACT_COLUMNS = ("name", "email", "phone", "contact_type")


class ContactRepository(BaseRepository):
    table = "contacts"
    entity = "contact"
    not_found_error = ContactNotFoundError
    date_columns = ("created_at", "updated_at")
    default_order = "name, id"

    def _hydrate(self, row: sqlite3.Row) -> Contact:
        return Contact(id=row["id"], **self._from_row(row, CONTACT_COLUMNS + self.date_columns))

    def create(self, contact: Contact) -> Contact:
        now = self._now()
        try:
            with self.store.transaction() as cur:
                cur.execute(
                    """
                    INSERT INTO contacts (name, email, phone, contact_type, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (contact.name, contact.email, contact.phone, contact.contact_type,
                     to_db_datetime(now), to_db_datetime(now)),
                )
                contact.id = cur.lastrowid
        except sqlite3.Error as e:
            raise self._store_error("create contact", e) from e

        contact.created_at = now
        contact.updated_at = now
        return contact

    def find(self, contact_id: int) -> Optional[Contact]:
        """Contact or None; documents may reference contacts that no longer exist."""
        row = self._fetch_row(contact_id)
        return self._hydrate(row) if row is not None else None

    def get_by_id(self, contact_id: int) -> Contact:
        contact = self.find(contact_id)
        if contact is None:
            raise self._not_found(contact_id)
        return contact
