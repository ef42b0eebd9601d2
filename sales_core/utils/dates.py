"""
Timestamp conversion between Python datetimes and the TEXT columns used
by the store (``YYYY-MM-DD HH:MM:SS``, lexically ordered).
"""
from datetime import date, datetime
from typing import Optional, Union

from dateutil import parser as dateparser

DB_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_db_datetime(value: Optional[Union[datetime, date, str]]) -> Optional[str]:
    """Serialize a datetime (or ISO-ish string) for storage. None stays None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = dateparser.parse(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value.strftime(DB_DATETIME_FORMAT)
    return datetime(value.year, value.month, value.day).strftime(DB_DATETIME_FORMAT)


def from_db_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return dateparser.parse(value)
