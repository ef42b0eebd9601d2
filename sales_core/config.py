"""
Project configuration and constants.

Values here are defaults; a ``settings.json`` in the data directory may
override the pagination limits.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .utils.paths import get_data_dir

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"

# Pagination
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Document numbering: <PREFIX>-<YEAR>-<6-digit sequence>
DOCUMENT_PREFIXES = {
    "quotation": "QT",
    "sales_order": "SO",
    "purchase_order": "PO",
    "delivery": "DL",
    "invoice": "INV",
}
DOCUMENT_NUMBER_FORMAT = "{prefix}-{year}-{seq:06d}"

# Sales order created from an accepted quotation
SALES_ORDER_LEAD_DAYS = 15


def get_settings_file() -> Path:
    return get_data_dir() / SETTINGS_FILENAME


def load_settings(settings_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read settings.json.

    A missing or unreadable file yields an empty dict; a corrupt file is
    logged and ignored so the defaults above apply.
    """
    path = Path(settings_file) if settings_file is not None else get_settings_file()
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            settings = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return {}
    if not isinstance(settings, dict):
        logger.warning(f"Ignoring settings file {path}: top-level value is not an object")
        return {}
    return settings


def save_settings(settings: Dict[str, Any], settings_file: Optional[Path] = None) -> bool:
    """Write settings.json. Returns False if the file could not be written."""
    path = Path(settings_file) if settings_file is not None else get_settings_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(settings, f, indent=2)
        return True
    except OSError as e:
        logger.error(f"Could not write settings file {path}: {e}")
        return False


def get_pagination_limits(settings_file: Optional[Path] = None) -> Tuple[int, int]:
    """
    Return (default_page_size, max_page_size).

    settings.json keys: ``pagination.default_page_size`` and
    ``pagination.max_page_size``. Invalid values fall back to the defaults.
    """
    section = load_settings(settings_file).get("pagination", {})
    if not isinstance(section, dict):
        return DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

    max_size = section.get("max_page_size", MAX_PAGE_SIZE)
    if not isinstance(max_size, int) or isinstance(max_size, bool) or max_size < 1:
        logger.warning(f"Invalid pagination.max_page_size {max_size!r}, using {MAX_PAGE_SIZE}")
        max_size = MAX_PAGE_SIZE

    default_size = section.get("default_page_size", DEFAULT_PAGE_SIZE)
    if (not isinstance(default_size, int) or isinstance(default_size, bool)
            or not 1 <= default_size <= max_size):
        logger.warning(f"Invalid pagination.default_page_size {default_size!r}, using {min(DEFAULT_PAGE_SIZE, max_size)}")
        default_size = min(DEFAULT_PAGE_SIZE, max_size)

    return default_size, max_size
