"""
Runtime locations for the sales database, settings, logs and schema
migrations.

Lookup order for data and logs:
    1. environment override (SALES_CORE_DATA_DIR / SALES_CORE_LOGS_DIR)
    2. <install root>/<name>, where the install root is the directory of
       the executable when frozen and the checkout root otherwise
    3. ~/SalesCore/<name> when the install root is not writable

Migrations always come from the package itself (or the bundle directory
when frozen), never from the data directory.
"""

import os
import sys
from pathlib import Path

DATA_DIR_ENV = "SALES_CORE_DATA_DIR"
LOGS_DIR_ENV = "SALES_CORE_LOGS_DIR"
DB_FILENAME = "sales.db"
HOME_FALLBACK = "SalesCore"

_PACKAGE_DIR = Path(__file__).resolve().parent.parent


def _is_frozen() -> bool:
    return bool(getattr(sys, "frozen", False))


def _install_root() -> Path:
    if _is_frozen():
        return Path(sys.executable).resolve().parent
    return _PACKAGE_DIR.parent


def _writable(directory: Path) -> bool:
    """mkdir + canary file; False on any permission or filesystem error."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        probe = directory / ".write_probe"
        probe.touch()
        probe.unlink()
    except OSError:
        return False
    return True


def _runtime_dir(name: str, env_var: str) -> Path:
    override = os.environ.get(env_var)
    if override:
        directory = Path(override)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    for candidate in (_install_root() / name, Path.home() / HOME_FALLBACK / name):
        if _writable(candidate):
            return candidate
    raise OSError(f"No writable location for the {name} directory")


def get_data_dir() -> Path:
    return _runtime_dir("data", DATA_DIR_ENV)


def get_logs_dir() -> Path:
    return _runtime_dir("logs", LOGS_DIR_ENV)


def get_migrations_dir() -> Path:
    if _is_frozen():
        return Path(sys._MEIPASS) / "migrations"  # type: ignore[attr-defined]
    return _PACKAGE_DIR / "migrations"


def get_db_path() -> Path:
    """Default database file: <data dir>/sales.db."""
    return get_data_dir() / DB_FILENAME
